"""Read-only reporting queries over the event log and visitor tables."""

from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pixel_relay.models.event import Event
from pixel_relay.models.unique_user import UniqueUser

LOCATION_ROW_LIMIT = 100


async def get_total_unique_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(UniqueUser))
    return result.scalar_one()


async def get_unique_users_by_device(db: AsyncSession) -> list[dict[str, Any]]:
    count = func.count().label("count")
    result = await db.execute(
        select(UniqueUser.device_type, count).group_by(UniqueUser.device_type)
    )
    return [dict(row) for row in result.mappings()]


async def get_unique_users_by_location(db: AsyncSession) -> list[dict[str, Any]]:
    count = func.count().label("count")
    stmt = (
        select(UniqueUser.country, UniqueUser.region, UniqueUser.city, UniqueUser.district, count)
        .where(UniqueUser.country.is_not(None))
        .group_by(UniqueUser.country, UniqueUser.region, UniqueUser.city, UniqueUser.district)
        .order_by(desc("count"))
        .limit(LOCATION_ROW_LIMIT)
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings()]


async def get_event_counts(db: AsyncSession) -> list[dict[str, Any]]:
    count = func.count().label("count")
    result = await db.execute(select(Event.event_type, count).group_by(Event.event_type))
    return [dict(row) for row in result.mappings()]


async def get_recent_events(db: AsyncSession, event_type: str, limit: int) -> list[Event]:
    stmt = (
        select(Event)
        .where(Event.event_type == event_type)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_recent_unique_users(db: AsyncSession, limit: int) -> list[UniqueUser]:
    stmt = select(UniqueUser).order_by(UniqueUser.last_seen.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
