"""Unique-visitor upserts keyed by (ip_address, device_type)."""

from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixel_relay.models.unique_user import UniqueUser
from pixel_relay.services.geolocation import Geolocation

# Last-known fields: a null incoming value never erases a stored one
COALESCED_FIELDS = (
    "user_agent",
    "country",
    "region",
    "city",
    "district",
    "latitude",
    "longitude",
)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class VisitorStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(
        self,
        ip_address: str,
        device_type: str,
        user_agent: str | None,
        geolocation: Geolocation | None = None,
    ) -> None:
        """Insert the visitor or bump its counters in a single statement.

        INSERT ... ON CONFLICT keeps concurrent first visits from creating
        duplicate rows.
        """
        geo = geolocation or Geolocation()
        now = datetime.now(UTC)

        async with self._session_factory.begin() as session:
            insert = _INSERT_BY_DIALECT.get(session.bind.dialect.name)
            if insert is None:
                raise NotImplementedError(
                    f"Visitor upsert is not supported on {session.bind.dialect.name}"
                )

            stmt = insert(UniqueUser).values(
                ip_address=ip_address,
                device_type=device_type,
                user_agent=user_agent or None,
                country=geo.country,
                region=geo.region,
                city=geo.city,
                district=geo.district,
                latitude=geo.latitude,
                longitude=geo.longitude,
                first_seen=now,
                last_seen=now,
                visit_count=1,
            )
            updates = {
                field: func.coalesce(stmt.excluded[field], getattr(UniqueUser, field))
                for field in COALESCED_FIELDS
            }
            updates["last_seen"] = stmt.excluded.last_seen
            updates["visit_count"] = UniqueUser.visit_count + 1

            stmt = stmt.on_conflict_do_update(
                index_elements=[UniqueUser.ip_address, UniqueUser.device_type],
                set_=updates,
            )
            await session.execute(stmt)

    async def exists(self, ip_address: str) -> bool:
        """True when any device has been seen from this IP."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(UniqueUser.id).where(UniqueUser.ip_address == ip_address).limit(1)
            )
            return result.scalar_one_or_none() is not None
