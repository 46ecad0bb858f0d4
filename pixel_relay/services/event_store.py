"""Append-only event log."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixel_relay.models.event import Event
from pixel_relay.services.tracked_event import TrackedEvent, to_decimal


def _fit(column: str, value: str | None) -> str | None:
    """Cut ``value`` to the width of a bounded String column."""
    length = getattr(Event.__table__.c[column].type, "length", None)
    if value is None or length is None:
        return value
    return value[:length]


class EventLogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(self, event: TrackedEvent) -> None:
        """Insert one row. Oversized strings are truncated to fit the log."""
        row = Event(
            event_type=_fit("event_type", event.event_type),
            host=_fit("host", event.host),
            path=event.path,
            full_url=event.full_url,
            referrer=event.referrer,
            user_agent=event.user_agent or None,
            ip_address=_fit("ip_address", event.ip_address),
            device_type=event.device_type,
            ts=event.ts,
            product_data=event.product_data,
            value=to_decimal(event.value),
            currency=_fit("currency", event.currency),
            event_id=_fit("event_id", event.event_id),
        )
        async with self._session_factory.begin() as session:
            session.add(row)
