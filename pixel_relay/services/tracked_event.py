"""Normalized, immutable view of one inbound event."""

import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pixel_relay.schemas.event import EventRequest
from pixel_relay.services.request_context import RequestDetails

DEFAULT_EVENT_TYPE = "PageView"


@dataclass(frozen=True)
class TrackedEvent:
    event_type: str
    ip_address: str
    device_type: str
    user_agent: str
    ts: int
    host: str | None = None
    path: str | None = None
    url: str | None = None
    full_url: str | None = None
    referrer: str | None = None
    product: dict[str, Any] | None = None
    products: list[dict[str, Any]] | None = None
    value: Decimal | None = None
    currency: str | None = None
    email: str | None = None
    phone: str | None = None
    event_id: str | None = None

    @property
    def product_data(self) -> dict[str, Any] | list[dict[str, Any]] | None:
        """Single product when present, otherwise the product list."""
        if self.product:
            return self.product
        return self.products or None


def to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def build_tracked_event(
    body: EventRequest,
    details: RequestDetails,
    full_url: str | None = None,
) -> TrackedEvent:
    """Merge the request body with server-derived details.

    Falsy body values count as missing, so ``value: 0`` is stored as null.
    """
    return TrackedEvent(
        event_type=body.event or DEFAULT_EVENT_TYPE,
        ip_address=details.ip_address,
        device_type=details.device_type,
        user_agent=details.user_agent,
        ts=body.ts or int(time.time() * 1000),
        host=details.host,
        path=body.path or None,
        url=body.url or None,
        full_url=full_url,
        referrer=body.referrer or None,
        product=body.product or None,
        products=body.products or None,
        value=to_decimal(body.value) if body.value else None,
        currency=body.currency or None,
        email=body.email or None,
        phone=body.phone or None,
        event_id=body.event_id or None,
    )
