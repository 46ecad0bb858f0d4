"""Event ingestion request/response schemas."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, field_validator


class EventRequest(BaseModel):
    """Beacon body sent by the browser script. Every field is optional."""

    model_config = {"extra": "ignore"}

    event: str | None = None
    path: str | None = None
    url: str | None = None
    referrer: str | None = None
    ua: str | None = None
    ts: int | None = None
    product: dict[str, Any] | None = None
    products: list[dict[str, Any]] | None = None
    value: Decimal | None = None
    currency: str | None = None
    email: str | None = None
    phone: str | None = None
    event_id: str | None = None

    @field_validator("value", "ts", mode="before")
    @classmethod
    def blank_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class EventAck(BaseModel):
    ok: bool = True


class EventErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str | None = None
