"""Reporting response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    data: list[T]


class CountResponse(BaseModel):
    count: int


class DeviceCount(BaseModel):
    device_type: str
    count: int


class LocationCount(BaseModel):
    country: str
    region: str | None
    city: str | None
    district: str | None
    count: int


class EventTypeCount(BaseModel):
    event_type: str
    count: int


class AddToCartEventItem(BaseModel):
    id: int
    path: str | None
    ip_address: str | None
    device_type: str | None
    product_data: Any | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class PurchaseEventItem(AddToCartEventItem):
    value: Decimal | None
    currency: str | None


class RecentVisitorItem(BaseModel):
    ip_address: str
    device_type: str
    country: str | None
    city: str | None
    district: str | None
    visit_count: int
    last_seen: datetime

    model_config = {"from_attributes": True}


class PixelConfigResponse(BaseModel):
    pixel: str | None = None
