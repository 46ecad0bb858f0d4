"""Read-only reporting endpoints over the event log and visitor tables."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pixel_relay.core.dependencies import get_db
from pixel_relay.core.exceptions import ProblemDetailError
from pixel_relay.schemas.analytics import (
    AddToCartEventItem,
    CountResponse,
    DataResponse,
    DeviceCount,
    EventTypeCount,
    LocationCount,
    PurchaseEventItem,
    RecentVisitorItem,
)
from pixel_relay.services import analytics_queries

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


def _query_failed(what: str, exc: SQLAlchemyError) -> ProblemDetailError:
    logger.error("[api/analytics] Failed to get %s: %s", what, exc)
    return ProblemDetailError(
        status=500,
        title="Analytics query failed",
        detail=f"Failed to get {what}",
    )


@router.get("/users/total", response_model=CountResponse)
async def total_unique_users(db: AsyncSession = Depends(get_db)) -> CountResponse:
    try:
        count = await analytics_queries.get_total_unique_users(db)
    except SQLAlchemyError as e:
        raise _query_failed("total users", e) from e
    return CountResponse(count=count)


@router.get("/users/by-device", response_model=DataResponse[DeviceCount])
async def unique_users_by_device(db: AsyncSession = Depends(get_db)) -> DataResponse[DeviceCount]:
    try:
        rows = await analytics_queries.get_unique_users_by_device(db)
    except SQLAlchemyError as e:
        raise _query_failed("users by device", e) from e
    return DataResponse[DeviceCount](data=[DeviceCount(**r) for r in rows])


@router.get("/users/by-location", response_model=DataResponse[LocationCount])
async def unique_users_by_location(
    db: AsyncSession = Depends(get_db),
) -> DataResponse[LocationCount]:
    """Top 100 known locations; visitors without a country are left out."""
    try:
        rows = await analytics_queries.get_unique_users_by_location(db)
    except SQLAlchemyError as e:
        raise _query_failed("users by location", e) from e
    return DataResponse[LocationCount](data=[LocationCount(**r) for r in rows])


@router.get("/users/recent", response_model=DataResponse[RecentVisitorItem])
async def recent_unique_users(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[RecentVisitorItem]:
    try:
        visitors = await analytics_queries.get_recent_unique_users(db, limit)
    except SQLAlchemyError as e:
        raise _query_failed("recent users", e) from e
    return DataResponse[RecentVisitorItem](
        data=[RecentVisitorItem.model_validate(v) for v in visitors]
    )


@router.get("/events/counts", response_model=DataResponse[EventTypeCount])
async def event_counts(db: AsyncSession = Depends(get_db)) -> DataResponse[EventTypeCount]:
    try:
        rows = await analytics_queries.get_event_counts(db)
    except SQLAlchemyError as e:
        raise _query_failed("event counts", e) from e
    return DataResponse[EventTypeCount](data=[EventTypeCount(**r) for r in rows])


@router.get("/events/purchases", response_model=DataResponse[PurchaseEventItem])
async def recent_purchases(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[PurchaseEventItem]:
    try:
        events = await analytics_queries.get_recent_events(db, "Purchase", limit)
    except SQLAlchemyError as e:
        raise _query_failed("purchase events", e) from e
    return DataResponse[PurchaseEventItem](
        data=[PurchaseEventItem.model_validate(e) for e in events]
    )


@router.get("/events/add-to-cart", response_model=DataResponse[AddToCartEventItem])
async def recent_add_to_carts(
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[AddToCartEventItem]:
    try:
        events = await analytics_queries.get_recent_events(db, "AddToCart", limit)
    except SQLAlchemyError as e:
        raise _query_failed("add to cart events", e) from e
    return DataResponse[AddToCartEventItem](
        data=[AddToCartEventItem.model_validate(e) for e in events]
    )
