"""Aggregate all API sub-routers."""

from fastapi import APIRouter

from pixel_relay.api.analytics import router as analytics_router
from pixel_relay.api.event import router as event_router
from pixel_relay.api.health import router as health_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(event_router, tags=["events"])
api_router.include_router(analytics_router, prefix="/analytics", tags=["analytics"])
