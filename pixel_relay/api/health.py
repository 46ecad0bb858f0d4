"""Health check and pixel bootstrap endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from pixel_relay import __version__
from pixel_relay.core.config import settings
from pixel_relay.db.session import engine
from pixel_relay.schemas.analytics import PixelConfigResponse

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check DB connectivity."""
    db_status = "ok"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "db": db_status,
        "version": __version__,
    }


@router.get("/get-pixel", response_model=PixelConfigResponse)
async def get_pixel() -> PixelConfigResponse:
    """Pixel id for the browser script (the access token is never exposed)."""
    return PixelConfigResponse(pixel=settings.META_PIXEL_ID)
