"""Public event ingestion endpoint (browser beacon target, no auth)."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pixel_relay.core.config import settings
from pixel_relay.core.dependencies import get_pipeline
from pixel_relay.schemas.event import EventAck, EventErrorResponse, EventRequest
from pixel_relay.services.ingestion import IngestionPipeline
from pixel_relay.services.request_context import StarletteRequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/event",
    response_model=EventAck,
    responses={500: {"model": EventErrorResponse}},
)
async def track_event(
    request: Request,
    body: EventRequest | None = None,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Record an event and forward it to the Conversions API.

    Always answers ``{"ok": true}`` once the pipeline has run, even when the
    database or Meta is down: a tracking beacon must never break the page.
    """
    try:
        await pipeline.process(body or EventRequest(), StarletteRequestContext(request))
    except Exception as e:
        logger.exception("[api/event] Failed to process event")
        expose = settings.DEBUG or settings.ENVIRONMENT == "development"
        error = EventErrorResponse(
            error="Failed to process event",
            message=str(e) if expose else None,
        )
        return JSONResponse(status_code=500, content=error.model_dump(exclude_none=True))

    return EventAck()
