"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pixel_relay import __version__
from pixel_relay.api.event import router as event_router
from pixel_relay.api.router import api_router
from pixel_relay.core.config import settings
from pixel_relay.core.exceptions import (
    ProblemDetailError,
    http_exception_handler,
    problem_detail_handler,
    validation_exception_handler,
)
from pixel_relay.core.logging import configure_logging
from pixel_relay.core.middleware.cors import get_cors_config
from pixel_relay.core.middleware.request_id import RequestIdMiddleware
from pixel_relay.db.session import async_session_factory
from pixel_relay.services.ingestion import build_pipeline

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Pixel Relay",
    version=__version__,
    docs_url="/docs",
    openapi_url="/openapi.json",
)

# Built once; request handlers get it through get_pipeline
app.state.pipeline = build_pipeline(settings, async_session_factory)

# Middleware (last added = first executed)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(CORSMiddleware, **get_cors_config(settings))

# Exception handlers (RFC 7807)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Routes
app.include_router(api_router, prefix="/api")
app.include_router(event_router, include_in_schema=False)
