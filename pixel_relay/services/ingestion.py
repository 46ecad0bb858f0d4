"""Event ingestion pipeline.

Received -> Enriched -> Persisted(event) -> Upserted(visitor) -> Dispatched -> Acknowledged

Stages run in order within a request. A failing stage is logged and recorded
as a ``StageResult``; it never stops the stages after it, and the request is
always acknowledged.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixel_relay.core.config import Settings
from pixel_relay.schemas.event import EventRequest
from pixel_relay.services.credentials import CredentialsResolver, build_credentials_resolver
from pixel_relay.services.event_store import EventLogStore
from pixel_relay.services.geolocation import Geolocation, GeolocationResolver
from pixel_relay.services.meta_capi import ConversionDispatcher, DeliveryResult
from pixel_relay.services.request_context import (
    RequestContext,
    extract_request_details,
    resolve_source_url,
)
from pixel_relay.services.tracked_event import TrackedEvent, build_tracked_event
from pixel_relay.services.visitor_store import VisitorStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    stage: str
    ok: bool
    error: str | None = None


@dataclass
class IngestionOutcome:
    event: TrackedEvent
    stages: list[StageResult] = field(default_factory=list)
    geolocation: Geolocation | None = None
    delivery: DeliveryResult | None = None

    def stage(self, name: str) -> StageResult | None:
        return next((s for s in self.stages if s.stage == name), None)


class IngestionPipeline:
    def __init__(
        self,
        event_store: EventLogStore,
        visitor_store: VisitorStore,
        geolocation: GeolocationResolver,
        dispatcher: ConversionDispatcher,
        credentials: CredentialsResolver,
        frontend_url: str | None = None,
        secure_urls: bool = False,
    ):
        self.event_store = event_store
        self.visitor_store = visitor_store
        self.geolocation = geolocation
        self.dispatcher = dispatcher
        self.credentials = credentials
        self.frontend_url = frontend_url
        self.secure_urls = secure_urls

    async def process(self, body: EventRequest, context: RequestContext) -> IngestionOutcome:
        event = self.enrich(body, context)
        outcome = IngestionOutcome(event=event)

        geolocation, result = await self._run_stage(
            "geolocate", self.geolocation.resolve(event.ip_address)
        )
        outcome.stages.append(result)
        outcome.geolocation = geolocation

        _, result = await self._run_stage("persist_event", self.event_store.append(event))
        outcome.stages.append(result)

        _, result = await self._run_stage(
            "upsert_visitor",
            self.visitor_store.upsert(
                event.ip_address,
                event.device_type,
                event.user_agent,
                geolocation if geolocation and not geolocation.is_empty else None,
            ),
        )
        outcome.stages.append(result)

        delivery, result = await self._run_stage("dispatch", self._dispatch(event, context))
        if delivery is not None:
            result = StageResult("dispatch", ok=delivery.ok, error=delivery.reason)
        outcome.stages.append(result)
        outcome.delivery = delivery

        failed = [s.stage for s in outcome.stages if not s.ok]
        if failed:
            logger.info("[ingest] %s acknowledged with failed stages: %s", event.event_type, failed)
        return outcome

    def enrich(self, body: EventRequest, context: RequestContext) -> TrackedEvent:
        details = extract_request_details(context, user_agent=body.ua)
        full_url = resolve_source_url(
            context,
            url=body.url,
            path=body.path,
            frontend_url=self.frontend_url,
            secure=self.secure_urls,
        )
        return build_tracked_event(body, details, full_url=full_url or None)

    async def _dispatch(self, event: TrackedEvent, context: RequestContext) -> DeliveryResult:
        credentials = await self.credentials.resolve(event)
        return await self.dispatcher.dispatch(event, context, credentials)

    async def _run_stage(self, name: str, step: Awaitable[Any]) -> tuple[Any, StageResult]:
        try:
            value = await step
        except Exception as e:
            logger.exception("[ingest] Stage %s failed", name)
            return None, StageResult(name, ok=False, error=f"{type(e).__name__}: {e}")
        return value, StageResult(name, ok=True)


def build_pipeline(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    transport: httpx.AsyncBaseTransport | None = None,
) -> IngestionPipeline:
    """Wire the stores, resolvers and dispatcher from settings.

    ``transport`` replaces the network for every outbound HTTP call (tests).
    """
    visitor_store = VisitorStore(session_factory)
    return IngestionPipeline(
        event_store=EventLogStore(session_factory),
        visitor_store=visitor_store,
        geolocation=GeolocationResolver(
            visitor_store,
            base_url=config.GEOLOCATION_URL,
            timeout=config.GEOLOCATION_TIMEOUT,
            user_agent=config.GEOLOCATION_USER_AGENT,
            transport=transport,
        ),
        dispatcher=ConversionDispatcher(
            graph_base_url=config.META_GRAPH_BASE_URL,
            api_version=config.META_GRAPH_API_VERSION,
            timeout=config.CAPI_TIMEOUT,
            frontend_url=config.FRONTEND_URL,
            secure_urls=config.is_production,
            purchase_default_currency=config.PURCHASE_DEFAULT_CURRENCY,
            add_to_cart_default_currency=config.ADD_TO_CART_DEFAULT_CURRENCY,
            transport=transport,
        ),
        credentials=build_credentials_resolver(config, transport=transport),
        frontend_url=config.FRONTEND_URL,
        secure_urls=config.is_production,
    )
