"""Conversions API credential lookup strategies.

``static`` serves one pixel from settings. ``remote`` asks the storefront
backend for the pixel belonging to the product slug in the event path.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from pixel_relay.core.config import Settings
from pixel_relay.services.tracked_event import TrackedEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapiCredentials:
    pixel_id: str | None
    access_token: str | None
    test_event_code: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.pixel_id and self.access_token)


class CredentialsResolver(Protocol):
    async def resolve(self, event: TrackedEvent) -> CapiCredentials | None: ...


class StaticCredentialsResolver:
    def __init__(
        self,
        pixel_id: str | None,
        access_token: str | None,
        test_event_code: str | None = None,
    ):
        self._credentials = CapiCredentials(
            pixel_id=pixel_id,
            access_token=access_token,
            test_event_code=test_event_code or None,
        )

    async def resolve(self, event: TrackedEvent) -> CapiCredentials | None:
        return self._credentials


def slug_from_path(path: str | None) -> str | None:
    """Last path segment: ``/product/blue-mug`` -> ``blue-mug``."""
    if not path:
        return None
    return path.split("?")[0].split("/")[-1] or None


class RemoteCredentialsResolver:
    def __init__(
        self,
        base_url: str | None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._transport = transport

    async def resolve(self, event: TrackedEvent) -> CapiCredentials | None:
        slug = slug_from_path(event.path)
        if not self.base_url or not slug:
            return None

        url = f"{self.base_url}/products/get-fb-credentials/{slug}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url)
                resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("[capi] Credentials lookup failed for slug %r: %s", slug, e)
            return None

        if not isinstance(data, dict):
            return None

        return CapiCredentials(
            pixel_id=data.get("pixel_id"),
            access_token=data.get("token"),
            test_event_code=data.get("test_code") or None,
        )


def build_credentials_resolver(
    config: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CredentialsResolver:
    if config.CREDENTIALS_SOURCE == "static":
        return StaticCredentialsResolver(
            pixel_id=config.META_PIXEL_ID,
            access_token=config.META_ACCESS_TOKEN,
            test_event_code=config.META_TEST_EVENT_CODE,
        )
    if config.CREDENTIALS_SOURCE == "remote":
        return RemoteCredentialsResolver(
            base_url=config.CREDENTIALS_API_URL,
            timeout=config.CREDENTIALS_TIMEOUT,
            transport=transport,
        )
    raise ValueError(f"Unknown CREDENTIALS_SOURCE: {config.CREDENTIALS_SOURCE!r}")
