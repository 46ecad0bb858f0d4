"""Meta Conversions API (CAPI) dispatch.

WHAT:
    Forwards each tracked event to Meta server-side, next to the browser
    pixel, with per-event-type ``custom_data`` shaping.

WHY:
    Server-side events survive ad blockers and ITP cookie limits. Meta merges
    them with the browser pixel report when both carry the same ``event_id``.

HOW:
    POST {graph}/{version}/{pixel_id}/events with ``{"data": [event],
    "access_token": ...}``. One attempt, bounded by a timeout. Every failure
    is logged and returned as a ``DeliveryResult``; nothing is raised.

REFERENCES:
    - https://developers.facebook.com/docs/marketing-api/conversions-api
"""

import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from pixel_relay.services.credentials import CapiCredentials
from pixel_relay.services.hashing import hash_pii
from pixel_relay.services.request_context import RequestContext, resolve_source_url
from pixel_relay.services.tracked_event import TrackedEvent

logger = logging.getLogger(__name__)

ACTION_SOURCE = "website"

FBP_COOKIE_PATTERN = re.compile(r"_fbp=([^;]+)")
FBC_COOKIE_PATTERN = re.compile(r"_fbc=([^;]+)")


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    status_code: int | None = None
    reason: str | None = None
    response: dict[str, Any] | None = None


def _as_float(value: Any) -> float | None:
    """Finite float or None; NaN and infinities are not valid JSON."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_quantity(value: Any) -> int:
    """Item quantity; missing, zero or unparsable quantities count as 1."""
    try:
        return int(float(value)) or 1
    except (TypeError, ValueError):
        return 1


def _line_item(product: dict[str, Any], quantity: int) -> dict[str, Any]:
    return {
        "id": str(product.get("id")),
        "quantity": quantity,
        "item_price": _as_float(product.get("price")),
    }


def _add_to_cart_data(event: TrackedEvent, default_currency: str) -> dict[str, Any]:
    product = event.product
    return {
        "content_name": product.get("name"),
        "content_ids": [str(product.get("id"))],
        "content_type": "product",
        "contents": [_line_item(product, 1)],
        "value": _as_float(product.get("price")),
        "currency": product.get("currency") or event.currency or default_currency,
    }


def _purchase_data(event: TrackedEvent, default_currency: str) -> dict[str, Any]:
    explicit_value = _as_float(event.value) if event.value is not None else None

    if event.products:
        items = event.products
        contents = [_line_item(p, _as_quantity(p.get("quantity"))) for p in items]
        computed = sum(
            (_as_float(p.get("price")) or 0.0) * _as_quantity(p.get("quantity")) for p in items
        )
    else:
        items = [event.product]
        contents = [_line_item(event.product, 1)]
        computed = _as_float(event.product.get("price")) or 0.0

    currency = event.currency or items[0].get("currency") or default_currency

    return {
        "content_name": "Purchase",
        "content_ids": [c["id"] for c in contents],
        "content_type": "product",
        "contents": contents,
        "value": explicit_value if explicit_value is not None else round(computed, 2),
        "currency": currency,
        "num_items": sum(c["quantity"] for c in contents),
    }


def build_custom_data(
    event: TrackedEvent,
    purchase_default_currency: str = "USD",
    add_to_cart_default_currency: str = "USD",
) -> dict[str, Any]:
    """Shape ``custom_data`` for the event type; unknown types get PageView shape."""
    if event.event_type == "AddToCart" and event.product:
        return _add_to_cart_data(event, add_to_cart_default_currency)
    if event.event_type == "Purchase" and (event.products or event.product):
        return _purchase_data(event, purchase_default_currency)
    return {"content_name": event.path or "Unknown"}


def read_browser_id(context: RequestContext, name: str, pattern: re.Pattern) -> str | None:
    """Read a Meta browser cookie, parsing the raw header when needed."""
    value = context.get_cookie(name)
    if value:
        return value
    cookie_header = context.get_header("cookie")
    if not cookie_header:
        return None
    match = pattern.search(cookie_header)
    return match.group(1) if match else None


def build_user_data(event: TrackedEvent, context: RequestContext) -> dict[str, Any]:
    user_data: dict[str, Any] = {
        "client_ip_address": event.ip_address,
        "client_user_agent": event.user_agent,
    }

    fbp = read_browser_id(context, "_fbp", FBP_COOKIE_PATTERN)
    if fbp:
        user_data["fbp"] = fbp
    fbc = read_browser_id(context, "_fbc", FBC_COOKIE_PATTERN)
    if fbc:
        user_data["fbc"] = fbc

    # Only hashed PII leaves the process
    hashed_email = hash_pii(event.email)
    if hashed_email:
        user_data["em"] = hashed_email
    hashed_phone = hash_pii(event.phone)
    if hashed_phone:
        user_data["ph"] = hashed_phone

    return user_data


class ConversionDispatcher:
    """Builds and delivers one CAPI event per tracked event."""

    def __init__(
        self,
        graph_base_url: str = "https://graph.facebook.com",
        api_version: str = "v21.0",
        timeout: float = 5.0,
        frontend_url: str | None = None,
        secure_urls: bool = False,
        purchase_default_currency: str = "USD",
        add_to_cart_default_currency: str = "USD",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.graph_url = f"{graph_base_url.rstrip('/')}/{api_version}"
        self.timeout = timeout
        self.frontend_url = frontend_url
        self.secure_urls = secure_urls
        self.purchase_default_currency = purchase_default_currency
        self.add_to_cart_default_currency = add_to_cart_default_currency
        self._transport = transport

    def events_url(self, pixel_id: str) -> str:
        return f"{self.graph_url}/{pixel_id}/events"

    def build_payload(self, event: TrackedEvent, context: RequestContext) -> dict[str, Any]:
        """Build the single CAPI event object (the item inside ``data``)."""
        source_url = event.full_url or resolve_source_url(
            context,
            url=event.url,
            path=event.path,
            frontend_url=self.frontend_url,
            secure=self.secure_urls,
        )
        payload: dict[str, Any] = {
            "event_name": event.event_type,
            "event_time": event.ts // 1000 if event.ts else int(time.time()),
            "event_source_url": source_url,
            "action_source": ACTION_SOURCE,
            "user_data": build_user_data(event, context),
            "custom_data": build_custom_data(
                event,
                purchase_default_currency=self.purchase_default_currency,
                add_to_cart_default_currency=self.add_to_cart_default_currency,
            ),
        }
        # Meta merges browser and server reports carrying the same event_id
        if event.event_id:
            payload["event_id"] = event.event_id
        return payload

    async def dispatch(
        self,
        event: TrackedEvent,
        context: RequestContext,
        credentials: CapiCredentials | None,
    ) -> DeliveryResult:
        if credentials is None or not credentials.is_complete:
            logger.error("[capi] Missing pixel id or access token, skipping %s", event.event_type)
            return DeliveryResult(ok=False, reason="missing_credentials")

        payload = self.build_payload(event, context)
        body = {"data": [payload], "access_token": credentials.access_token}
        params = None
        if credentials.test_event_code:
            params = {"test_event_code": credentials.test_event_code}

        if event.event_type == "Purchase":
            logger.debug("[capi] Purchase payload: %s", payload)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.events_url(credentials.pixel_id),
                    params=params,
                    json=body,
                )
        except httpx.HTTPError as e:
            logger.error("[capi] Network error sending %s: %s", event.event_type, e)
            return DeliveryResult(ok=False, reason="network_error")

        if not resp.is_success:
            logger.error("[capi] API error: %s - %s", resp.status_code, resp.text)
            return DeliveryResult(ok=False, status_code=resp.status_code, reason="http_error")

        try:
            result = resp.json()
            if not isinstance(result, dict):
                raise ValueError("expected a JSON object")
        except ValueError:
            logger.error("[capi] Unreadable response body: %s", resp.text)
            return DeliveryResult(ok=False, status_code=resp.status_code, reason="invalid_response")

        for message in result.get("messages") or []:
            if isinstance(message, dict):
                message = message.get("message", message)
            logger.warning("[capi] Meta warning: %s", message)

        if result.get("events_received") == 0:
            logger.warning("[capi] Meta received 0 events, payload: %s", payload)

        return DeliveryResult(ok=True, status_code=resp.status_code, response=result)
