"""Request context: header and cookie access, client IP, device and source URL.

The ingestion core only talks to ``RequestContext``. Framework adapters live
here so the core never inspects a concrete request type.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from starlette.requests import Request

FALLBACK_IP = "0.0.0.0"

# Checked in order, first non-empty wins
CLIENT_IP_HEADERS = (
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
    "true-client-ip",
)

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})
PRIVATE_PREFIXES = ("10.", "192.168.")

# "ipad" matches the mobile pattern first, so iPads classify as mobile.
MOBILE_UA_PATTERN = re.compile(r"android|webos|iphone|ipad|ipod|blackberry|iemobile|opera mini")
TABLET_UA_PATTERN = re.compile(r"tablet|ipad|playbook|silk")


class RequestContext(Protocol):
    def get_header(self, name: str) -> str | None: ...

    def get_cookie(self, name: str) -> str | None: ...

    @property
    def peer_address(self) -> str | None: ...


class StarletteRequestContext:
    """Adapter over a Starlette/FastAPI request (headers are case-insensitive)."""

    def __init__(self, request: Request):
        self._request = request

    def get_header(self, name: str) -> str | None:
        return self._request.headers.get(name) or None

    def get_cookie(self, name: str) -> str | None:
        return self._request.cookies.get(name) or None

    @property
    def peer_address(self) -> str | None:
        return self._request.client.host if self._request.client else None


class HeaderMapContext:
    """Adapter over a plain header mapping with arbitrary key casing.

    Cookies are not pre-parsed; consumers fall back to the raw ``cookie`` header.
    """

    def __init__(
        self,
        headers: Mapping[str, str | Sequence[str]],
        peer_address: str | None = None,
    ):
        self._headers = {key.lower(): value for key, value in headers.items()}
        self._peer_address = peer_address

    def get_header(self, name: str) -> str | None:
        value = self._headers.get(name.lower())
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        return value or None

    def get_cookie(self, name: str) -> str | None:
        return None

    @property
    def peer_address(self) -> str | None:
        return self._peer_address


@dataclass(frozen=True)
class RequestDetails:
    ip_address: str
    user_agent: str
    device_type: str
    host: str | None


def _first_ip(value: str | None) -> str | None:
    if not value:
        return None
    return value.split(",")[0].strip() or None


def _is_local_peer(ip: str) -> bool:
    return ip in LOOPBACK_ADDRESSES or ip.startswith(PRIVATE_PREFIXES)


def extract_client_ip(context: RequestContext) -> str:
    """Resolve the client IP from proxy headers, then the peer address."""
    for header in CLIENT_IP_HEADERS:
        ip = _first_ip(context.get_header(header))
        if ip:
            return ip

    peer = context.peer_address
    if peer and not _is_local_peer(peer):
        return peer

    return FALLBACK_IP


def detect_device_type(user_agent: str | None) -> str:
    if not user_agent:
        return "unknown"

    ua = user_agent.lower()
    if MOBILE_UA_PATTERN.search(ua):
        return "mobile"
    if TABLET_UA_PATTERN.search(ua):
        return "tablet"
    return "desktop"


def extract_request_details(
    context: RequestContext,
    user_agent: str | None = None,
) -> RequestDetails:
    """Build the request details; an explicit ``user_agent`` beats the header."""
    ua = user_agent or context.get_header("user-agent") or ""
    return RequestDetails(
        ip_address=extract_client_ip(context),
        user_agent=ua,
        device_type=detect_device_type(ua),
        host=context.get_header("host"),
    )


def _is_absolute(url: str | None) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


def _join_path(base: str, path: str | None) -> str:
    if not path:
        return base
    return f"{base}{path if path.startswith('/') else '/' + path}"


def resolve_source_url(
    context: RequestContext,
    url: str | None,
    path: str | None,
    frontend_url: str | None = None,
    secure: bool = False,
) -> str:
    """Best-effort absolute URL of the page that emitted the event.

    Order: absolute body url, Origin header, Referer origin, configured
    frontend URL, then the Host header.
    """
    if _is_absolute(url):
        return url

    origin = context.get_header("origin")
    if origin:
        return _join_path(origin, path)

    referer = context.get_header("referer") or context.get_header("referrer")
    if referer:
        if not path:
            return referer
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return _join_path(f"{parts.scheme}://{parts.netloc}", path)
        return referer

    if frontend_url:
        return _join_path(frontend_url.rstrip("/"), path)

    if _is_absolute(path):
        return path

    host = context.get_header("host")
    if host:
        return _join_path(f"{'https' if secure else 'http'}://{host}", path)

    return path or ""
