"""Coarse IP geolocation through ip-api.com.

Resolved at most once per IP: addresses already present in the visitor
store are not looked up again.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

LOOKUP_FIELDS = "status,country,region,regionName,city,district,lat,lon,message"

# "172." is wider than 172.16.0.0/12 and also skips some public addresses.
NON_ROUTABLE_PREFIXES = ("127.", "192.168.", "10.", "172.")


@dataclass(frozen=True)
class Geolocation:
    country: str | None = None
    region: str | None = None
    city: str | None = None
    district: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.country, self.region, self.city, self.district)) and (
            self.latitude is None and self.longitude is None
        )


EMPTY_GEOLOCATION = Geolocation()


class VisitorLookup(Protocol):
    async def exists(self, ip_address: str) -> bool: ...


def is_non_routable(ip: str | None) -> bool:
    return not ip or ip == "0.0.0.0" or ip.startswith(NON_ROUTABLE_PREFIXES)


class GeolocationResolver:
    def __init__(
        self,
        visitors: VisitorLookup,
        base_url: str,
        timeout: float = 3.0,
        user_agent: str = "pixel-relay",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.visitors = visitors
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def resolve(self, ip: str | None) -> Geolocation:
        """Return the location for ``ip``; all-null on skip or any failure."""
        if is_non_routable(ip):
            return EMPTY_GEOLOCATION

        try:
            known = await self.visitors.exists(ip)
        except Exception:
            logger.warning("[geo] Visitor lookup failed for %s, treating as new", ip, exc_info=True)
            known = False

        if known:
            return EMPTY_GEOLOCATION

        try:
            return await self._lookup(ip)
        except Exception:
            logger.exception("[geo] Lookup failed for %s", ip)
            return EMPTY_GEOLOCATION

    async def _lookup(self, ip: str) -> Geolocation:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.get(
                f"{self.base_url}/{ip}",
                params={"fields": LOOKUP_FIELDS},
                headers={"User-Agent": self.user_agent},
            )

        if not resp.is_success:
            logger.warning("[geo] Lookup for %s returned HTTP %s", ip, resp.status_code)
            return EMPTY_GEOLOCATION

        data = resp.json()
        if data.get("status") != "success":
            logger.info("[geo] No location for %s: %s", ip, data.get("message"))
            return EMPTY_GEOLOCATION

        return Geolocation(
            country=data.get("country") or None,
            region=data.get("regionName") or data.get("region") or None,
            city=data.get("city") or None,
            district=data.get("district") or None,
            latitude=data.get("lat"),
            longitude=data.get("lon"),
        )
