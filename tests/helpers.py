"""Test helpers: fake upstream services and isolated settings."""

import json

import httpx

from pixel_relay.core.config import Settings

GEO_SUCCESS = {
    "status": "success",
    "country": "Bangladesh",
    "regionName": "Dhaka Division",
    "region": "C",
    "city": "Dhaka",
    "district": "Gulshan",
    "lat": 23.7925,
    "lon": 90.4078,
}

CAPI_SUCCESS = {"events_received": 1, "messages": [], "fbtrace_id": "AbCdEf123"}


class FakeUpstream:
    """Records outbound requests and answers for ip-api.com and the Graph API."""

    def __init__(
        self,
        geo: dict | None = None,
        capi_status: int = 200,
        capi_body: dict | None = None,
    ):
        self.geo = geo if geo is not None else GEO_SUCCESS
        self.capi_status = capi_status
        self.capi_body = capi_body if capi_body is not None else CAPI_SUCCESS
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "ip-api.com":
            return httpx.Response(200, json=self.geo)
        if request.url.host == "graph.facebook.com":
            return httpx.Response(self.capi_status, json=self.capi_body)
        return httpx.Response(404, json={"error": "unexpected host"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def capi_payloads(self) -> list[dict]:
        """Request bodies sent to the Graph API, decoded."""
        return [json.loads(r.content) for r in self.calls_to("graph.facebook.com")]


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values = {
        "META_PIXEL_ID": "1234567890",
        "META_ACCESS_TOKEN": "test-access-token",
        "META_TEST_EVENT_CODE": None,
        "CREDENTIALS_SOURCE": "static",
        "FRONTEND_URL": None,
        "ENVIRONMENT": "development",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)
