"""Reporting endpoints under /api/analytics."""

from decimal import Decimal

from httpx import AsyncClient

from pixel_relay.services.event_store import EventLogStore
from pixel_relay.services.geolocation import Geolocation
from pixel_relay.services.tracked_event import TrackedEvent
from pixel_relay.services.visitor_store import VisitorStore

DHAKA = Geolocation(country="Bangladesh", region="Dhaka Division", city="Dhaka")
OSLO = Geolocation(country="Norway", region="Oslo", city="Oslo")


def _event(event_type: str, ip: str = "8.8.8.8", **overrides) -> TrackedEvent:
    values = {
        "event_type": event_type,
        "ip_address": ip,
        "device_type": "desktop",
        "user_agent": "Mozilla/5.0",
        "ts": 1_700_000_000_000,
        "path": "/",
    }
    values.update(overrides)
    return TrackedEvent(**values)


async def _seed_visitors(session_factory) -> None:
    store = VisitorStore(session_factory)
    await store.upsert("8.8.8.8", "desktop", "UA-1", DHAKA)
    await store.upsert("8.8.4.4", "mobile", "UA-2", DHAKA)
    await store.upsert("1.1.1.1", "mobile", "UA-3", OSLO)
    await store.upsert("9.9.9.9", "tablet", "UA-4")


async def test_total_unique_users(client: AsyncClient, session_factory):
    await _seed_visitors(session_factory)

    resp = await client.get("/api/analytics/users/total")
    assert resp.status_code == 200
    assert resp.json() == {"count": 4}


async def test_total_unique_users_empty(client: AsyncClient):
    resp = await client.get("/api/analytics/users/total")
    assert resp.json() == {"count": 0}


async def test_users_by_device(client: AsyncClient, session_factory):
    await _seed_visitors(session_factory)

    resp = await client.get("/api/analytics/users/by-device")
    counts = {row["device_type"]: row["count"] for row in resp.json()["data"]}
    assert counts == {"desktop": 1, "mobile": 2, "tablet": 1}


async def test_users_by_location_skips_unknown_country(client: AsyncClient, session_factory):
    await _seed_visitors(session_factory)

    resp = await client.get("/api/analytics/users/by-location")
    rows = resp.json()["data"]
    assert [(r["country"], r["count"]) for r in rows] == [("Bangladesh", 2), ("Norway", 1)]
    assert rows[0]["city"] == "Dhaka"


async def test_recent_users(client: AsyncClient, session_factory):
    await _seed_visitors(session_factory)

    resp = await client.get("/api/analytics/users/recent", params={"limit": 2})
    rows = resp.json()["data"]
    assert len(rows) == 2
    assert {"ip_address", "device_type", "visit_count", "last_seen"} <= set(rows[0])


async def test_event_counts(client: AsyncClient, session_factory):
    store = EventLogStore(session_factory)
    for event_type in ("PageView", "PageView", "AddToCart", "Purchase"):
        await store.append(_event(event_type))

    resp = await client.get("/api/analytics/events/counts")
    counts = {row["event_type"]: row["count"] for row in resp.json()["data"]}
    assert counts == {"PageView": 2, "AddToCart": 1, "Purchase": 1}


async def test_recent_purchases(client: AsyncClient, session_factory):
    store = EventLogStore(session_factory)
    await store.append(_event("PageView"))
    await store.append(
        _event(
            "Purchase",
            products=[{"id": "a", "price": 5, "quantity": 2}],
            value=Decimal("10.00"),
            currency="BDT",
        )
    )

    resp = await client.get("/api/analytics/events/purchases")
    (row,) = resp.json()["data"]
    assert Decimal(str(row["value"])) == Decimal("10.00")
    assert row["currency"] == "BDT"
    assert row["product_data"] == [{"id": "a", "price": 5, "quantity": 2}]


async def test_recent_add_to_carts_newest_first(client: AsyncClient, session_factory):
    store = EventLogStore(session_factory)
    await store.append(_event("AddToCart", product={"id": 1, "name": "First"}))
    await store.append(_event("AddToCart", product={"id": 2, "name": "Second"}))

    resp = await client.get("/api/analytics/events/add-to-cart")
    names = [row["product_data"]["name"] for row in resp.json()["data"]]
    assert names == ["Second", "First"]


async def test_limit_is_bounded(client: AsyncClient):
    resp = await client.get("/api/analytics/events/purchases", params={"limit": 0})
    assert resp.status_code == 422
    resp = await client.get("/api/analytics/users/recent", params={"limit": 10_000})
    assert resp.status_code == 422
