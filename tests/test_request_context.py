"""Client IP, device type and source URL resolution."""

import pytest

from pixel_relay.services.request_context import (
    HeaderMapContext,
    detect_device_type,
    extract_client_ip,
    extract_request_details,
    resolve_source_url,
)

IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"
IPAD_UA = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15"
DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0"


# --- client IP ---


def test_forwarded_for_wins_over_real_ip():
    ctx = HeaderMapContext({"X-Forwarded-For": "1.2.3.4, 5.6.7.8", "X-Real-IP": "9.9.9.9"})
    assert extract_client_ip(ctx) == "1.2.3.4"


def test_forwarded_for_entry_is_trimmed():
    ctx = HeaderMapContext({"x-forwarded-for": "  8.8.4.4  ,10.0.0.1"})
    assert extract_client_ip(ctx) == "8.8.4.4"


@pytest.mark.parametrize(
    "header",
    ["X-Real-IP", "CF-Connecting-IP", "True-Client-IP"],
)
def test_fallback_headers(header):
    ctx = HeaderMapContext({header: "203.0.113.7"})
    assert extract_client_ip(ctx) == "203.0.113.7"


def test_header_order_real_ip_before_cloudflare():
    ctx = HeaderMapContext({"cf-connecting-ip": "203.0.113.1", "x-real-ip": "203.0.113.2"})
    assert extract_client_ip(ctx) == "203.0.113.2"


def test_list_valued_header_uses_first_element():
    ctx = HeaderMapContext({"X-Forwarded-For": ["198.51.100.4", "198.51.100.5"]})
    assert extract_client_ip(ctx) == "198.51.100.4"


def test_public_peer_address_used_without_headers():
    ctx = HeaderMapContext({}, peer_address="198.51.100.20")
    assert extract_client_ip(ctx) == "198.51.100.20"


@pytest.mark.parametrize("peer", ["127.0.0.1", "::1", "10.1.2.3", "192.168.0.15"])
def test_local_peer_address_rejected(peer):
    ctx = HeaderMapContext({}, peer_address=peer)
    assert extract_client_ip(ctx) == "0.0.0.0"


def test_no_source_falls_back_to_zero_address():
    assert extract_client_ip(HeaderMapContext({})) == "0.0.0.0"


# --- device type ---


@pytest.mark.parametrize(
    "ua, expected",
    [
        (IPHONE_UA, "mobile"),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8)", "mobile"),
        # iPad matches the mobile pattern first
        (IPAD_UA, "mobile"),
        ("Mozilla/5.0 (PlayBook; U; RIM Tablet OS 2.1.0)", "tablet"),
        ("Mozilla/5.0 (Linux; U; Silk/44.1.54)", "tablet"),
        (DESKTOP_UA, "desktop"),
        ("", "unknown"),
        (None, "unknown"),
    ],
)
def test_detect_device_type(ua, expected):
    assert detect_device_type(ua) == expected


def test_details_prefer_explicit_user_agent():
    ctx = HeaderMapContext({"User-Agent": DESKTOP_UA, "Host": "shop.example.com"})
    details = extract_request_details(ctx, user_agent=IPHONE_UA)
    assert details.user_agent == IPHONE_UA
    assert details.device_type == "mobile"
    assert details.host == "shop.example.com"


def test_details_without_user_agent():
    details = extract_request_details(HeaderMapContext({}))
    assert details.user_agent == ""
    assert details.device_type == "unknown"
    assert details.ip_address == "0.0.0.0"


# --- source URL ---


def test_absolute_body_url_wins():
    ctx = HeaderMapContext({"Origin": "https://shop.example.com"})
    url = resolve_source_url(ctx, url="https://other.example.com/p/1", path="/p/2")
    assert url == "https://other.example.com/p/1"


def test_origin_plus_path():
    ctx = HeaderMapContext({"Origin": "https://shop.example.com"})
    assert resolve_source_url(ctx, url=None, path="/product/mug") == (
        "https://shop.example.com/product/mug"
    )


def test_origin_path_without_leading_slash():
    ctx = HeaderMapContext({"Origin": "https://shop.example.com"})
    assert resolve_source_url(ctx, url=None, path="cart") == "https://shop.example.com/cart"


def test_referer_origin_plus_path():
    ctx = HeaderMapContext({"Referer": "https://shop.example.com/home?x=1"})
    assert resolve_source_url(ctx, url=None, path="/checkout") == (
        "https://shop.example.com/checkout"
    )


def test_referer_alone_without_path():
    ctx = HeaderMapContext({"Referer": "https://shop.example.com/home"})
    assert resolve_source_url(ctx, url=None, path=None) == "https://shop.example.com/home"


def test_frontend_url_when_no_browser_headers():
    ctx = HeaderMapContext({"Host": "api.example.com"})
    url = resolve_source_url(
        ctx, url=None, path="/product/mug", frontend_url="https://shop.example.com/"
    )
    assert url == "https://shop.example.com/product/mug"


def test_host_header_last_resort():
    ctx = HeaderMapContext({"Host": "shop.example.com"})
    assert resolve_source_url(ctx, url=None, path="/a") == "http://shop.example.com/a"
    assert resolve_source_url(ctx, url=None, path="/a", secure=True) == (
        "https://shop.example.com/a"
    )


def test_relative_body_url_is_ignored():
    ctx = HeaderMapContext({"Origin": "https://shop.example.com"})
    assert resolve_source_url(ctx, url="/relative", path="/p") == "https://shop.example.com/p"
