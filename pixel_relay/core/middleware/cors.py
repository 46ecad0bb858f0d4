"""CORS configuration for the tracking endpoints."""

from pixel_relay.core.config import Settings


def get_cors_config(config: Settings) -> dict:
    """Return CORS middleware kwargs for FastAPI.

    Credentials are allowed so the browser sends the _fbp/_fbc cookies with
    each beacon; that rules out the "*" origin.
    """
    return {
        "allow_origins": config.allowed_origins_list,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": [
            "Content-Type",
            "X-Request-Id",
        ],
    }
