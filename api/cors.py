"""CORS allow-list for the booking and admin front ends."""

import os

DEFAULT_ALLOWED_ORIGINS = [
    "https://booking-app-six-ruby.vercel.app",
    "https://admin-app-topaz-sigma.vercel.app",
]

ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"


def get_allowed_origins(raw: str | None = None) -> list[str]:
    """
    Parse a comma-separated origin list.

    Reads ALLOWED_ORIGINS when ``raw`` is not given; an empty or missing
    value yields the built-in production origins.
    """
    if raw is None:
        raw = os.getenv("ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or list(DEFAULT_ALLOWED_ORIGINS)


def get_cors_headers(origin: str | None, allowed_origins: list[str]) -> dict[str, str]:
    """
    CORS response headers for a request from ``origin``.

    An allow-listed origin is echoed back; anything else gets the first
    allowed origin, which the browser will then refuse.
    """
    allow_origin = origin if origin in allowed_origins else allowed_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Vary": "Origin",
    }
