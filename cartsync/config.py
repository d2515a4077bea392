"""
Cartsync configuration.

Everything is read from the environment once at import. Tests override the
module attributes with monkeypatch.
"""

import os

# Cart Service
CARTSYNC_API_URL = os.environ.get("CARTSYNC_API_URL", "http://localhost:5000")
CARTSYNC_API_TIMEOUT = float(os.environ.get("CARTSYNC_API_TIMEOUT", "10"))

# Ephemeral session storage (Upstash uses REST_URL and REST_TOKEN)
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")
CARTSYNC_SESSION_TTL = int(os.environ.get("CARTSYNC_SESSION_TTL", "86400"))

CARTSYNC_ENV = os.environ.get("CARTSYNC_ENV", "development")


def get_api_base_url() -> str:
    """Cart Service base URL without trailing slash; bare hosts get https."""
    url = CARTSYNC_API_URL.strip()
    if not url:
        return "http://localhost:5000"
    if not url.startswith("http"):
        return f"https://{url}".rstrip("/")
    return url.rstrip("/")
