"""
Redis Module - Upstash client for ephemeral session storage

Provides the async Upstash Redis singleton used by ``RedisSessionStorage``
to keep guest session ids and the logout flag.
"""

from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from cartsync import config

_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not config.UPSTASH_REDIS_REST_URL or not config.UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(
            url=config.UPSTASH_REDIS_REST_URL,
            token=config.UPSTASH_REDIS_REST_TOKEN,
        )

    return _redis_client


class RedisKeys:
    """Redis key layout for session-scoped cart data."""

    SESSION = "session:"  # session:{scope}:{name}

    # Names inside a session scope
    GUEST_SESSION_ID = "guestSessionId"
    JUST_LOGGED_OUT = "justLoggedOut"

    @staticmethod
    def session_key(scope: str, name: str) -> str:
        return f"{RedisKeys.SESSION}{scope}:{name}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    SESSION = config.CARTSYNC_SESSION_TTL  # 24 hours by default
