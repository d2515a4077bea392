"""Ephemeral session storage.

Key/value storage scoped to one visitor session (one browser tab in the
storefront). Values survive navigation within the scope and are never shared
across scopes.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from cartsync.db import RedisKeys, TTL, get_redis
from cartsync.logging import get_logger

logger = get_logger(__name__)


class SessionStorage(ABC):
    """Async key/value store for one session scope."""

    @abstractmethod
    async def get(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, name: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, name: str) -> None:
        ...

    @abstractmethod
    async def take(self, name: str) -> Optional[str]:
        """Read and remove ``name`` in one step; returns the removed value."""
        ...


class MemorySessionStorage(SessionStorage):
    """In-process storage; create one instance per session scope."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, name: str) -> Optional[str]:
        return self._data.get(name)

    async def set(self, name: str, value: str) -> None:
        self._data[name] = value

    async def delete(self, name: str) -> None:
        self._data.pop(name, None)

    async def take(self, name: str) -> Optional[str]:
        # No await between read and delete, so the event loop cannot interleave
        return self._data.pop(name, None)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the stored values (debugging and tests)."""
        return dict(self._data)


class RedisSessionStorage(SessionStorage):
    """
    Session storage in Upstash Redis.

    Keys are ``session:{scope}:{name}`` with a TTL that is refreshed on every
    write, so an idle session expires the way a closed tab drops its storage.
    """

    def __init__(self, scope: str, redis=None, ttl: int = TTL.SESSION):
        if not scope:
            raise ValueError("scope must be a non-empty string")
        self.scope = scope
        self.ttl = ttl
        self._redis = redis  # Lazy initialization

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise ValueError(
                    f"Redis not available: {e}. Check UPSTASH_REDIS_REST_URL and "
                    "UPSTASH_REDIS_REST_TOKEN environment variables."
                )
        return self._redis

    def _key(self, name: str) -> str:
        return RedisKeys.session_key(self.scope, name)

    async def get(self, name: str) -> Optional[str]:
        value = await self.redis.get(self._key(name))
        return value if value else None

    async def set(self, name: str, value: str) -> None:
        await self.redis.set(self._key(name), value, ex=self.ttl)

    async def delete(self, name: str) -> None:
        await self.redis.delete(self._key(name))

    async def take(self, name: str) -> Optional[str]:
        # GETDEL is a single command, so two sessions racing on it get one hit
        value = await self.redis.getdel(self._key(name))
        return value if value else None
