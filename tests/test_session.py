"""
Tests for guest session identity and session storage
"""

import re

import pytest

from cartsync.db import RedisKeys
from cartsync.session import (
    MemorySessionStorage,
    RedisSessionStorage,
    SessionContext,
    generate_guest_session_id,
    is_guest_session_id,
)

GUEST_ID_PATTERN = re.compile(r"^guest_\d{13}_[0-9a-z]{9}$")


class _FakeRedis:
    """Async stand-in for upstash_redis.asyncio.Redis."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def getdel(self, key):
        self.expiry.pop(key, None)
        return self.data.pop(key, None)


class TestGuestSessionId:
    """Tests for guest id format."""

    def test_format(self):
        session_id = generate_guest_session_id()
        assert GUEST_ID_PATTERN.match(session_id)

    def test_ids_are_unique(self):
        ids = {generate_guest_session_id() for _ in range(50)}
        assert len(ids) == 50

    def test_prefix_check(self):
        assert is_guest_session_id("guest_1_abc")
        assert not is_guest_session_id("user_1_abc")
        assert not is_guest_session_id(None)


class TestSessionContext:
    """Tests for SessionContext over memory storage."""

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, session):
        first = await session.get_or_create_guest_session_id()
        second = await session.get_or_create_guest_session_id()

        assert first == second
        assert await session.has_guest_session()

    @pytest.mark.asyncio
    async def test_non_guest_token_is_replaced(self):
        storage = MemorySessionStorage({RedisKeys.GUEST_SESSION_ID: "legacy-token"})
        session = SessionContext(storage)

        assert await session.get_guest_session_id() is None
        session_id = await session.get_or_create_guest_session_id()
        assert session_id.startswith("guest_")
        assert storage.snapshot()[RedisKeys.GUEST_SESSION_ID] == session_id

    @pytest.mark.asyncio
    async def test_clear_guest_session(self, session):
        await session.get_or_create_guest_session_id()
        await session.clear_guest_session()

        assert await session.get_guest_session_id() is None
        # Clearing again is a no-op
        await session.clear_guest_session()

    @pytest.mark.asyncio
    async def test_clear_expected_id_keeps_replacement(self, session):
        old_id = await session.get_or_create_guest_session_id()
        new_id = await session.reset_guest_identity()

        assert await session.clear_guest_session(expected=old_id) is False
        assert await session.get_guest_session_id() == new_id

        assert await session.clear_guest_session(expected=new_id) is True
        assert await session.get_guest_session_id() is None

    @pytest.mark.asyncio
    async def test_reset_guest_identity_replaces_id(self, session):
        before = await session.get_or_create_guest_session_id()
        after = await session.reset_guest_identity()

        assert after != before
        assert await session.get_guest_session_id() == after

    @pytest.mark.asyncio
    async def test_reset_guest_identity_without_previous(self, session):
        session_id = await session.reset_guest_identity()
        assert await session.get_guest_session_id() == session_id

    @pytest.mark.asyncio
    async def test_logout_flag_is_taken_once(self, session):
        await session.mark_logged_out()

        assert await session.is_logged_out_flag_set()
        assert await session.take_logout_flag() is True
        assert await session.take_logout_flag() is False
        assert not await session.is_logged_out_flag_set()

    @pytest.mark.asyncio
    async def test_hard_reset(self, session, session_storage):
        old_id = await session.get_or_create_guest_session_id()
        await session.mark_logged_out()

        new_id = await session.hard_reset()

        assert new_id != old_id
        assert RedisKeys.JUST_LOGGED_OUT not in session_storage.snapshot()


class TestRedisSessionStorage:
    """Tests for the Upstash-backed storage."""

    @pytest.mark.asyncio
    async def test_keys_are_scoped(self):
        redis = _FakeRedis()
        storage = RedisSessionStorage("tab-1", redis=redis, ttl=600)

        await storage.set(RedisKeys.GUEST_SESSION_ID, "guest_1_abc")

        key = "session:tab-1:guestSessionId"
        assert redis.data[key] == "guest_1_abc"
        assert redis.expiry[key] == 600
        assert await storage.get(RedisKeys.GUEST_SESSION_ID) == "guest_1_abc"

    @pytest.mark.asyncio
    async def test_scopes_do_not_share_values(self):
        redis = _FakeRedis()
        tab_one = SessionContext(RedisSessionStorage("tab-1", redis=redis))
        tab_two = SessionContext(RedisSessionStorage("tab-2", redis=redis))

        first = await tab_one.get_or_create_guest_session_id()
        second = await tab_two.get_or_create_guest_session_id()

        assert first != second

    @pytest.mark.asyncio
    async def test_take_uses_getdel(self):
        redis = _FakeRedis()
        session = SessionContext(RedisSessionStorage("tab-1", redis=redis))

        await session.mark_logged_out()
        assert await session.take_logout_flag() is True
        assert "session:tab-1:justLoggedOut" not in redis.data
        assert await session.take_logout_flag() is False

    def test_scope_required(self):
        with pytest.raises(ValueError):
            RedisSessionStorage("", redis=_FakeRedis())

    def test_missing_credentials(self, monkeypatch):
        from cartsync import config, db

        monkeypatch.setattr(config, "UPSTASH_REDIS_REST_URL", "")
        monkeypatch.setattr(config, "UPSTASH_REDIS_REST_TOKEN", "")
        monkeypatch.setattr(db, "_redis_client", None)
        storage = RedisSessionStorage("tab-1")

        with pytest.raises(ValueError, match="Redis not available"):
            _ = storage.redis
