"""
Session context: guest identity and the logout flag.

Both values live in one ``SessionStorage`` scope and are only touched
through this class, so the orchestrator never reads or writes raw keys.
"""

import asyncio
from typing import Optional

from cartsync.db import RedisKeys
from cartsync.logging import get_logger, mask_session_id

from .identity import generate_guest_session_id, is_guest_session_id
from .storage import MemorySessionStorage, SessionStorage

logger = get_logger(__name__)

_FLAG_SET = "true"


class SessionContext:
    """
    Guest session id and ``justLoggedOut`` flag for one session scope.

    Changes to the guest id (create, clear, reset) run one at a time, so a
    clear that is still waiting on storage cannot land after a reset and
    remove the id the reset just wrote.
    """

    def __init__(self, storage: Optional[SessionStorage] = None):
        self.storage = storage if storage is not None else MemorySessionStorage()
        self._identity_lock = asyncio.Lock()

    async def get_guest_session_id(self) -> Optional[str]:
        """Stored guest id, or None if absent or not a ``guest_`` token."""
        value = await self.storage.get(RedisKeys.GUEST_SESSION_ID)
        return value if is_guest_session_id(value) else None

    async def has_guest_session(self) -> bool:
        return await self.get_guest_session_id() is not None

    async def get_or_create_guest_session_id(self) -> str:
        """Return the current guest id, creating and storing one if needed."""
        existing = await self.get_guest_session_id()
        if existing:
            return existing

        async with self._identity_lock:
            return await self._get_or_create()

    async def _get_or_create(self) -> str:
        existing = await self.get_guest_session_id()
        if existing:
            return existing

        session_id = generate_guest_session_id()
        await self.storage.set(RedisKeys.GUEST_SESSION_ID, session_id)
        logger.info(f"Created new guest session: {mask_session_id(session_id)}")
        return session_id

    async def clear_guest_session(self, expected: Optional[str] = None) -> bool:
        """
        Remove the guest id; no-op if absent.

        With ``expected``, only that id is removed: if the scope has moved on
        to another id (a logout reset it), the newer id stays.

        Returns:
            True if an id was removed
        """
        async with self._identity_lock:
            current = await self.storage.get(RedisKeys.GUEST_SESSION_ID)
            if current is None:
                return False
            if expected is not None and current != expected:
                logger.debug(
                    f"Guest session already replaced, keeping {mask_session_id(current)}"
                )
                return False
            await self.storage.delete(RedisKeys.GUEST_SESSION_ID)
        logger.debug(f"Cleared guest session {mask_session_id(current)}")
        return True

    async def reset_guest_identity(self) -> str:
        """
        Replace the guest id with a fresh one.

        The old id is dropped and the new one stored by a single write, so no
        reader can observe the scope without a guest id in between.

        Returns:
            The new guest session id (never equal to the previous one)
        """
        async with self._identity_lock:
            previous = await self.storage.get(RedisKeys.GUEST_SESSION_ID)
            session_id = generate_guest_session_id()
            while session_id == previous:
                session_id = generate_guest_session_id()
            await self.storage.set(RedisKeys.GUEST_SESSION_ID, session_id)
        logger.info(f"Guest identity reset: {mask_session_id(previous)} -> {mask_session_id(session_id)}")
        return session_id

    async def mark_logged_out(self) -> None:
        await self.storage.set(RedisKeys.JUST_LOGGED_OUT, _FLAG_SET)

    async def is_logged_out_flag_set(self) -> bool:
        """Peek at the logout flag without consuming it."""
        return await self.storage.get(RedisKeys.JUST_LOGGED_OUT) == _FLAG_SET

    async def take_logout_flag(self) -> bool:
        """Read and clear the logout flag in one step."""
        return await self.storage.take(RedisKeys.JUST_LOGGED_OUT) == _FLAG_SET

    async def hard_reset(self) -> str:
        """Drop both keys and start a fresh guest identity."""
        async with self._identity_lock:
            await self.storage.delete(RedisKeys.GUEST_SESSION_ID)
            await self.storage.delete(RedisKeys.JUST_LOGGED_OUT)
            return await self._get_or_create()
