"""
Cart Sync Orchestrator

Reconciles the guest cart with the account cart whenever authentication
changes (login, logout, refresh while logged in).

Decision on a login transition:
- guest items + guest session + no logout flag -> merge (no follow-up fetch)
- anything else                                 -> fetch the account cart
Any failure gets exactly one fallback fetch; the outcome is always a
``SyncResult``, never an exception.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from cartsync.cart.models import SyncStatus
from cartsync.cart.service import CartStore
from cartsync.errors import ERROR_SUPERSEDED, ERROR_SYNC_FAILED, CartSyncError, SupersededError
from cartsync.feedback import MESSAGE_AUTH_SYNC_ISSUES, MESSAGE_AUTH_SYNC_OK, get_cart_sync_status_message
from cartsync.logging import get_logger, mask_session_id
from cartsync.session import SessionContext

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthState:
    """Authentication snapshot handed over by the auth subsystem."""
    is_authenticated: bool = False
    token: Optional[str] = None


@dataclass
class SyncResult:
    """Outcome of a sync; ``superseded`` means a newer operation owns the cart now."""
    success: bool
    error: Optional[str] = None
    superseded: bool = False
    merged: bool = False

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.superseded:
            data["superseded"] = True
        if self.merged:
            data["merged"] = True
        return data


class CartSyncOrchestrator:
    """Runs fetch/merge for the current actor as authentication changes."""

    def __init__(self, store: CartStore, session: Optional[SessionContext] = None):
        self.store = store
        self.session = session if session is not None else store.session
        self._last_authenticated: Optional[bool] = None
        self._login_sync: Optional[asyncio.Future] = None
        self._in_flight = 0

    @property
    def sync_status(self) -> SyncStatus:
        return self.store.state.sync_status

    @property
    def status_message(self) -> Optional[str]:
        state = self.store.state
        return get_cart_sync_status_message(state.sync_status, state.error)

    # ==================== ENTRY POINTS ====================

    async def sync_cart(self, auth: AuthState, auth_changed: bool = False) -> SyncResult:
        """Bring the local cart in line with the server after an auth event."""
        if not auth.is_authenticated:
            return SyncResult(success=True)

        if auth.token is not None:
            self.store.client.set_auth_token(auth.token)

        if auth_changed:
            if self._login_sync is not None and not self._login_sync.done():
                logger.info("Login sync already in flight, joining it")
            else:
                self._login_sync = asyncio.ensure_future(self._sync_after_login())
            return await asyncio.shield(self._login_sync)

        await self._wait_for_login_sync()
        return await self._run("fetch", self.store.fetch_cart)

    async def trigger_sync(self, auth: AuthState) -> SyncResult:
        """Manual retry: re-fetch the account cart, never re-merge."""
        if not auth.is_authenticated:
            return SyncResult(success=True)
        self.store.set_sync_status(SyncStatus.SYNCING)
        return await self.sync_cart(auth, auth_changed=False)

    async def on_auth_change(self, auth: AuthState) -> SyncResult:
        """
        Auth subsystem subscription.

        The first observation counts as "unchanged" (a page refresh while
        already logged in); later flips count as login or logout.
        """
        previous = self._last_authenticated
        self._last_authenticated = auth.is_authenticated

        if auth.is_authenticated:
            return await self.sync_cart(auth, auth_changed=previous is False)
        if previous:
            await self.handle_logout()
        return SyncResult(success=True)

    async def handle_logout(self) -> str:
        """
        Reset cart state for logout.

        Empties the local cart, swaps in a fresh guest identity, then sets
        the logout flag. Everything is done before this returns, so the next
        sync always sees the flag.

        Returns:
            The new guest session id
        """
        self._login_sync = None
        self.store.clear_after_merge()
        self.store.client.set_auth_token(None)
        session_id = await self.session.reset_guest_identity()
        await self.session.mark_logged_out()
        self._last_authenticated = False
        logger.info(f"Cart state reset for logout, new session: {mask_session_id(session_id)}")
        return session_id

    # ==================== INTERNALS ====================

    async def _wait_for_login_sync(self) -> None:
        """Let an in-flight login sync (and its merge) settle before fetching."""
        pending = self._login_sync
        if pending is not None and not pending.done():
            logger.debug("Waiting for login sync before fetching")
            await asyncio.shield(pending)

    def _begin(self) -> None:
        # A finished sync is acknowledged back to idle before the next one starts
        if self.store.state.sync_status in (SyncStatus.SYNCED, SyncStatus.ERROR):
            self.store.set_sync_status(SyncStatus.IDLE)
        self.store.set_sync_status(SyncStatus.SYNCING)

    async def _sync_after_login(self) -> SyncResult:
        self._begin()

        try:
            just_logged_out = await self.session.take_logout_flag()
            guest_session_id = await self.session.get_guest_session_id()
        except Exception as e:
            return await self._fail("session lookup", e)
        items = self.store.state.items

        if items and guest_session_id and not just_logged_out:
            request = await self.store.build_merge_request(guest_session_id)
            logger.info(
                f"Merging guest cart with {len(items)} items "
                f"(session {mask_session_id(guest_session_id)})"
            )

            async def _merge():
                try:
                    await self.store.merge_guest_cart(request)
                except SupersededError as e:
                    # Merged on the server even though the local result was dropped
                    if e.request_succeeded:
                        await self.session.clear_guest_session(expected=guest_session_id)
                    raise
                await self.session.clear_guest_session(expected=guest_session_id)

            return await self._run("merge", _merge, merged=True)

        if just_logged_out:
            logger.info("Fresh login after logout, fetching user cart without merge")
        elif items and not guest_session_id:
            logger.info("Guest items present but no guest session, fetching user cart without merge")
        else:
            logger.info("Fetching user cart without merge")
        return await self._run("fetch", self.store.fetch_cart)

    async def _run(self, action: str, operation: Callable[[], Awaitable], merged: bool = False) -> SyncResult:
        if action == "fetch":
            self._begin()
        self._in_flight += 1
        try:
            await operation()
        except Exception as e:
            outcome = e
        else:
            outcome = None
        finally:
            self._in_flight -= 1

        if isinstance(outcome, SupersededError):
            return self._superseded(action)
        if outcome is not None:
            return await self._fail(action, outcome)

        self.store.set_sync_status(SyncStatus.SYNCED)
        return SyncResult(success=True, merged=merged)

    async def _fail(self, action: str, error: Exception) -> SyncResult:
        message = error.message if isinstance(error, CartSyncError) else (str(error) or ERROR_SYNC_FAILED)
        logger.error(f"Cart synchronization failed during {action}: {message}")

        try:
            await self.store.fetch_cart()
        except SupersededError:
            return self._superseded("fallback fetch")
        except Exception as fetch_error:
            logger.error(f"Fallback cart fetch failed: {fetch_error}", exc_info=True)

        self.store.set_sync_status(SyncStatus.ERROR, error=message)
        return SyncResult(success=False, error=message)

    def _superseded(self, action: str) -> SyncResult:
        logger.debug(f"Cart {action} superseded by a newer operation")
        # No other sync will finish this one, so it must not stay "syncing"
        if self._in_flight == 0 and self.store.state.sync_status is SyncStatus.SYNCING:
            self.store.set_sync_status(SyncStatus.IDLE)
        return SyncResult(success=False, error=ERROR_SUPERSEDED, superseded=True)


class AuthCartSync:
    """Cart helper for login and register screens."""

    def __init__(self, orchestrator: CartSyncOrchestrator):
        self.orchestrator = orchestrator
        self.sync_message = ""

    @property
    def has_guest_items(self) -> bool:
        return self.orchestrator.store.state.total_items > 0

    async def prepare_for_auth(self) -> Optional[dict]:
        """Merge payload for the current guest cart, or None if it is empty."""
        if not self.has_guest_items:
            return None
        items = self.orchestrator.store.state.items
        return {
            "guestCartItems": [item.to_merge_entry() for item in items],
            "sessionId": await self.orchestrator.session.get_guest_session_id(),
        }

    async def sync_after_auth(self, auth: AuthState) -> SyncResult:
        result = await self.orchestrator.sync_cart(auth, auth_changed=True)
        self.sync_message = MESSAGE_AUTH_SYNC_OK if result.success else MESSAGE_AUTH_SYNC_ISSUES
        return result
