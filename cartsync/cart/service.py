"""Cart store: the in-memory cart for the current actor."""
from typing import Awaitable, Callable, Optional, Union

from cartsync.errors import CartSyncError, SupersededError
from cartsync.logging import get_logger
from cartsync.session import SessionContext

from .client import CartServiceClient
from .models import CartState, SyncStatus
from .schemas import CartPayload, GuestCartEntry, MergeCartRequest

logger = get_logger(__name__)


class CartStore:
    """
    Holds the authoritative local cart and the operations that change it.

    Features:
    - Stale-but-available: a failed request records ``error`` and keeps items
    - Generation counter: a response is applied only if no newer operation
      (request, logout reset) started while it was in flight
    - Guest session id ensured before every request

    Concurrent merges are not deduplicated here; ``CartSyncOrchestrator``
    does that.
    """

    def __init__(self, client: CartServiceClient, session: SessionContext):
        self.client = client
        self.session = session
        self._state = CartState()
        self._generation = 0

    @property
    def state(self) -> CartState:
        """Current cart. Read it, don't write it."""
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _apply(self, payload: CartPayload) -> None:
        self._state.replace_items(
            payload.cart_items(),
            payload.total_items,
            payload.subtotal_amount,
            payload.total_amount,
        )

    async def _call(
        self,
        action: str,
        request: Callable[[str], Awaitable[CartPayload]],
        *,
        pending_status: Optional[SyncStatus] = None,
        success_status: Optional[SyncStatus] = None,
        failure_status: Optional[SyncStatus] = None,
    ) -> CartState:
        """Run one remote operation and apply its result unless superseded."""
        token = self._next_generation()
        self._state.is_loading = True
        self._state.error = None
        if pending_status is not None:
            self._state.sync_status = pending_status

        try:
            session_id = await self.session.get_or_create_guest_session_id()
            payload = await request(session_id)
        except CartSyncError as e:
            if token != self._generation:
                logger.debug(f"Dropping failed {action} result (generation {token} < {self._generation})")
                raise SupersededError() from e
            self._state.is_loading = False
            self._state.error = e.message
            if failure_status is not None:
                self._state.sync_status = failure_status
            raise
        except Exception:
            if token == self._generation:
                self._state.is_loading = False
            raise

        if token != self._generation:
            logger.debug(f"Dropping stale {action} result (generation {token} < {self._generation})")
            raise SupersededError(request_succeeded=True)

        self._state.is_loading = False
        self._apply(payload)
        if success_status is not None:
            self._state.sync_status = success_status
        return self._state

    # ==================== REMOTE OPERATIONS ====================

    async def fetch_cart(self) -> CartState:
        """Load the current actor's cart; on failure keep the items already held."""
        return await self._call("fetch", self.client.get_cart)

    async def merge_guest_cart(self, payload: Union[MergeCartRequest, dict]) -> CartState:
        """Send guest items to the Cart Service for merge and adopt the merged cart."""
        request = payload if isinstance(payload, MergeCartRequest) else MergeCartRequest.model_validate(payload)

        async def _merge(_session_id: str) -> CartPayload:
            # The payload names the guest session being merged, not the current one
            return await self.client.merge_cart(request)

        state = await self._call(
            "merge",
            _merge,
            pending_status=SyncStatus.SYNCING,
            success_status=SyncStatus.SYNCED,
            failure_status=SyncStatus.ERROR,
        )
        state.pending_merge = None
        return state

    async def add_to_cart(self, product_id: str, quantity: int = 1) -> CartState:
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")
        if not isinstance(quantity, int) or quantity < 1:
            raise ValueError("quantity must be a positive integer")
        return await self._call("add", lambda sid: self.client.add_item(sid, product_id, quantity))

    async def update_cart_item(self, product_id: str, quantity: int) -> CartState:
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")
        if not isinstance(quantity, int) or quantity < 0:
            raise ValueError("quantity must be a non-negative integer")
        return await self._call(
            "update",
            lambda sid: self.client.update_item(sid, product_id, quantity),
            success_status=SyncStatus.SYNCED,
            failure_status=SyncStatus.ERROR,
        )

    async def remove_from_cart(self, product_id: str) -> CartState:
        if not product_id or not isinstance(product_id, str):
            raise ValueError("product_id must be a non-empty string")
        return await self._call(
            "remove",
            lambda sid: self.client.remove_item(sid, product_id),
            success_status=SyncStatus.SYNCED,
            failure_status=SyncStatus.ERROR,
        )

    async def clear_cart(self) -> CartState:
        """Empty the cart on the server."""
        return await self._call(
            "clear",
            self.client.clear_cart,
            success_status=SyncStatus.SYNCED,
            failure_status=SyncStatus.ERROR,
        )

    async def hard_reset_cart(self) -> CartState:
        """Drop session keys, start a fresh guest identity, clear server and local cart."""
        await self.session.hard_reset()
        await self._call("reset", self.client.clear_cart, failure_status=SyncStatus.ERROR)
        self.clear_after_merge()
        return self._state

    # ==================== LOCAL OPERATIONS ====================

    def clear_after_merge(self) -> None:
        """Empty the local cart and go idle; results of in-flight requests are dropped."""
        self._next_generation()
        self._state.is_loading = False
        self._state.reset()

    def clear_error(self) -> None:
        self._state.error = None

    def set_sync_status(self, status: Union[SyncStatus, str], error: Optional[str] = None) -> None:
        self._state.sync_status = SyncStatus(status)
        if error is not None:
            self._state.error = error

    async def build_merge_request(self, session_id: Optional[str] = None) -> MergeCartRequest:
        """Merge payload for the items currently held."""
        if session_id is None:
            session_id = await self.session.get_or_create_guest_session_id()
        return MergeCartRequest(
            guest_cart_items=[
                GuestCartEntry(product_id=item.product_id, quantity=item.quantity)
                for item in self._state.items
            ],
            session_id=session_id,
        )

    async def prepare_cart_for_merge(self) -> MergeCartRequest:
        """Snapshot the held items as ``pending_merge`` ahead of a login."""
        request = await self.build_merge_request()
        self._state.pending_merge = request.model_dump(by_alias=True)
        return request
