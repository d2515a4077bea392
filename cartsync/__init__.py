"""cartsync: guest/account cart identity and merge coordination."""
from .cart import CartItem, CartServiceClient, CartState, CartStore, MergeCartRequest, SyncStatus
from .feedback import get_cart_sync_status_message
from .session import MemorySessionStorage, RedisSessionStorage, SessionContext
from .sync import AuthCartSync, AuthState, CartSyncOrchestrator, SyncResult

__version__ = "0.1.0"

__all__ = [
    "AuthCartSync",
    "AuthState",
    "CartItem",
    "CartServiceClient",
    "CartState",
    "CartStore",
    "CartSyncOrchestrator",
    "MemorySessionStorage",
    "MergeCartRequest",
    "RedisSessionStorage",
    "SessionContext",
    "SyncResult",
    "SyncStatus",
    "get_cart_sync_status_message",
]
