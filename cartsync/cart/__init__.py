"""Cart package: models, wire schemas, Cart Service client and store."""
from .client import CartServiceClient
from .models import CartItem, CartState, SyncStatus
from .schemas import CartPayload, GuestCartEntry, MergeCartRequest
from .service import CartStore

__all__ = [
    "CartItem",
    "CartPayload",
    "CartServiceClient",
    "CartState",
    "CartStore",
    "GuestCartEntry",
    "MergeCartRequest",
    "SyncStatus",
]
