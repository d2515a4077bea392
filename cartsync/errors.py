"""
Cart sync errors.

Message constants shared by the store, the client and the orchestrator,
plus the exception types the store and client raise. The orchestrator never
lets these escape; it turns them into ``SyncResult`` values.
"""

from typing import Optional

# Fallback messages when the Cart Service gives none
ERROR_CART_FETCH = "Failed to fetch cart"
ERROR_CART_ADD = "Failed to add item to cart"
ERROR_CART_UPDATE = "Failed to update cart item"
ERROR_CART_REMOVE = "Failed to remove item from cart"
ERROR_CART_CLEAR = "Failed to clear cart"
ERROR_CART_RESET = "Failed to reset cart"
ERROR_CART_MERGE = "Failed to merge cart"

# Sync errors
ERROR_SYNC_FAILED = "Cart synchronization failed"
ERROR_SUPERSEDED = "Superseded by a newer cart operation"
ERROR_INVALID_RESPONSE = "Cart service returned an invalid response"
ERROR_AUTH_REQUIRED = "Authentication required"

# Error codes sent by the Cart Service
CODE_CSRF_MISMATCH = "CSRF_TOKEN_MISMATCH"
CODE_AUTH_REQUIRED = "AUTHENTICATION_REQUIRED"
CODE_MERGE_ERROR = "CART_MERGE_ERROR"


class CartSyncError(Exception):
    """Base class for cart sync failures."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class NetworkFailure(CartSyncError):
    """Request rejected, timed out, or the service answered with a 5xx."""


class CartRequestError(CartSyncError):
    """Cart Service rejected a request (4xx)."""


class MergeConflict(CartRequestError):
    """Cart Service rejected the merge payload, e.g. an invalid product reference."""


class AuthenticationRequired(CartRequestError):
    """Cart Service answered 401 for an authenticated request."""


class SupersededError(CartSyncError):
    """
    A newer cart operation started before this one finished; its result was dropped.

    ``request_succeeded`` is True when the Cart Service did carry out the
    request and only the local update was skipped.
    """

    def __init__(self, message: str = ERROR_SUPERSEDED, request_succeeded: bool = False):
        super().__init__(message)
        self.request_succeeded = request_succeeded
