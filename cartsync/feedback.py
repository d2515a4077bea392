"""User-facing messages for cart sync status."""
from typing import Optional, Union

from cartsync.cart.models import SyncStatus
from cartsync.errors import ERROR_SYNC_FAILED

MESSAGE_SYNCING = "Synchronizing your cart..."
MESSAGE_SYNCED = "Cart synchronized successfully"

# Login/register screens
MESSAGE_AUTH_SYNC_OK = "Cart synchronized successfully!"
MESSAGE_AUTH_SYNC_ISSUES = "Cart sync completed with some issues."


def get_cart_sync_status_message(sync_status: Union[SyncStatus, str], error: Optional[str] = None) -> Optional[str]:
    """Message for a sync status; None when idle."""
    status = SyncStatus(sync_status)
    if status is SyncStatus.SYNCING:
        return MESSAGE_SYNCING
    if status is SyncStatus.SYNCED:
        return MESSAGE_SYNCED
    if status is SyncStatus.ERROR:
        return error or ERROR_SYNC_FAILED
    return None
