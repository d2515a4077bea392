"""Cart state models."""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional

MONEY_PRECISION = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Convert a JSON number/string to a 2-place Decimal; invalid -> 0."""
    if value is None:
        return Decimal("0.00")
    try:
        if isinstance(value, float):
            value = str(value)
        return Decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0.00")


class SyncStatus(str, Enum):
    """Cart synchronization status."""
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class CartItem:
    """Single line of the cart, keyed by product identity."""
    product_id: str
    quantity: int
    price: Decimal = Decimal("0.00")
    subtotal: Optional[Decimal] = None
    product: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.product_id or not isinstance(self.product_id, str):
            raise ValueError("product_id must be a non-empty string")
        if not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("quantity must be a positive integer")
        self.price = to_money(self.price)
        if self.subtotal is None:
            self.subtotal = (self.price * self.quantity).quantize(MONEY_PRECISION)
        else:
            self.subtotal = to_money(self.subtotal)

    def to_merge_entry(self) -> dict:
        """Shape expected by the merge endpoint."""
        return {"productId": self.product_id, "quantity": self.quantity}

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": str(self.price),
            "subtotal": str(self.subtotal),
            "product": dict(self.product),
        }


@dataclass
class CartState:
    """
    In-memory cart for the current actor (guest or user).

    Only ``CartStore`` mutates this; callers get read access through
    ``CartStore.state``.
    """
    items: List[CartItem] = field(default_factory=list)
    total_items: int = 0
    subtotal: Decimal = Decimal("0.00")
    total_price: Decimal = Decimal("0.00")
    sync_status: SyncStatus = SyncStatus.IDLE
    error: Optional[str] = None
    is_loading: bool = False
    pending_merge: Optional[dict] = None

    @property
    def product_ids(self) -> List[str]:
        return [item.product_id for item in self.items]

    @property
    def is_empty(self) -> bool:
        return not self.items

    def replace_items(self, items: List[CartItem], total_items: int, subtotal: Decimal, total: Decimal) -> None:
        self.items = list(items)
        self.total_items = total_items
        self.subtotal = subtotal
        self.total_price = total

    def reset(self) -> None:
        """Empty the cart and return to idle."""
        self.items = []
        self.total_items = 0
        self.subtotal = Decimal("0.00")
        self.total_price = Decimal("0.00")
        self.pending_merge = None
        self.sync_status = SyncStatus.IDLE
        self.error = None

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total_items": self.total_items,
            "subtotal": str(self.subtotal),
            "total_price": str(self.total_price),
            "sync_status": self.sync_status.value,
            "error": self.error,
            "is_loading": self.is_loading,
        }
