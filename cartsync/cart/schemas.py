"""
Cart Service wire models.

Pydantic models for the JSON the Cart Service accepts and returns. Field
aliases carry the service's camelCase names; Python code uses snake_case.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import CartItem, to_money

Number = Union[int, float, str, None]


# ==================== REQUEST MODELS ====================

class GuestCartEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = Field(ge=1)


class MergeCartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    guest_cart_items: List[GuestCartEntry] = Field(default_factory=list, alias="guestCartItems")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class CartItemRequest(BaseModel):
    """Body for add/update."""
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = Field(ge=0)


# ==================== RESPONSE MODELS ====================

class CartItemPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    product: Union[Dict[str, Any], str, None] = None
    quantity: int = Field(ge=1)
    price: Number = None
    subtotal: Number = None

    @model_validator(mode="after")
    def check_product_reference(self) -> "CartItemPayload":
        if not self.product_id:
            raise ValueError("cart line has no product reference")
        return self

    @property
    def product_id(self) -> Optional[str]:
        """The line's product reference; populated product docs carry it as ``_id``."""
        if self.id:
            return str(self.id)
        if isinstance(self.product, dict):
            ref = self.product.get("_id") or self.product.get("id")
            return str(ref) if ref else None
        if isinstance(self.product, str) and self.product:
            return self.product
        return None

    def to_cart_item(self) -> CartItem:
        return CartItem(
            product_id=self.product_id,
            quantity=self.quantity,
            price=to_money(self.price),
            subtotal=to_money(self.subtotal) if self.subtotal is not None else None,
            product=self.product if isinstance(self.product, dict) else {},
        )


class CartPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: List[CartItemPayload] = Field(default_factory=list)
    item_count: Optional[int] = Field(default=None, alias="itemCount")
    subtotal: Number = None
    total: Number = None
    is_empty: Optional[bool] = Field(default=None, alias="isEmpty")

    def cart_items(self) -> List[CartItem]:
        return [item.to_cart_item() for item in self.items]

    @property
    def total_items(self) -> int:
        if self.item_count is not None:
            return self.item_count
        return sum(item.quantity for item in self.items)

    @property
    def subtotal_amount(self) -> Decimal:
        if self.subtotal is None:
            return sum((item.to_cart_item().subtotal for item in self.items), Decimal("0.00"))
        return to_money(self.subtotal)

    @property
    def total_amount(self) -> Decimal:
        if self.total is None:
            return self.subtotal_amount
        return to_money(self.total)


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None


class CsrfTokenResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    csrf_token: Optional[str] = Field(default=None, alias="csrfToken")


def extract_cart(body: Dict[str, Any]) -> CartPayload:
    """
    Pull the cart out of a Cart Service response.

    The service wraps carts as ``{"success": true, "data": {"cart": {...}}}``;
    a bare cart object is accepted too.
    """
    data = body.get("data") if isinstance(body, dict) else None
    cart = data.get("cart") if isinstance(data, dict) else None
    if cart is None:
        cart = body
    return CartPayload.model_validate(cart)


def extract_error(body: Any) -> ErrorBody:
    """Error envelope ``{"success": false, "error": {"code", "message"}}``; tolerant of plain strings."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return ErrorBody.model_validate(error)
        if isinstance(error, str):
            return ErrorBody(message=error)
        if isinstance(body.get("message"), str):
            return ErrorBody(message=body["message"])
    return ErrorBody()
