"""Pytest configuration and fixtures"""
import asyncio
import json
import os
from typing import Dict, List, Tuple

import httpx
import pytest

# Set test environment variables
os.environ.setdefault("CARTSYNC_API_URL", "http://cart.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from cartsync.cart import CartServiceClient, CartStore
from cartsync.session import MemorySessionStorage, SessionContext
from cartsync.sync import AuthState, CartSyncOrchestrator

BASE_URL = "http://cart.test"

PRODUCTS: Dict[str, Tuple[str, float]] = {
    "prod-1": ("Espresso Beans", 12.5),
    "prod-2": ("Pour-over Kettle", 39.0),
    "prod-3": ("Paper Filters", 4.99),
    "prod-4": ("Grinder", 89.9),
}

USER = AuthState(is_authenticated=True, token="user-token")
GUEST = AuthState(is_authenticated=False)


class FakeCartService:
    """
    In-memory stand-in for the storefront Cart Service.

    Guest carts are keyed by X-Session-Id, account carts by bearer token.
    ``failures`` maps (method, path) to a (status, body) pair or an exception;
    ``gates`` holds requests on (method, path) until the event is set.
    """

    def __init__(self):
        self.guest_carts: Dict[str, Dict[str, int]] = {}
        self.user_carts: Dict[str, Dict[str, int]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], object] = {}
        self.gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self._arrivals: Dict[Tuple[str, str], asyncio.Event] = {}
        self.csrf_token = "csrf-1"

    def call_count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def bodies(self, method: str, path: str) -> List[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == path and r.content
        ]

    def _arrival(self, key: Tuple[str, str]) -> asyncio.Event:
        return self._arrivals.setdefault(key, asyncio.Event())

    async def wait_arrived(self, method: str, path: str) -> None:
        await asyncio.wait_for(self._arrival((method, path)).wait(), timeout=2)

    def _token(self, request: httpx.Request):
        auth = request.headers.get("Authorization", "")
        return auth[len("Bearer "):] if auth.startswith("Bearer ") else None

    def _cart_for(self, request: httpx.Request) -> Dict[str, int]:
        token = self._token(request)
        if token:
            return self.user_carts.setdefault(token, {})
        return self.guest_carts.setdefault(request.headers.get("X-Session-Id", ""), {})

    @staticmethod
    def envelope(cart: Dict[str, int]) -> dict:
        items = []
        for product_id, quantity in cart.items():
            name, price = PRODUCTS[product_id]
            items.append({
                "_id": product_id,
                "product": {"_id": product_id, "name": name, "price": price},
                "quantity": quantity,
                "price": price,
                "subtotal": round(price * quantity, 2),
            })
        subtotal = round(sum(item["subtotal"] for item in items), 2)
        return {
            "success": True,
            "data": {
                "cart": {
                    "items": items,
                    "itemCount": sum(cart.values()),
                    "subtotal": subtotal,
                    "total": subtotal,
                    "isEmpty": not items,
                }
            },
        }

    async def handler(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        key = (method, path)
        self.calls.append(key)
        self.requests.append(request)

        self._arrival(key).set()
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()

        failure = self.failures.get(key)
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            status, body = failure
            return httpx.Response(status, json=body)

        if path == "/api/csrf-token":
            return httpx.Response(200, json={"csrfToken": self.csrf_token})

        body = json.loads(request.content) if request.content else {}

        if path == "/api/cart/merge":
            token = self._token(request)
            if not token:
                return httpx.Response(401, json={
                    "success": False,
                    "error": {"code": "AUTHENTICATION_REQUIRED", "message": "User must be authenticated to merge cart"},
                })
            cart = self.user_carts.setdefault(token, {})
            for entry in body.get("guestCartItems", []):
                product_id = entry["productId"]
                if product_id not in PRODUCTS:
                    continue
                cart[product_id] = min(cart.get(product_id, 0) + entry["quantity"], 99)
            self.guest_carts.pop(body.get("sessionId") or "", None)
            return httpx.Response(200, json=self.envelope(cart))

        cart = self._cart_for(request)

        if key == ("GET", "/api/cart"):
            return httpx.Response(200, json=self.envelope(cart))
        if key == ("POST", "/api/cart/add"):
            cart[body["productId"]] = cart.get(body["productId"], 0) + body["quantity"]
            return httpx.Response(200, json=self.envelope(cart))
        if key == ("PUT", "/api/cart/update"):
            if body["quantity"] == 0:
                cart.pop(body["productId"], None)
            else:
                cart[body["productId"]] = body["quantity"]
            return httpx.Response(200, json=self.envelope(cart))
        if method == "DELETE" and path.startswith("/api/cart/remove/"):
            cart.pop(path.rsplit("/", 1)[-1], None)
            return httpx.Response(200, json=self.envelope(cart))
        if key == ("DELETE", "/api/cart/clear"):
            cart.clear()
            return httpx.Response(200, json=self.envelope(cart))

        return httpx.Response(404, json={"success": False, "error": {"code": "NOT_FOUND", "message": "Not found"}})


@pytest.fixture
def cart_service():
    """Fake Cart Service"""
    return FakeCartService()


@pytest.fixture
def cart_client(cart_service):
    """Cart Service client wired to the fake service"""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(cart_service.handler))
    return CartServiceClient(base_url=BASE_URL, http_client=http_client)


@pytest.fixture
def session_storage():
    return MemorySessionStorage()


@pytest.fixture
def session(session_storage):
    return SessionContext(session_storage)


@pytest.fixture
def store(cart_client, session):
    return CartStore(cart_client, session)


@pytest.fixture
def orchestrator(store):
    return CartSyncOrchestrator(store)


async def add_guest_items(store: CartStore, *product_ids: str) -> None:
    """Fill the guest cart through the Cart Service like a visitor would."""
    for product_id in product_ids:
        await store.add_to_cart(product_id, 1)
