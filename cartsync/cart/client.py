"""Cart Service HTTP client (httpx)."""
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from cartsync import config
from cartsync.errors import (
    CODE_CSRF_MISMATCH,
    ERROR_CART_ADD,
    ERROR_CART_CLEAR,
    ERROR_CART_FETCH,
    ERROR_CART_MERGE,
    ERROR_CART_REMOVE,
    ERROR_CART_UPDATE,
    ERROR_INVALID_RESPONSE,
    AuthenticationRequired,
    CartRequestError,
    MergeConflict,
    NetworkFailure,
)
from cartsync.logging import get_logger, sanitize_server_message

from .schemas import (
    CartItemRequest,
    CartPayload,
    CsrfTokenResponse,
    MergeCartRequest,
    extract_cart,
    extract_error,
)

logger = get_logger(__name__)

SESSION_HEADER = "X-Session-Id"
CSRF_HEADER = "x-csrf-token"

_STATE_CHANGING = {"POST", "PUT", "PATCH", "DELETE"}


class CartServiceClient:
    """
    Client for the storefront Cart Service.

    Every call returns the cart the service answered with, parsed into a
    ``CartPayload``. Failures raise:
    - NetworkFailure: transport error, timeout, 5xx, unparseable body
    - MergeConflict: 4xx on the merge endpoint
    - AuthenticationRequired: 401 (the bearer token is dropped)
    - CartRequestError: any other 4xx
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or config.get_api_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else config.CARTSYNC_API_TIMEOUT
        self._http_client = http_client
        self._auth_token: Optional[str] = None
        self._csrf_token: Optional[str] = None

    # ==================== AUTH ====================

    def set_auth_token(self, token: Optional[str]) -> None:
        self._auth_token = token or None

    @property
    def auth_token(self) -> Optional[str]:
        return self._auth_token

    # ==================== TRANSPORT ====================

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    def _headers(self, session_id: Optional[str]) -> dict:
        headers = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        if session_id:
            headers[SESSION_HEADER] = session_id
        return headers

    async def fetch_csrf_token(self) -> Optional[str]:
        """Fetch a fresh CSRF token; None if the service would not give one."""
        client = await self._get_http_client()
        try:
            response = await client.get(f"{self.base_url}/api/csrf-token", headers=self._headers(None))
            response.raise_for_status()
            self._csrf_token = CsrfTokenResponse.model_validate(response.json()).csrf_token
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error(f"Failed to fetch CSRF token: {e}")
            self._csrf_token = None
        return self._csrf_token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        session_id: Optional[str],
        fallback_message: str,
        body: Optional[dict] = None,
        is_merge: bool = False,
        retry_on_csrf: bool = False,
    ) -> CartPayload:
        client = await self._get_http_client()
        headers = self._headers(session_id)

        if method in _STATE_CHANGING:
            if self._csrf_token is None:
                await self.fetch_csrf_token()
            if self._csrf_token:
                headers[CSRF_HEADER] = self._csrf_token

        try:
            response = await client.request(method, f"{self.base_url}{path}", json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"{fallback_message}: request timed out") from e
        except httpx.RequestError as e:
            raise NetworkFailure(f"{fallback_message}: {e}") from e

        try:
            payload: Any = response.json()
        except ValueError:
            payload = None

        failed = not response.is_success or (isinstance(payload, dict) and payload.get("success") is False)
        if not failed:
            if not isinstance(payload, dict):
                raise NetworkFailure(ERROR_INVALID_RESPONSE, status_code=response.status_code)
            try:
                return extract_cart(payload)
            except ValidationError as e:
                logger.warning(f"Invalid cart payload from {path}: {e.error_count()} errors")
                raise NetworkFailure(ERROR_INVALID_RESPONSE, status_code=response.status_code) from e

        error = extract_error(payload)
        message = error.message or fallback_message
        status = response.status_code
        logger.warning(
            f"Cart service {method} {path} failed: {status} "
            f"{error.code or '-'} {sanitize_server_message(message)}"
        )

        if error.code == CODE_CSRF_MISMATCH and retry_on_csrf:
            self._csrf_token = None
            await self.fetch_csrf_token()
            return await self._request(
                method,
                path,
                session_id=session_id,
                fallback_message=fallback_message,
                body=body,
                is_merge=is_merge,
                retry_on_csrf=False,
            )

        if status == 401:
            self._auth_token = None
            raise AuthenticationRequired(message, code=error.code, status_code=status)
        if 400 <= status < 500 or (status < 400 and failed):
            error_cls = MergeConflict if is_merge else CartRequestError
            raise error_cls(message, code=error.code, status_code=status)
        raise NetworkFailure(message, code=error.code, status_code=status)

    # ==================== CART ENDPOINTS ====================

    async def get_cart(self, session_id: Optional[str]) -> CartPayload:
        return await self._request("GET", "/api/cart", session_id=session_id, fallback_message=ERROR_CART_FETCH)

    async def add_item(self, session_id: Optional[str], product_id: str, quantity: int = 1) -> CartPayload:
        request = CartItemRequest(product_id=product_id, quantity=quantity)
        return await self._request(
            "POST",
            "/api/cart/add",
            session_id=session_id,
            fallback_message=ERROR_CART_ADD,
            body=request.model_dump(by_alias=True),
            retry_on_csrf=True,
        )

    async def update_item(self, session_id: Optional[str], product_id: str, quantity: int) -> CartPayload:
        request = CartItemRequest(product_id=product_id, quantity=quantity)
        return await self._request(
            "PUT",
            "/api/cart/update",
            session_id=session_id,
            fallback_message=ERROR_CART_UPDATE,
            body=request.model_dump(by_alias=True),
            retry_on_csrf=True,
        )

    async def remove_item(self, session_id: Optional[str], product_id: str) -> CartPayload:
        if not product_id:
            raise ValueError("product_id must be a non-empty string")
        return await self._request(
            "DELETE",
            f"/api/cart/remove/{product_id}",
            session_id=session_id,
            fallback_message=ERROR_CART_REMOVE,
            retry_on_csrf=True,
        )

    async def clear_cart(self, session_id: Optional[str]) -> CartPayload:
        return await self._request("DELETE", "/api/cart/clear", session_id=session_id, fallback_message=ERROR_CART_CLEAR)

    async def merge_cart(self, request: MergeCartRequest) -> CartPayload:
        return await self._request(
            "POST",
            "/api/cart/merge",
            session_id=request.session_id,
            fallback_message=ERROR_CART_MERGE,
            body=request.model_dump(by_alias=True),
            is_merge=True,
        )

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
