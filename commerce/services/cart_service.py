"""Remote Cart Service client."""
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from commerce.cart.models import Cart
from commerce.errors import ERROR_INVALID_RESPONSE, RemoteServiceError
from .http import ApiClient


class DiscountResult(BaseModel):
    """Result of remote discount code validation."""
    valid: bool
    amount: Optional[Decimal] = None
    kind: Optional[str] = None
    message: Optional[str] = None


def _to_cart(payload) -> Optional[Cart]:
    """Decode a cart body. None when the response carries no cart at all."""
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise RemoteServiceError(ERROR_INVALID_RESPONSE)
    # Some endpoints wrap the cart: {"cart": {...}}
    data = payload.get("cart") if isinstance(payload.get("cart"), dict) else payload
    if "items" not in data:
        return None
    try:
        return Cart.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise RemoteServiceError(f"{ERROR_INVALID_RESPONSE}: {e}") from e


class CartServiceClient:
    """Cart endpoints of the storefront API. Mutations return the server cart when it sends one."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_cart(self) -> Cart:
        return _to_cart(await self.api.fetch("/cart")) or Cart()

    async def add_item(self, product_id: str, quantity: int, operation_id: Optional[str] = None) -> Optional[Cart]:
        payload = await self.api.request(
            "POST", "/cart/add",
            json={"productId": product_id, "quantity": quantity},
            operation_id=operation_id,
        )
        return _to_cart(payload)

    async def update_item(self, product_id: str, quantity: int, operation_id: Optional[str] = None) -> Optional[Cart]:
        payload = await self.api.request(
            "PUT", "/cart/update",
            json={"productId": product_id, "quantity": quantity},
            operation_id=operation_id,
        )
        return _to_cart(payload)

    async def remove_item(self, product_id: str, operation_id: Optional[str] = None) -> Optional[Cart]:
        payload = await self.api.request(
            "DELETE", f"/cart/remove/{quote(product_id, safe='')}",
            operation_id=operation_id,
        )
        return _to_cart(payload)

    async def clear(self, operation_id: Optional[str] = None) -> None:
        await self.api.request("DELETE", "/cart/clear", operation_id=operation_id)

    async def apply_discount(self, code: str, operation_id: Optional[str] = None) -> DiscountResult:
        payload = await self.api.request(
            "POST", "/cart/discount", json={"code": code}, operation_id=operation_id
        )
        if not isinstance(payload, dict):
            raise RemoteServiceError(ERROR_INVALID_RESPONSE)
        try:
            return DiscountResult.model_validate(payload)
        except ValidationError as e:
            raise RemoteServiceError(f"{ERROR_INVALID_RESPONSE}: {e}") from e
