"""Remote Order Service client."""
from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel

from commerce.errors import (
    ERROR_INVALID_RESPONSE,
    ERROR_PAYMENT_FAILED,
    PaymentDeclinedError,
    RemoteServiceError,
    extract_remote_message,
)
from commerce.logging import get_logger, sanitize_id_for_logging
from .http import ApiClient
from .money import format_money

logger = get_logger(__name__)


class OrderReceipt(BaseModel):
    """What the Order Service hands back for a placed order."""
    id: str
    tracking_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_status: Optional[str] = None


class OrderServiceClient:
    """
    Order endpoints of the storefront API.

    `create_order` authorizes payment first and only persists the order
    when the payment step reports success.
    """

    def __init__(self, api: ApiClient, currency: str = "USD"):
        self.api = api
        self.currency = currency

    async def _process_payment(self, order_payload: dict[str, Any], operation_id: Optional[str]) -> dict:
        totals = order_payload.get("totals") or {}
        payment = await self.api.request(
            "POST", "/payments/process",
            json={
                "amount": totals.get("total"),
                "currency": self.currency,
                "paymentMethod": order_payload.get("paymentDetails"),
            },
            operation_id=operation_id,
        )
        if not isinstance(payment, dict):
            raise RemoteServiceError(ERROR_INVALID_RESPONSE)
        if not payment.get("success"):
            message = extract_remote_message(payment) or ERROR_PAYMENT_FAILED
            raise PaymentDeclinedError(message, user_message=message)
        return payment

    async def create_order(self, order_payload: dict[str, Any], operation_id: Optional[str] = None) -> OrderReceipt:
        """
        Authorize payment, then create the order.

        Raises:
            PaymentDeclinedError: payment step did not succeed
            RemoteServiceError: any other remote failure
        """
        payment = await self._process_payment(order_payload, operation_id)
        payment_id = payment.get("paymentId") or payment.get("payment_id")
        payment_status = payment.get("status")

        order = await self.api.request(
            "POST", "/orders",
            json={**order_payload, "paymentId": payment_id, "paymentStatus": payment_status},
            operation_id=operation_id,
        )
        if not isinstance(order, dict) or not (order.get("id") or order.get("_id")):
            raise RemoteServiceError(ERROR_INVALID_RESPONSE)

        receipt = OrderReceipt(
            id=str(order.get("id") or order.get("_id")),
            tracking_id=order.get("trackingId") or order.get("tracking_id"),
            payment_id=str(payment_id) if payment_id else None,
            payment_status=payment_status,
        )
        logger.info(
            f"Order {sanitize_id_for_logging(receipt.id)} created for "
            f"{format_money(order_payload.get('totals', {}).get('total'), self.currency)} "
            f"(payment {sanitize_id_for_logging(receipt.payment_id)})"
        )
        return receipt

    async def get_order(self, order_id: str) -> dict:
        payload = await self.api.fetch(f"/orders/{quote(order_id, safe='')}")
        if not isinstance(payload, dict):
            raise RemoteServiceError(ERROR_INVALID_RESPONSE)
        return payload

    async def update_order_status(self, order_id: str, status: str) -> dict:
        payload = await self.api.request(
            "PUT", f"/orders/{quote(order_id, safe='')}/status", json={"status": status}
        )
        return payload if isinstance(payload, dict) else {}

    async def cancel_order(self, order_id: str) -> dict:
        payload = await self.api.request("PUT", f"/orders/{quote(order_id, safe='')}/cancel")
        return payload if isinstance(payload, dict) else {}
