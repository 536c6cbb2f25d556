"""Remote Payment Service client (payment verification)."""
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from commerce.errors import ERROR_INVALID_RESPONSE, RemoteServiceError
from commerce.payments.constants import PaymentStatus, normalize_payment_status
from .http import ApiClient


class PaymentVerification(BaseModel):
    """Result of one verification call."""
    status: PaymentStatus
    order_id: Optional[str] = None
    raw_status: Optional[str] = None


class PaymentServiceClient:
    """Payment endpoints of the storefront API."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def verify_payment(self, payment_id: str) -> PaymentVerification:
        """
        Read the current status of a payment.

        Not retried here: the tracker stops on the first failed poll.
        """
        payload = await self.api.request("GET", f"/payments/{quote(payment_id, safe='')}/verify")
        if not isinstance(payload, dict):
            raise RemoteServiceError(ERROR_INVALID_RESPONSE)

        raw_status = payload.get("status")
        order_id = payload.get("orderId") or payload.get("order_id")
        return PaymentVerification(
            status=normalize_payment_status(raw_status),
            order_id=str(order_id) if order_id else None,
            raw_status=str(raw_status) if raw_status is not None else None,
        )
