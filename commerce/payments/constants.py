"""Payment constants, enums, and aliases."""
from enum import Enum
from typing import Set


class PaymentMethod(str, Enum):
    """Payment methods offered at checkout."""
    CREDIT_CARD = "credit-card"
    PAYPAL = "paypal"
    APPLE_PAY = "apple-pay"
    GOOGLE_PAY = "google-pay"


class PaymentStatus(str, Enum):
    """
    Payment lifecycle as reported by the verification endpoint.

    Flow:
        pending -> succeeded
                -> requires_payment_method
                -> canceled

    - unknown: status could not be read (poll failed or unrecognised value),
      not terminal
    """
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    CANCELED = "canceled"
    UNKNOWN = "unknown"


class OrderStatus(str, Enum):
    """
    Order status lifecycle.

    Flow:
        pending -> paid -> processing -> shipped -> delivered
                -> payment_failed -> paid (retried payment)
                -> cancelled
        paid -> refunded
    """
    PENDING = "pending"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Payment statuses after which no further changes occur
TERMINAL_PAYMENT_STATES: Set[str] = {
    PaymentStatus.SUCCEEDED.value,
    PaymentStatus.REQUIRES_PAYMENT_METHOD.value,
    PaymentStatus.CANCELED.value,
}

# Remote spellings -> canonical payment status
PAYMENT_STATUS_ALIASES: dict[str, str] = {
    "cancelled": PaymentStatus.CANCELED.value,
    "success": PaymentStatus.SUCCEEDED.value,
    "paid": PaymentStatus.SUCCEEDED.value,
    "processing": PaymentStatus.PENDING.value,
    "requires_action": PaymentStatus.PENDING.value,
}


def normalize_payment_status(status: str | None) -> PaymentStatus:
    """
    Normalize a remote payment status to a PaymentStatus.

    Example:
        normalize_payment_status("Succeeded") -> PaymentStatus.SUCCEEDED
        normalize_payment_status("cancelled") -> PaymentStatus.CANCELED
        normalize_payment_status("weird") -> PaymentStatus.UNKNOWN
    """
    if not status:
        return PaymentStatus.UNKNOWN

    normalized = str(status).lower().strip()
    normalized = PAYMENT_STATUS_ALIASES.get(normalized, normalized)
    try:
        return PaymentStatus(normalized)
    except ValueError:
        return PaymentStatus.UNKNOWN


def order_status_for_payment(status: PaymentStatus) -> OrderStatus:
    """Order status to report once a payment reaches a terminal state."""
    if status == PaymentStatus.SUCCEEDED:
        return OrderStatus.PAID
    return OrderStatus.PAYMENT_FAILED
