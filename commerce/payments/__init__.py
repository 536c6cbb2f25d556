"""Payment status tracking module."""
from .constants import (
    PaymentMethod,
    PaymentStatus,
    OrderStatus,
    TERMINAL_PAYMENT_STATES,
    normalize_payment_status,
    order_status_for_payment,
)
from .tracker import PaymentStatusTracker, PaymentTrackingState, PollingHandle

__all__ = [
    "PaymentMethod",
    "PaymentStatus",
    "OrderStatus",
    "TERMINAL_PAYMENT_STATES",
    "normalize_payment_status",
    "order_status_for_payment",
    "PaymentStatusTracker",
    "PaymentTrackingState",
    "PollingHandle",
]
