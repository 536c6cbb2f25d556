"""
Common error messages and exception types.

Messages are centralized to avoid string duplication; exceptions follow the
taxonomy used across the engine:

- validation errors never reach the network
- transient remote failures (network, timeouts, 5xx)
- business-rule rejections carrying a user-facing message from the remote side
"""
from typing import Any, Optional

# Cart errors
ERROR_CART_UNAVAILABLE = "Cart service unavailable"
ERROR_ITEM_NOT_IN_CART = "Item is not in the cart"
ERROR_INVALID_QUANTITY = "Quantity must be between 1 and 99"
ERROR_INVALID_DISCOUNT = "Invalid discount code"
ERROR_EMPTY_DISCOUNT_CODE = "Discount code is required"

# Checkout errors
ERROR_EMPTY_CART = "Your cart is empty"
ERROR_ORDER_FAILED = "Failed to process your order. Please try again."
ERROR_WRONG_STEP = "Action is not available at this checkout step"

# Payment errors
ERROR_PAYMENT_FAILED = "Payment processing failed"
ERROR_PAYMENT_STATUS_CHECK = "Failed to check payment status"

# Generic errors
ERROR_INVALID_RESPONSE = "Invalid response from server"
ERROR_NETWORK = "Network error, please check your connection"


class CommerceError(Exception):
    """Base class for all engine errors."""


class RemoteServiceError(CommerceError):
    """A remote call (cart, order, payment service) failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        # Message supplied by the remote side, safe to show to the user
        self.user_message = user_message


class TransientRemoteError(RemoteServiceError):
    """Network error, timeout or 5xx. The same request may succeed later."""


class BusinessRuleError(RemoteServiceError):
    """The remote side rejected the request (invalid code, declined card, ...)."""


class PaymentDeclinedError(BusinessRuleError):
    """Payment authorization was refused before the order was persisted."""


class CheckoutStateError(CommerceError):
    """Checkout action attempted from a step that does not allow it."""


class CheckoutValidationError(CommerceError):
    """Address or payment form data failed validation."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in errors.items()))
        self.errors = errors


def user_facing_message(exc: BaseException, default: str) -> str:
    """
    Pick the message to show the user for a failure.

    Remote failures show the remote-supplied message when there is one.
    Local engine errors show their own text. Anything else gets default.
    """
    if isinstance(exc, RemoteServiceError):
        return exc.user_message or default
    if isinstance(exc, CommerceError):
        return str(exc) or default
    return default


def extract_remote_message(payload: Any) -> Optional[str]:
    """Pull a message out of a JSON error body ({"message": ...} or {"detail": ...})."""
    if not isinstance(payload, dict):
        return None
    for key in ("message", "detail", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None
