"""
Cart & checkout synchronization engine.

Keeps a local cart in step with a remote cart service, drives checkout
through shipping, payment and review, and tracks payment status.
"""
from commerce.cart import Cart, CartItem, CartStore, Discount, DiscountKind
from commerce.checkout import Address, CheckoutOrchestrator, CheckoutStep, PaymentDetails
from commerce.config import Settings, get_settings
from commerce.payments import PaymentStatus, PaymentStatusTracker, PollingHandle
from commerce.pricing import PriceBreakdown, calculate_breakdown
from commerce.storefront import Storefront

__version__ = "1.0.0"

__all__ = [
    "Cart",
    "CartItem",
    "CartStore",
    "Discount",
    "DiscountKind",
    "Address",
    "CheckoutOrchestrator",
    "CheckoutStep",
    "PaymentDetails",
    "Settings",
    "get_settings",
    "PaymentStatus",
    "PaymentStatusTracker",
    "PollingHandle",
    "PriceBreakdown",
    "calculate_breakdown",
    "Storefront",
]
