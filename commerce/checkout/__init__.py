"""Checkout package: form models, session state, and the orchestrator."""
from .models import (
    Address,
    PaymentDetails,
    CheckoutStep,
    CheckoutSession,
    validate_address,
    validate_payment_details,
)
from .orchestrator import CheckoutOrchestrator

__all__ = [
    "Address",
    "PaymentDetails",
    "CheckoutStep",
    "CheckoutSession",
    "validate_address",
    "validate_payment_details",
    "CheckoutOrchestrator",
]
