"""
Checkout Orchestrator

Forward-only state machine over a cart snapshot:

    shipping -> payment -> review -> completed

`go_back()` re-enters the previous step keeping what was entered. Only
`place_order()` completes the checkout; a failed attempt leaves the session
at `review` so the same action can be retried.
"""
import asyncio
import inspect
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from commerce.config import DEFAULT_CONFIRMATION_DELAY
from commerce.errors import (
    ERROR_EMPTY_CART,
    ERROR_ORDER_FAILED,
    ERROR_WRONG_STEP,
    CheckoutStateError,
    CommerceError,
    user_facing_message,
)
from commerce.logging import get_logger, sanitize_id_for_logging
from commerce.orders.serializer import build_order_payload
from commerce.payments.constants import OrderStatus
from commerce.pricing import PriceBreakdown, calculate_breakdown
from .models import (
    Address,
    CheckoutSession,
    CheckoutStep,
    PaymentDetails,
    validate_address,
    validate_payment_details,
)

logger = get_logger(__name__)

OrderConfirmedCallback = Callable[[Any], Union[None, Awaitable[None]]]


class CheckoutOrchestrator:
    """Owns one CheckoutSession and drives it through the checkout steps."""

    def __init__(
        self,
        cart_store,
        order_service,
        on_order_confirmed: Optional[OrderConfirmedCallback] = None,
        confirmation_delay: float = DEFAULT_CONFIRMATION_DELAY,
        order_status_service=None,
        user_id: Optional[str] = None,
    ):
        self.cart_store = cart_store
        self.order_service = order_service
        self.on_order_confirmed = on_order_confirmed
        self.confirmation_delay = confirmation_delay
        self.order_status_service = order_status_service
        self.user_id = user_id
        self.session = CheckoutSession()
        self.receipt = None
        self._handoff_task: Optional[asyncio.Task] = None

    @staticmethod
    def ensure_can_start(cart_store) -> None:
        """Entry guard: checkout needs a non-empty cart."""
        if cart_store.is_empty:
            raise CheckoutStateError(ERROR_EMPTY_CART)

    # ==================== Read side ====================

    @property
    def current_step(self) -> CheckoutStep:
        return self.session.current_step

    @property
    def is_processing(self) -> bool:
        return self.session.is_processing

    @property
    def error(self) -> Optional[str]:
        return self.session.error

    @property
    def order_id(self) -> Optional[str]:
        return self.session.order_id

    @property
    def order_complete(self) -> bool:
        return self.session.order_complete

    def breakdown(self) -> PriceBreakdown:
        return self.cart_store.breakdown()

    # ==================== Steps ====================

    def _require_step(self, step: CheckoutStep) -> None:
        if self.session.order_complete or self.session.current_step != step:
            raise CheckoutStateError(f"{ERROR_WRONG_STEP}: expected '{step.value}', at '{self.session.phase}'")

    def submit_shipping(
        self,
        address: Union[Address, dict],
        same_as_billing: bool = False,
        billing_address: Union[Address, dict, None] = None,
    ) -> Address:
        """
        Accept the shipping address and move to payment.

        Raises:
            CheckoutStateError: not at the shipping step
            CheckoutValidationError: address data is invalid (no transition)
        """
        self._require_step(CheckoutStep.SHIPPING)
        shipping = validate_address(address)
        billing = None
        if same_as_billing:
            billing = shipping
        elif billing_address is not None:
            billing = validate_address(billing_address)

        self.session.shipping_address = shipping
        if billing is not None:
            self.session.billing_address = billing
        self.session.error = None
        self.session.current_step = CheckoutStep.PAYMENT
        return shipping

    def submit_payment(self, details: Union[PaymentDetails, dict]) -> PaymentDetails:
        """
        Accept the payment method and move to review. No server round-trip.

        Raises:
            CheckoutStateError: not at the payment step
            CheckoutValidationError: payment data is invalid (no transition)
        """
        self._require_step(CheckoutStep.PAYMENT)
        payment = validate_payment_details(details)
        self.session.payment_details = payment
        self.session.error = None
        self.session.current_step = CheckoutStep.REVIEW
        return payment

    def go_back(self) -> CheckoutStep:
        """Re-enter the previous step; entered data is kept."""
        if self.session.is_processing or self.session.order_complete:
            raise CheckoutStateError(f"{ERROR_WRONG_STEP}: cannot go back from '{self.session.phase}'")
        previous = self.session.current_step.previous()
        if previous is None:
            raise CheckoutStateError(f"{ERROR_WRONG_STEP}: already at the first step")
        self.session.current_step = previous
        return previous

    async def place_order(self):
        """
        Submit the order from the review step.

        Returns the OrderReceipt on success, None on failure (see `error`).
        Each call is a fresh attempt; there is no automatic retry.
        """
        self._require_step(CheckoutStep.REVIEW)
        if self.session.is_processing:
            logger.info("place_order ignored: submission already in progress")
            return None

        operation_id = uuid.uuid4().hex
        self.session.is_processing = True
        self.session.error = None

        try:
            cart = self.cart_store.snapshot()
            if cart.is_empty:
                raise CheckoutStateError(ERROR_EMPTY_CART)

            payload = build_order_payload(
                cart=cart,
                breakdown=calculate_breakdown(cart),
                shipping_address=self.session.shipping_address,
                billing_address=self.session.billing_address,
                payment_details=self.session.payment_details,
                user_id=self.user_id,
            )
            receipt = await self.order_service.create_order(payload, operation_id=operation_id)
            self._complete(receipt)
            return receipt
        except CommerceError as e:
            logger.warning(f"[op {sanitize_id_for_logging(operation_id)}] Failed to place order: {e}")
            self.session.error = user_facing_message(e, ERROR_ORDER_FAILED)
            return None
        except Exception as e:
            logger.exception(f"[op {sanitize_id_for_logging(operation_id)}] Unexpected error placing order")
            self.session.error = user_facing_message(e, ERROR_ORDER_FAILED)
            return None
        finally:
            self.session.is_processing = False

    def _complete(self, receipt) -> None:
        self.receipt = receipt
        self.session.order_id = receipt.id
        self.session.order_complete = True
        self.cart_store.clear()
        if self.order_status_service is not None:
            self.order_status_service.remember(receipt.id, OrderStatus.PENDING.value)
        logger.info(f"Order {sanitize_id_for_logging(receipt.id)} placed")
        self._schedule_handoff(receipt)

    # ==================== Hand-off / reset ====================

    def _schedule_handoff(self, receipt) -> None:
        if self.on_order_confirmed is None:
            return
        self._handoff_task = asyncio.get_running_loop().create_task(self._handoff(receipt))

    async def _handoff(self, receipt) -> None:
        if self.confirmation_delay > 0:
            await asyncio.sleep(self.confirmation_delay)
        try:
            result = self.on_order_confirmed(receipt)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Order confirmation hand-off failed for {sanitize_id_for_logging(receipt.id)}")

    async def wait_for_handoff(self) -> None:
        """Wait for the scheduled confirmation hand-off, if any."""
        if self._handoff_task is not None:
            await asyncio.wait({self._handoff_task})

    def dismiss_error(self) -> None:
        self.session.error = None

    def reset(self) -> None:
        """Discard the session (explicit cancel, or after completion)."""
        if self._handoff_task is not None and not self._handoff_task.done():
            self._handoff_task.cancel()
        self._handoff_task = None
        self.receipt = None
        self.session = CheckoutSession()
