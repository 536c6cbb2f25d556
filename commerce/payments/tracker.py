"""
Payment Status Tracker

Polls the payment verification endpoint for one payment until it reaches a
terminal state (succeeded, requires_payment_method, canceled), a poll fails,
or the consumer stops the handle.

    tracker = PaymentStatusTracker(payment_service, order_status_service)
    handle = tracker.start(payment_id)
    ...
    await handle.wait()      # or handle.stop()
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

from commerce.config import DEFAULT_POLL_INTERVAL
from commerce.errors import ERROR_PAYMENT_STATUS_CHECK, RemoteServiceError
from commerce.logging import get_logger, sanitize_id_for_logging
from .constants import (
    TERMINAL_PAYMENT_STATES,
    PaymentStatus,
    order_status_for_payment,
)

logger = get_logger(__name__)


@dataclass
class PaymentTrackingState:
    """Live state of one tracked payment."""
    payment_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    is_polling: bool = False
    error: Optional[str] = None
    order_id: Optional[str] = None
    polls: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.value in TERMINAL_PAYMENT_STATES


class PollingHandle:
    """Cancellation handle for one polling loop."""

    def __init__(self, tracker: "PaymentStatusTracker", state: PaymentTrackingState):
        self._tracker = tracker
        self.state = state
        self._task: Optional[asyncio.Task] = None
        self._poll_lock = asyncio.Lock()
        self._stopped = False
        self._reported = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def status(self) -> PaymentStatus:
        return self.state.status

    @property
    def is_polling(self) -> bool:
        return self.state.is_polling

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    def stop(self) -> None:
        """Stop polling and suppress any further state updates."""
        if self._stopped:
            return
        self._stopped = True
        self.state.is_polling = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug(f"Stopped tracking payment {sanitize_id_for_logging(self.state.payment_id)}")

    async def wait(self) -> PaymentTrackingState:
        """Wait until the loop ends (terminal state, poll error or stop)."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.state

    async def check_now(self) -> Optional[PaymentStatus]:
        """Run one poll right away. Returns the status, or None if the poll failed."""
        return await self._tracker._poll_once(self)

    async def __aenter__(self) -> "PollingHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()
        await self.wait()


class PaymentStatusTracker:
    """Starts polling loops; one handle per tracked payment."""

    def __init__(self, payment_service, order_status_service=None, interval: float = DEFAULT_POLL_INTERVAL):
        self.payment_service = payment_service
        self.order_status_service = order_status_service
        self.interval = interval

    def start(self, payment_id: str, initial_status: Optional[PaymentStatus] = None) -> PollingHandle:
        """
        Begin polling for payment_id. The first poll runs immediately.

        Must be called from a running event loop.
        """
        if not payment_id:
            raise ValueError("payment_id is required")

        state = PaymentTrackingState(
            payment_id=payment_id,
            status=initial_status or PaymentStatus.PENDING,
            is_polling=True,
        )
        handle = PollingHandle(self, state)
        handle._task = asyncio.get_running_loop().create_task(self._run(handle))
        logger.info(f"Tracking payment {sanitize_id_for_logging(payment_id)} every {self.interval}s")
        return handle

    async def _run(self, handle: PollingHandle) -> None:
        # Strictly sequential: the next poll starts only after the previous one ends
        while not handle.stopped and handle.state.is_polling:
            await self._poll_once(handle)
            if handle.stopped or not handle.state.is_polling:
                break
            await asyncio.sleep(self.interval)

    async def _poll_once(self, handle: PollingHandle) -> Optional[PaymentStatus]:
        state = handle.state
        async with handle._poll_lock:
            try:
                result = await self.payment_service.verify_payment(state.payment_id)
            except RemoteServiceError as e:
                if not handle.stopped:
                    logger.warning(f"Payment check failed for {sanitize_id_for_logging(state.payment_id)}: {e}")
                    self._fail(state)
                return None
            except Exception:
                if not handle.stopped:
                    logger.exception(f"Unexpected error checking payment {sanitize_id_for_logging(state.payment_id)}")
                    self._fail(state)
                return None

            if handle.stopped:
                return None

            state.polls += 1
            state.status = result.status
            if result.order_id:
                state.order_id = result.order_id

            if state.is_terminal:
                state.is_polling = False
                logger.info(f"Payment {sanitize_id_for_logging(state.payment_id)} reached '{state.status.value}'")
                await self._report_order_status(handle)
            return state.status

    @staticmethod
    def _fail(state: PaymentTrackingState) -> None:
        state.status = PaymentStatus.UNKNOWN
        state.error = ERROR_PAYMENT_STATUS_CHECK
        state.is_polling = False

    async def _report_order_status(self, handle: PollingHandle) -> None:
        state = handle.state
        if handle._reported or not state.order_id or self.order_status_service is None:
            return
        handle._reported = True
        order_status = order_status_for_payment(state.status)
        try:
            # The payment outcome is authoritative; report it whatever status the order had
            updated = await self.order_status_service.update_status(
                state.order_id, order_status.value, check_transition=False
            )
        except RemoteServiceError as e:
            logger.error(f"Failed to report order {sanitize_id_for_logging(state.order_id)} as {order_status.value}: {e}")
            return
        if not updated:
            logger.warning(f"Order {sanitize_id_for_logging(state.order_id)} status not changed to {order_status.value}")
