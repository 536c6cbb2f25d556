"""
Order Status Management Service

Centralized service for order status transitions on the client side.
The payment tracker reports `paid` / `payment_failed` here once a payment
reaches a terminal state.
"""
from typing import Optional

from commerce.errors import RemoteServiceError
from commerce.logging import get_logger, sanitize_id_for_logging
from commerce.payments.constants import OrderStatus

logger = get_logger(__name__)


# Status transition rules
TRANSITIONS: dict[str, list[str]] = {
    OrderStatus.PENDING.value: [
        OrderStatus.PAID.value,
        OrderStatus.PAYMENT_FAILED.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.PAYMENT_FAILED.value: [
        OrderStatus.PAID.value,
        OrderStatus.CANCELLED.value,
    ],
    OrderStatus.PAID.value: [
        OrderStatus.PROCESSING.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    ],
    OrderStatus.PROCESSING.value: [
        OrderStatus.SHIPPED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    ],
    OrderStatus.SHIPPED.value: [OrderStatus.DELIVERED.value],
    OrderStatus.DELIVERED.value: [OrderStatus.REFUNDED.value],
    OrderStatus.CANCELLED.value: [],  # Final state
    OrderStatus.REFUNDED.value: [],  # Final state
}


class OrderStatusService:
    """Order status changes, validated locally and pushed to the Order Service."""

    def __init__(self, order_service):
        self.order_service = order_service
        self._statuses: dict[str, str] = {}

    def remember(self, order_id: str, status: str = OrderStatus.PENDING.value) -> None:
        """Record a known status (e.g. `pending` right after the order is placed)."""
        self._statuses[order_id] = status.lower()

    async def get_order_status(self, order_id: str) -> Optional[str]:
        """Get current order status (local cache first, then the Order Service)."""
        cached = self._statuses.get(order_id)
        if cached:
            return cached
        try:
            order = await self.order_service.get_order(order_id)
        except RemoteServiceError as e:
            logger.error(f"Failed to get order status for {sanitize_id_for_logging(order_id)}: {e}")
            return None
        status = order.get("status")
        if status:
            self._statuses[order_id] = str(status).lower()
            return self._statuses[order_id]
        return None

    async def can_transition_to(self, order_id: str, target_status: str) -> tuple[bool, Optional[str]]:
        """
        Check if order can transition to target status.

        Returns:
            (can_transition, reason_if_not)
        """
        current_status = await self.get_order_status(order_id)
        if not current_status:
            return False, "Order not found"

        target_status = target_status.lower()
        allowed = TRANSITIONS.get(current_status, [])
        if target_status not in allowed:
            return False, f"Cannot transition from '{current_status}' to '{target_status}'. Allowed: {allowed}"

        return True, None

    async def update_status(
        self,
        order_id: str,
        new_status: str,
        check_transition: bool = True,
    ) -> bool:
        """
        Update order status with validation.

        Args:
            order_id: Order ID
            new_status: Target status
            check_transition: Whether to validate transition rules

        Returns:
            True if updated, False otherwise
        """
        new_status = new_status.lower()
        safe_id = sanitize_id_for_logging(order_id)

        if check_transition:
            can_transition, reason_msg = await self.can_transition_to(order_id, new_status)
            if not can_transition:
                logger.warning(f"Cannot update order {safe_id} status: {reason_msg}")
                return False

        try:
            await self.order_service.update_order_status(order_id, new_status)
        except RemoteServiceError as e:
            logger.error(f"Failed to update order {safe_id} status: {e}")
            return False

        self._statuses[order_id] = new_status
        logger.info(f"Updated order {safe_id} status to '{new_status}'")
        return True
