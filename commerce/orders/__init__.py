"""Order processing module."""
from .serializer import (
    build_order_payload,
    build_item_payload,
    build_totals_payload,
)
from .status_service import OrderStatusService, TRANSITIONS

__all__ = [
    "build_order_payload",
    "build_item_payload",
    "build_totals_payload",
    "OrderStatusService",
    "TRANSITIONS",
]
