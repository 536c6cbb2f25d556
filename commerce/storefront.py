"""
Storefront wiring.

One `Storefront` per user session holds the shared API client, the remote
service clients, the Cart Store and the payment tracker. Components are
passed in explicitly; there are no module-level singletons.

    async with Storefront.from_settings(get_settings(), session_key=user_id) as shop:
        await shop.cart.add_item("sku-1", unit_price="20.00")
        checkout = shop.new_checkout(on_order_confirmed=show_confirmation)
"""
from typing import Optional

from commerce.cart.service import CartStore
from commerce.cart.storage import CartStorage, MemoryCartStorage, RedisCartStorage
from commerce.checkout.orchestrator import CheckoutOrchestrator, OrderConfirmedCallback
from commerce.config import Settings
from commerce.logging import get_logger, sanitize_id_for_logging
from commerce.orders.status_service import OrderStatusService
from commerce.payments.tracker import PaymentStatusTracker, PollingHandle
from commerce.services.cart_service import CartServiceClient
from commerce.services.http import ApiClient
from commerce.services.order_service import OrderServiceClient
from commerce.services.payment_service import PaymentServiceClient

logger = get_logger(__name__)


def build_storage(settings: Settings) -> CartStorage:
    """Redis-backed storage when Upstash is configured, in-memory otherwise."""
    if settings.is_redis_configured():
        return RedisCartStorage.from_settings(settings)
    logger.info("Upstash Redis not configured, cart persistence is in-memory only")
    return MemoryCartStorage()


class Storefront:
    """Container for one session's commerce components."""

    def __init__(
        self,
        settings: Settings,
        api: ApiClient,
        storage: Optional[CartStorage] = None,
        session_key: str = "default",
        user_id: Optional[str] = None,
    ):
        self.settings = settings
        self.api = api
        self.user_id = user_id

        self.cart_service = CartServiceClient(api)
        self.order_service = OrderServiceClient(api, currency=settings.currency)
        self.payment_service = PaymentServiceClient(api)

        self.cart = CartStore(self.cart_service, storage=storage, session_key=session_key)
        self.order_status = OrderStatusService(self.order_service)
        self.payments = PaymentStatusTracker(
            self.payment_service,
            order_status_service=self.order_status,
            interval=settings.poll_interval,
        )
        self._handles: list[PollingHandle] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_key: str = "default",
        user_id: Optional[str] = None,
    ) -> "Storefront":
        return cls(
            settings,
            ApiClient.from_settings(settings),
            storage=build_storage(settings),
            session_key=session_key,
            user_id=user_id,
        )

    def new_checkout(self, on_order_confirmed: Optional[OrderConfirmedCallback] = None) -> CheckoutOrchestrator:
        """Start a checkout session over the current cart. Raises if the cart is empty."""
        CheckoutOrchestrator.ensure_can_start(self.cart)
        return CheckoutOrchestrator(
            self.cart,
            self.order_service,
            on_order_confirmed=on_order_confirmed,
            confirmation_delay=self.settings.confirmation_delay,
            order_status_service=self.order_status,
            user_id=self.user_id,
        )

    def track_payment(self, payment_id: str) -> PollingHandle:
        """Start polling a payment; the handle is stopped on `aclose()`."""
        handle = self.payments.start(payment_id)
        self._handles = [h for h in self._handles if not h.stopped and h.is_polling]
        self._handles.append(handle)
        return handle

    async def start(self) -> "Storefront":
        await self.cart.load()
        logger.info(f"Storefront session {sanitize_id_for_logging(self.cart.session_key)} started")
        return self

    async def aclose(self) -> None:
        for handle in self._handles:
            handle.stop()
        for handle in self._handles:
            await handle.wait()
        self._handles.clear()
        await self.cart.close()
        await self.api.aclose()

    async def __aenter__(self) -> "Storefront":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
