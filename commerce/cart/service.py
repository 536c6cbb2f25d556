"""
Cart Store: the single source of truth for the local cart.

Every mutation is applied locally first (optimistic), then sent to the
remote Cart Service and reconciled with the server's answer:

- add_item: failure keeps the optimistic change, error is surfaced
- update_quantity: failure rolls back to the previous quantity
- remove_item: failure does not restore the item
- apply_discount: nothing changes locally until the server accepts the code

Operations on the same product id are serialized with a per-product lock;
operations on different products run concurrently.
"""
import asyncio
import copy
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Hashable, List, Optional

from commerce.errors import (
    ERROR_CART_UNAVAILABLE,
    ERROR_EMPTY_DISCOUNT_CODE,
    ERROR_INVALID_DISCOUNT,
    ERROR_INVALID_QUANTITY,
    ERROR_ITEM_NOT_IN_CART,
    RemoteServiceError,
    user_facing_message,
)
from commerce.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from commerce.pricing import PriceBreakdown, calculate_breakdown
from .models import (
    MAX_QUANTITY,
    Cart,
    CartItem,
    Discount,
    DiscountKind,
    clamp_quantity,
    is_valid_quantity,
)
from .storage import CartStorage

logger = get_logger(__name__)

CartListener = Callable[[Cart], Any]


def new_operation_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CartMutationResult:
    """Outcome of a cart operation. `cart` is a snapshot taken after the operation."""
    success: bool
    operation_id: str
    cart: Cart
    error: Optional[str] = None
    exception: Optional[BaseException] = None

    def __bool__(self) -> bool:
        return self.success


class CartStore:
    """
    Owns the local Cart and keeps it in step with the remote Cart Service.

    Construct one per user session; call `load()` at start and `close()` at
    session end. Consumers read through `snapshot()`; only the methods below
    mutate the cart.
    """

    def __init__(self, cart_service, storage: Optional[CartStorage] = None, session_key: str = "default"):
        self._service = cart_service
        self._storage = storage
        self._session_key = session_key
        self._cart = Cart()
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._lock_users: defaultdict[Hashable, int] = defaultdict(int)
        self._persist_lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()
        # Bumped whenever the whole cart is replaced; stale server answers are ignored
        self._generation = 0
        self._listeners: List[CartListener] = []

    # ==================== Lifecycle ====================

    async def load(self) -> Cart:
        """Restore the cart from the keyed store (empty cart if none)."""
        if self._storage is None:
            return self.snapshot()
        try:
            stored = await self._storage.get(self._session_key)
        except Exception as e:
            logger.warning(f"Failed to load cart for session {sanitize_id_for_logging(self._session_key)}: {e}")
            stored = None
        self._generation += 1
        self._cart = stored or Cart()
        self._notify()
        return self.snapshot()

    async def close(self) -> None:
        """Wait for scheduled storage writes to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._listeners.clear()

    # ==================== Read side ====================

    @property
    def session_key(self) -> str:
        return self._session_key

    def snapshot(self) -> Cart:
        """Consistent deep copy of the cart."""
        return copy.deepcopy(self._cart)

    @property
    def items(self) -> List[CartItem]:
        return self.snapshot().items

    @property
    def discount(self) -> Optional[Discount]:
        return copy.deepcopy(self._cart.discount)

    @property
    def item_count(self) -> int:
        return self._cart.item_count

    @property
    def total_quantity(self) -> int:
        return self._cart.total_quantity

    @property
    def is_empty(self) -> bool:
        return self._cart.is_empty

    def get_item(self, product_id: str) -> Optional[CartItem]:
        item = self._cart.find(product_id)
        return copy.deepcopy(item) if item else None

    def breakdown(self) -> PriceBreakdown:
        return calculate_breakdown(self._cart)

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Mutations ====================

    async def add_item(
        self,
        product_id: str,
        quantity: int = 1,
        unit_price: Any = 0,
        name: Optional[str] = None,
        operation_id: Optional[str] = None,
    ) -> CartMutationResult:
        """Add a product, or increment its row. Quantity is capped at 99."""
        op = operation_id or new_operation_id()
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            return self._result(op, error=ERROR_INVALID_QUANTITY)

        async with self._key_lock(("item", product_id)):
            generation = self._generation
            existing = self._cart.find(product_id)
            if existing:
                requested = existing.quantity + quantity
                existing.quantity = clamp_quantity(requested)
                if requested > MAX_QUANTITY:
                    logger.info(
                        f"Quantity for {sanitize_id_for_logging(product_id)} capped at {MAX_QUANTITY} "
                        f"(requested {requested})"
                    )
            else:
                self._cart.items.append(
                    CartItem(product_id=product_id, unit_price=unit_price, quantity=clamp_quantity(quantity), name=name)
                )
            await self._changed()

            try:
                server_cart = await self._service.add_item(product_id, quantity, operation_id=op)
            except RemoteServiceError as e:
                # No rollback for adds; the caller decides whether to refresh
                logger.warning(f"[op {sanitize_id_for_logging(op)}] add_item failed for {sanitize_id_for_logging(product_id)}: {e}")
                return self._result(op, exc=e)

            self._reconcile(product_id, server_cart, generation)
            await self._changed()
            return self._result(op)

    async def update_quantity(
        self,
        product_id: str,
        quantity: int,
        operation_id: Optional[str] = None,
    ) -> CartMutationResult:
        """Set a row's quantity (1..99). Rolls back if the remote update fails."""
        op = operation_id or new_operation_id()
        if not is_valid_quantity(quantity):
            return self._result(op, error=ERROR_INVALID_QUANTITY)

        async with self._key_lock(("item", product_id)):
            generation = self._generation
            item = self._cart.find(product_id)
            if item is None:
                return self._result(op, error=ERROR_ITEM_NOT_IN_CART)

            previous = item.quantity
            item.quantity = quantity
            await self._changed()

            try:
                server_cart = await self._service.update_item(product_id, quantity, operation_id=op)
            except RemoteServiceError as e:
                current = self._cart.find(product_id)
                if current is not None and generation == self._generation:
                    current.quantity = previous
                logger.warning(
                    f"[op {sanitize_id_for_logging(op)}] update_quantity failed for "
                    f"{sanitize_id_for_logging(product_id)}, rolled back to {previous}: {e}"
                )
                await self._changed()
                return self._result(op, exc=e)

            self._reconcile(product_id, server_cart, generation)
            await self._changed()
            return self._result(op)

    async def remove_item(self, product_id: str, operation_id: Optional[str] = None) -> CartMutationResult:
        """Remove a row. A failed remote removal does not bring the row back."""
        op = operation_id or new_operation_id()

        async with self._key_lock(("item", product_id)):
            generation = self._generation
            index = self._cart.index_of(product_id)
            if index >= 0:
                del self._cart.items[index]
                await self._changed()

            try:
                server_cart = await self._service.remove_item(product_id, operation_id=op)
            except RemoteServiceError as e:
                logger.warning(f"[op {sanitize_id_for_logging(op)}] remove_item failed for {sanitize_id_for_logging(product_id)}: {e}")
                return self._result(op, exc=e)

            self._reconcile(product_id, server_cart, generation)
            await self._changed()
            return self._result(op)

    async def apply_discount(self, code: str, operation_id: Optional[str] = None) -> CartMutationResult:
        """Validate a code remotely and attach it to the cart when valid."""
        op = operation_id or new_operation_id()
        code = (code or "").strip()
        if not code:
            return self._result(op, error=ERROR_EMPTY_DISCOUNT_CODE)

        async with self._key_lock(("discount",)):
            try:
                result = await self._service.apply_discount(code, operation_id=op)
            except RemoteServiceError as e:
                logger.warning(f"[op {sanitize_id_for_logging(op)}] apply_discount failed: {e}")
                return self._result(op, exc=e)

            if not result.valid:
                logger.info(f"Discount code {sanitize_string_for_logging(code)} rejected")
                return self._result(op, error=result.message or ERROR_INVALID_DISCOUNT)

            self._cart.discount = Discount(
                code=code,
                value=result.amount or 0,
                kind=DiscountKind.parse(result.kind),
            )
            await self._changed()
            return self._result(op)

    async def remove_discount(self) -> None:
        """Detach the discount locally."""
        async with self._key_lock(("discount",)):
            self._cart.discount = None
            await self._changed()

    def clear(self) -> None:
        """
        Empty the cart synchronously.

        Used by checkout after a confirmed order; the storage write is
        scheduled in the background.
        """
        self._generation += 1
        self._cart = Cart()
        self._notify()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, skipping storage write for clear()")
            return
        task = loop.create_task(self._persist())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def clear_remote(self, operation_id: Optional[str] = None) -> CartMutationResult:
        """Empty the cart locally and on the server."""
        op = operation_id or new_operation_id()
        self.clear()
        try:
            await self._service.clear(operation_id=op)
        except RemoteServiceError as e:
            logger.warning(f"[op {sanitize_id_for_logging(op)}] remote clear failed: {e}")
            return self._result(op, exc=e)
        return self._result(op)

    async def refresh(self) -> CartMutationResult:
        """Replace the local cart with the server's cart."""
        op = new_operation_id()
        try:
            server_cart = await self._service.get_cart()
        except RemoteServiceError as e:
            logger.warning(f"Cart refresh failed: {e}")
            return self._result(op, exc=e)

        self._generation += 1
        self._cart = server_cart
        await self._changed()
        return self._result(op)

    # ==================== Internals ====================

    @asynccontextmanager
    async def _key_lock(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                self._locks.pop(key, None)

    def _reconcile(self, product_id: str, server_cart: Optional[Cart], generation: int) -> None:
        """The server row wins for price and quantity; a missing row is dropped."""
        if server_cart is None:
            return
        if generation != self._generation:
            logger.debug(f"Cart replaced while {sanitize_id_for_logging(product_id)} was syncing, skipping reconcile")
            return
        server_item = server_cart.find(product_id)
        index = self._cart.index_of(product_id)

        if server_item is None:
            if index >= 0:
                del self._cart.items[index]
            return

        local_name = self._cart.items[index].name if index >= 0 else None
        reconciled = CartItem(
            product_id=server_item.product_id,
            unit_price=server_item.unit_price,
            quantity=clamp_quantity(server_item.quantity),
            name=server_item.name or local_name,
        )
        if index >= 0:
            self._cart.items[index] = reconciled
        else:
            self._cart.items.append(reconciled)

    async def _changed(self) -> None:
        self._notify()
        await self._persist()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.snapshot())
            except Exception:
                logger.exception("Cart listener failed")

    async def _persist(self) -> None:
        """Write the current cart to the keyed store (best-effort)."""
        if self._storage is None:
            return
        async with self._persist_lock:
            cart = self.snapshot()
            try:
                if cart.is_empty and cart.discount is None:
                    await self._storage.delete(self._session_key)
                else:
                    await self._storage.set(self._session_key, cart)
            except Exception as e:
                logger.warning(f"Failed to persist cart for session {sanitize_id_for_logging(self._session_key)}: {e}")

    def _result(
        self,
        operation_id: str,
        error: Optional[str] = None,
        exc: Optional[BaseException] = None,
    ) -> CartMutationResult:
        if exc is not None and error is None:
            error = user_facing_message(exc, ERROR_CART_UNAVAILABLE)
        return CartMutationResult(
            success=error is None,
            operation_id=operation_id,
            cart=self.snapshot(),
            error=error,
            exception=exc,
        )
