"""Cart package: models, storage, and the Cart Store."""
from .models import CartItem, Cart, Discount, DiscountKind, MAX_QUANTITY, MIN_QUANTITY
from .storage import CartStorage, MemoryCartStorage, RedisCartStorage
from .service import CartStore, CartMutationResult

__all__ = [
    "CartItem",
    "Cart",
    "Discount",
    "DiscountKind",
    "MAX_QUANTITY",
    "MIN_QUANTITY",
    "CartStorage",
    "MemoryCartStorage",
    "RedisCartStorage",
    "CartStore",
    "CartMutationResult",
]
