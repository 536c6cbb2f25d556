"""Keyed persistence for the local cart (survives page reloads / restarts)."""
import json
from typing import Optional, Protocol

from upstash_redis.asyncio import Redis as AsyncRedis

from commerce.config import Settings
from commerce.logging import get_logger, sanitize_id_for_logging
from .models import Cart

logger = get_logger(__name__)


class CartKeys:
    """Key prefixes for stored carts."""

    CART = "cart:"  # cart:{session_key}

    @staticmethod
    def cart_key(session_key: str) -> str:
        return f"{CartKeys.CART}{session_key}"


class TTL:
    """Expiry for stored carts, in seconds."""

    CART = 86400  # 24 hours for abandoned carts


class CartStorage(Protocol):
    """Keyed store contract used by the Cart Store."""

    async def get(self, session_key: str) -> Optional[Cart]: ...

    async def set(self, session_key: str, cart: Cart) -> None: ...

    async def delete(self, session_key: str) -> None: ...


class MemoryCartStorage:
    """In-process store. Holds serialized carts so callers never share objects."""

    def __init__(self):
        self._data: dict[str, str] = {}

    async def get(self, session_key: str) -> Optional[Cart]:
        raw = self._data.get(CartKeys.cart_key(session_key))
        if raw is None:
            return None
        return Cart.from_dict(json.loads(raw))

    async def set(self, session_key: str, cart: Cart) -> None:
        self._data[CartKeys.cart_key(session_key)] = json.dumps(cart.to_dict())

    async def delete(self, session_key: str) -> None:
        self._data.pop(CartKeys.cart_key(session_key), None)


class RedisCartStorage:
    """
    Upstash Redis backed store.

    Corrupted entries are deleted and reported as missing.
    """

    def __init__(self, redis: AsyncRedis, ttl: int = TTL.CART):
        self._redis = redis
        self._ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisCartStorage":
        if not settings.is_redis_configured():
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        redis = AsyncRedis(url=settings.redis_url, token=settings.redis_token)
        return cls(redis, ttl=settings.cart_ttl)

    async def get(self, session_key: str) -> Optional[Cart]:
        key = CartKeys.cart_key(session_key)
        data = await self._redis.get(key)
        if not data:
            return None

        try:
            return Cart.from_dict(json.loads(data))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            # Corrupted data - clear it and start over
            logger.warning(f"Corrupted cart data for session {sanitize_id_for_logging(session_key)}: {e}")
            await self._redis.delete(key)
            return None

    async def set(self, session_key: str, cart: Cart) -> None:
        await self._redis.set(
            CartKeys.cart_key(session_key),
            json.dumps(cart.to_dict()),
            ex=self._ttl,
        )

    async def delete(self, session_key: str) -> None:
        await self._redis.delete(CartKeys.cart_key(session_key))
