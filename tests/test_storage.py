"""
Tests for keyed cart storage
"""
import json
from unittest.mock import AsyncMock, Mock

import pytest

from commerce.cart import Cart, CartItem, MemoryCartStorage, RedisCartStorage
from commerce.cart.storage import CartKeys
from commerce.config import Settings


@pytest.fixture
def mock_redis():
    redis = Mock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value="OK")
    redis.delete = AsyncMock(return_value=1)
    return redis


def test_cart_key():
    assert CartKeys.cart_key("user-1") == "cart:user-1"


@pytest.mark.asyncio
async def test_memory_storage_returns_copies():
    storage = MemoryCartStorage()
    cart = Cart(items=[CartItem("p1", "10", 1)])

    await storage.set("s", cart)
    cart.items[0].quantity = 5
    stored = await storage.get("s")

    assert stored.items[0].quantity == 1
    await storage.delete("s")
    assert await storage.get("s") is None


@pytest.mark.asyncio
async def test_redis_set_uses_ttl(mock_redis):
    storage = RedisCartStorage(mock_redis, ttl=600)

    await storage.set("s", Cart(items=[CartItem("p1", "10", 2)]))

    key, raw = mock_redis.set.await_args.args
    assert key == "cart:s"
    assert json.loads(raw)["items"][0]["quantity"] == 2
    assert mock_redis.set.await_args.kwargs == {"ex": 600}


@pytest.mark.asyncio
async def test_redis_get(mock_redis):
    mock_redis.get.return_value = json.dumps({"items": [{"product_id": "p1", "unit_price": "10", "quantity": 2}]})
    storage = RedisCartStorage(mock_redis)

    cart = await storage.get("s")

    assert cart.find("p1").quantity == 2
    mock_redis.get.assert_awaited_once_with("cart:s")


@pytest.mark.asyncio
async def test_redis_corrupted_entry_is_deleted(mock_redis):
    mock_redis.get.return_value = "{not json"
    storage = RedisCartStorage(mock_redis)

    assert await storage.get("s") is None
    mock_redis.delete.assert_awaited_once_with("cart:s")


def test_redis_from_settings_requires_credentials():
    with pytest.raises(ValueError):
        RedisCartStorage.from_settings(Settings())
