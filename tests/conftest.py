"""Pytest configuration and fixtures"""
import os
from unittest.mock import AsyncMock, Mock

import pytest

# Set test environment variables
os.environ.setdefault("COMMERCE_ENV", "test")
os.environ.setdefault("COMMERCE_API_URL", "http://api.test/api")

from commerce.cart import CartStore, MemoryCartStorage
from commerce.services.cart_service import DiscountResult
from commerce.services.order_service import OrderReceipt


@pytest.fixture
def mock_cart_service():
    """Remote cart service double; mutations answer with no cart body by default."""
    service = Mock()
    service.get_cart = AsyncMock()
    service.add_item = AsyncMock(return_value=None)
    service.update_item = AsyncMock(return_value=None)
    service.remove_item = AsyncMock(return_value=None)
    service.clear = AsyncMock(return_value=None)
    service.apply_discount = AsyncMock(return_value=DiscountResult(valid=False))
    return service


@pytest.fixture
def memory_storage():
    return MemoryCartStorage()


@pytest.fixture
def cart_store(mock_cart_service, memory_storage):
    return CartStore(mock_cart_service, storage=memory_storage, session_key="session-1")


@pytest.fixture
def mock_order_service():
    service = Mock()
    service.create_order = AsyncMock(
        return_value=OrderReceipt(id="order-123", payment_id="pay-123", payment_status="succeeded")
    )
    service.get_order = AsyncMock(return_value={"id": "order-123", "status": "pending"})
    service.update_order_status = AsyncMock(return_value={})
    return service


@pytest.fixture
def sample_address():
    """Sample address form data"""
    return {
        "fullName": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+1 (555) 010-2000",
        "address1": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "country": "us",
    }


@pytest.fixture
def sample_card_payment():
    """Sample credit card payment form data"""
    return {
        "paymentMethod": "credit-card",
        "cardNumber": "4242 4242 4242 4242",
        "nameOnCard": "Jane Doe",
        "expirationDate": "12/29",
        "cvc": "123",
    }
