import json
from decimal import Decimal
from typing import Any, Callable, Dict, List

import httpx
import pytest

from commerce.cart import CartStore
from commerce.errors import (
    ERROR_CART_UNAVAILABLE,
    BusinessRuleError,
    PaymentDeclinedError,
    RemoteServiceError,
    TransientRemoteError,
)
from commerce.payments import PaymentStatus
from commerce.services.cart_service import CartServiceClient
from commerce.services.http import OPERATION_ID_HEADER, ApiClient
from commerce.services.order_service import OrderServiceClient
from commerce.services.payment_service import PaymentServiceClient

BASE_URL = "http://api.test/api"


def _api(handler: Callable[[httpx.Request], httpx.Response], token=None) -> ApiClient:
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return ApiClient(BASE_URL, token=token, http_client=http_client)


class _Recorder:
    """Answers requests from a route table and records what was sent."""

    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        answer = self.routes[key]
        if isinstance(answer, list):
            answer = answer.pop(0)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


# ==================== ApiClient ====================


@pytest.mark.asyncio
async def test_request_sends_auth_and_operation_headers():
    recorder = _Recorder({"POST /api/cart/add": {"ok": True}})
    api = _api(recorder, token="secret")

    await api.request("POST", "/cart/add", json={"productId": "p1"}, operation_id="op-1")

    sent = recorder.requests[0]
    assert sent.headers["Authorization"] == "Bearer secret"
    assert sent.headers[OPERATION_ID_HEADER] == "op-1"
    await api.aclose()


@pytest.mark.asyncio
async def test_4xx_maps_to_business_rule_error():
    recorder = _Recorder({"PUT /api/cart/update": httpx.Response(409, json={"message": "Only 3 left"})})
    api = _api(recorder)

    with pytest.raises(BusinessRuleError) as exc_info:
        await api.request("PUT", "/cart/update", json={})

    assert exc_info.value.status_code == 409
    assert exc_info.value.user_message == "Only 3 left"


@pytest.mark.asyncio
async def test_5xx_maps_to_transient_error():
    recorder = _Recorder({"POST /api/orders": httpx.Response(502, text="Bad gateway")})
    api = _api(recorder)

    with pytest.raises(TransientRemoteError) as exc_info:
        await api.request("POST", "/orders", json={})

    assert exc_info.value.status_code == 502
    assert exc_info.value.user_message is None


@pytest.mark.asyncio
async def test_network_error_maps_to_transient_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = _api(handler)

    with pytest.raises(TransientRemoteError):
        await api.request("GET", "/cart")


@pytest.mark.asyncio
async def test_invalid_json_is_remote_error():
    recorder = _Recorder({"GET /api/cart": httpx.Response(200, text="<html>")})
    api = _api(recorder)

    with pytest.raises(RemoteServiceError) as exc_info:
        await api.request("GET", "/cart")

    assert not isinstance(exc_info.value, TransientRemoteError)


@pytest.mark.asyncio
async def test_empty_body_is_none():
    recorder = _Recorder({"DELETE /api/cart/clear": httpx.Response(204)})
    api = _api(recorder)

    assert await api.request("DELETE", "/cart/clear") is None


@pytest.mark.asyncio
async def test_fetch_retries_transient_failures():
    recorder = _Recorder({"GET /api/cart": [httpx.Response(503), {"items": []}]})
    api = _api(recorder)

    assert await api.fetch("/cart") == {"items": []}
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_fetch_does_not_retry_business_errors():
    recorder = _Recorder({"GET /api/orders/o-1": [httpx.Response(404, json={"message": "Not found"})]})
    api = _api(recorder)

    with pytest.raises(BusinessRuleError):
        await api.fetch("/orders/o-1")
    assert len(recorder.requests) == 1


# ==================== CartServiceClient ====================


@pytest.mark.asyncio
async def test_add_item_returns_server_cart():
    recorder = _Recorder({
        "POST /api/cart/add": {
            "cart": {"items": [{"product": {"_id": "p1", "price": 18, "name": "Shirt"}, "quantity": 2}]}
        }
    })
    client = CartServiceClient(_api(recorder))

    cart = await client.add_item("p1", 2, operation_id="op-1")

    assert recorder.body() == {"productId": "p1", "quantity": 2}
    assert cart.find("p1").unit_price == Decimal("18")
    assert cart.find("p1").quantity == 2


@pytest.mark.asyncio
async def test_mutation_without_cart_body_returns_none():
    recorder = _Recorder({"PUT /api/cart/update": {"success": True}})
    client = CartServiceClient(_api(recorder))

    assert await client.update_item("p1", 3) is None


@pytest.mark.asyncio
async def test_remove_item_quotes_product_id():
    recorder = _Recorder({"DELETE /api/cart/remove/a/b": {"items": []}})
    client = CartServiceClient(_api(recorder))

    cart = await client.remove_item("a/b")

    assert cart.is_empty
    assert recorder.requests[0].url.raw_path == b"/api/cart/remove/a%2Fb"


@pytest.mark.asyncio
async def test_get_cart():
    recorder = _Recorder({"GET /api/cart": {"items": [{"productId": "p1", "price": "5.00", "quantity": 1}]}})
    client = CartServiceClient(_api(recorder))

    cart = await client.get_cart()

    assert cart.find("p1").unit_price == Decimal("5.00")


@pytest.mark.asyncio
async def test_apply_discount():
    recorder = _Recorder({"POST /api/cart/discount": {"valid": True, "amount": 10, "kind": "percentage"}})
    client = CartServiceClient(_api(recorder))

    result = await client.apply_discount("TENOFF")

    assert result.valid
    assert result.amount == Decimal("10")
    assert recorder.body() == {"code": "TENOFF"}


# ==================== PaymentServiceClient ====================


@pytest.mark.asyncio
async def test_verify_payment():
    recorder = _Recorder({"GET /api/payments/pay-1/verify": {"status": "Succeeded", "orderId": "order-9"}})
    client = PaymentServiceClient(_api(recorder))

    result = await client.verify_payment("pay-1")

    assert result.status == PaymentStatus.SUCCEEDED
    assert result.order_id == "order-9"
    assert result.raw_status == "Succeeded"


# ==================== OrderServiceClient ====================


ORDER_PAYLOAD = {
    "items": [{"productId": "p1", "quantity": 1}],
    "paymentDetails": {"method": "credit-card", "lastFour": "4242"},
    "totals": {"total": 32.0},
}


@pytest.mark.asyncio
async def test_create_order_processes_payment_first():
    recorder = _Recorder({
        "POST /api/payments/process": {"success": True, "paymentId": "pay-1", "status": "succeeded"},
        "POST /api/orders": {"_id": "order-1", "trackingId": "TRK-1"},
    })
    client = OrderServiceClient(_api(recorder), currency="USD")

    receipt = await client.create_order(ORDER_PAYLOAD, operation_id="op-1")

    assert [r.url.path for r in recorder.requests] == ["/api/payments/process", "/api/orders"]
    assert recorder.body(0) == {
        "amount": 32.0,
        "currency": "USD",
        "paymentMethod": {"method": "credit-card", "lastFour": "4242"},
    }
    assert recorder.body(1)["paymentId"] == "pay-1"
    assert recorder.requests[1].headers[OPERATION_ID_HEADER] == "op-1"
    assert receipt.id == "order-1"
    assert receipt.tracking_id == "TRK-1"
    assert receipt.payment_status == "succeeded"


@pytest.mark.asyncio
async def test_declined_payment_skips_order_creation():
    recorder = _Recorder({"POST /api/payments/process": {"success": False, "message": "Card declined"}})
    client = OrderServiceClient(_api(recorder))

    with pytest.raises(PaymentDeclinedError) as exc_info:
        await client.create_order(ORDER_PAYLOAD)

    assert exc_info.value.user_message == "Card declined"
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_create_order_without_id_is_invalid():
    recorder = _Recorder({
        "POST /api/payments/process": {"success": True, "paymentId": "pay-1"},
        "POST /api/orders": {"status": "ok"},
    })
    client = OrderServiceClient(_api(recorder))

    with pytest.raises(RemoteServiceError):
        await client.create_order(ORDER_PAYLOAD)


@pytest.mark.asyncio
async def test_update_order_status():
    recorder = _Recorder({"PUT /api/orders/order-1/status": {"status": "paid"}})
    client = OrderServiceClient(_api(recorder))

    assert await client.update_order_status("order-1", "paid") == {"status": "paid"}
    assert recorder.body() == {"status": "paid"}


@pytest.mark.asyncio
async def test_cancel_order():
    recorder = _Recorder({"PUT /api/orders/order-1/cancel": {"status": "cancelled"}})
    client = OrderServiceClient(_api(recorder))

    assert await client.cancel_order("order-1") == {"status": "cancelled"}
    assert recorder.requests[0].content == b""


@pytest.mark.asyncio
async def test_malformed_discount_response_is_remote_error():
    recorder = _Recorder({"POST /api/cart/discount": {"valid": True, "amount": "10%"}})
    client = CartServiceClient(_api(recorder))

    with pytest.raises(RemoteServiceError):
        await client.apply_discount("SAVE")


@pytest.mark.asyncio
async def test_malformed_discount_response_fails_cart_operation():
    recorder = _Recorder({"POST /api/cart/discount": {"valid": True, "amount": "10%"}})
    store = CartStore(CartServiceClient(_api(recorder)))

    result = await store.apply_discount("SAVE")

    assert not result.success
    assert result.error == ERROR_CART_UNAVAILABLE
    assert store.discount is None
