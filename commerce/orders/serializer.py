"""Order submission payload builders."""
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from commerce.cart.models import Cart, CartItem
from commerce.pricing import PriceBreakdown
from commerce.services.money import to_float

if TYPE_CHECKING:
    from commerce.checkout.models import Address, PaymentDetails


def build_item_payload(item: CartItem) -> Dict[str, Any]:
    """
    Build one order line from a cart row.

    Args:
        item: Cart row from a snapshot

    Returns:
        Formatted item payload dict
    """
    return {
        "productId": item.product_id,
        "name": item.name,
        "quantity": item.quantity,
        "unitPrice": to_float(item.unit_price),
        "lineTotal": to_float(item.line_total),
    }


def build_totals_payload(breakdown: PriceBreakdown) -> Dict[str, float]:
    return breakdown.to_dict()


def build_order_payload(
    cart: Cart,
    breakdown: PriceBreakdown,
    shipping_address: "Address",
    billing_address: Optional["Address"],
    payment_details: "PaymentDetails",
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the order submission payload.

    Billing falls back to shipping. Payment is reduced to method and last
    four digits; raw card number and CVC are never included.

    Args:
        cart: Cart snapshot taken at submission time
        breakdown: Totals computed from the same snapshot
        shipping_address: Validated shipping address
        billing_address: Validated billing address, or None to reuse shipping
        payment_details: Validated payment form data
        user_id: Optional id of the signed-in user

    Returns:
        JSON-ready payload dict
    """
    items: List[Dict[str, Any]] = [build_item_payload(item) for item in cart.items]
    payload: Dict[str, Any] = {
        "items": items,
        "shippingAddress": shipping_address.to_payload(),
        "billingAddress": (billing_address or shipping_address).to_payload(),
        "paymentDetails": payment_details.redacted(),
        "totals": build_totals_payload(breakdown),
    }
    if cart.discount is not None:
        payload["discountCode"] = cart.discount.code
    if user_id:
        payload["userId"] = user_id
    return payload
