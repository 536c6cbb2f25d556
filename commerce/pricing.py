"""
Pricing Engine

Pure functions deriving a PriceBreakdown from a cart snapshot:

    subtotal     = sum(unit_price * quantity)
    shipping_fee = 0 if subtotal > 100 else 10
    tax          = round(subtotal * 0.10, 2)
    discount     = fixed amount, or percent of subtotal
    total        = subtotal + shipping_fee + tax - discount

The discount is capped at subtotal + shipping_fee + tax, so total never
goes below zero.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from commerce.cart.models import Cart, CartItem, Discount, DiscountKind
from commerce.services.money import ZERO, percent, round_money, multiply, to_float

FREE_SHIPPING_THRESHOLD = Decimal("100")
FLAT_SHIPPING_FEE = Decimal("10")
TAX_RATE = Decimal("0.10")


@dataclass(frozen=True)
class PriceBreakdown:
    """Derived totals, recomputed on every read and never stored."""
    subtotal: Decimal
    shipping_fee: Decimal
    tax: Decimal
    discount_amount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        """Float values for API payloads."""
        return {
            "subtotal": to_float(self.subtotal),
            "shipping": to_float(self.shipping_fee),
            "tax": to_float(self.tax),
            "discount": to_float(self.discount_amount),
            "total": to_float(self.total),
        }


def calculate_subtotal(items: Iterable[CartItem]) -> Decimal:
    return round_money(sum((multiply(item.unit_price, item.quantity) for item in items), ZERO))


def calculate_shipping_fee(subtotal: Decimal) -> Decimal:
    if subtotal > FREE_SHIPPING_THRESHOLD:
        return round_money(ZERO)
    return round_money(FLAT_SHIPPING_FEE)


def calculate_tax(subtotal: Decimal) -> Decimal:
    return round_money(multiply(subtotal, TAX_RATE))


def resolve_discount_amount(discount: Optional[Discount], subtotal: Decimal, cap: Decimal) -> Decimal:
    """
    Amount taken off by a discount that was already validated remotely.

    Args:
        discount: Discount attached to the cart (or None)
        subtotal: Cart subtotal, base for percentage discounts
        cap: Largest amount that may be taken off (pre-discount total)
    """
    if discount is None:
        return round_money(ZERO)

    if discount.kind == DiscountKind.PERCENTAGE:
        amount = percent(subtotal, discount.value)
    else:
        amount = discount.value

    amount = round_money(amount)
    if amount < 0:
        return round_money(ZERO)
    return min(amount, round_money(cap))


def calculate_breakdown(cart: Cart) -> PriceBreakdown:
    """Compute the full PriceBreakdown for a cart snapshot."""
    subtotal = calculate_subtotal(cart.items)
    shipping_fee = calculate_shipping_fee(subtotal)
    tax = calculate_tax(subtotal)
    gross = subtotal + shipping_fee + tax
    discount_amount = resolve_discount_amount(cart.discount, subtotal, gross)
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        tax=tax,
        discount_amount=discount_amount,
        total=round_money(gross - discount_amount),
    )
