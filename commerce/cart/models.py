"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from commerce.services.money import to_decimal, round_money, multiply

MIN_QUANTITY = 1
MAX_QUANTITY = 99


def clamp_quantity(quantity: int) -> int:
    """Clamp a quantity into the allowed [1, 99] range."""
    return max(MIN_QUANTITY, min(MAX_QUANTITY, int(quantity)))


def is_valid_quantity(quantity: Any) -> bool:
    """Whether quantity is an int inside [1, 99]."""
    return (
        isinstance(quantity, int)
        and not isinstance(quantity, bool)
        and MIN_QUANTITY <= quantity <= MAX_QUANTITY
    )


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """First present key wins; the remote service speaks camelCase."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


class DiscountKind(str, Enum):
    """How a discount value is interpreted."""
    FIXED = "fixed"  # Absolute amount off
    PERCENTAGE = "percentage"  # Percent of subtotal

    @classmethod
    def parse(cls, value: Optional[str]) -> "DiscountKind":
        if not value:
            return cls.FIXED
        normalized = str(value).strip().lower()
        if normalized in ("percentage", "percent", "%"):
            return cls.PERCENTAGE
        return cls.FIXED


@dataclass
class Discount:
    """A validated discount attached to the cart."""
    code: str
    value: Decimal  # amount or percent, depending on kind
    kind: DiscountKind = DiscountKind.FIXED

    def __post_init__(self):
        self.value = to_decimal(self.value)
        if not isinstance(self.kind, DiscountKind):
            self.kind = DiscountKind.parse(self.kind)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "value": str(self.value),
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Discount":
        return cls(
            code=str(_pick(data, "code", default="")),
            value=to_decimal(_pick(data, "value", "amount", "amountOrPercent", default=0)),
            kind=DiscountKind.parse(_pick(data, "kind", "type")),
        )


@dataclass
class CartItem:
    """Single row in the cart, unique by product_id."""
    product_id: str
    unit_price: Decimal
    quantity: int
    name: Optional[str] = None

    def __post_init__(self):
        self.unit_price = to_decimal(self.unit_price)
        self.quantity = int(self.quantity)

    @property
    def line_total(self) -> Decimal:
        """Total price for all units."""
        return round_money(multiply(self.unit_price, self.quantity))

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """
        Create from a stored or remote dictionary.

        Accepts snake_case (storage), camelCase and the nested
        `{"product": {"id", "price", "name"}}` shape returned by the Cart Service.
        """
        product = data.get("product") if isinstance(data.get("product"), dict) else {}
        product_id = _pick(data, "product_id", "productId") or _pick(product, "id", "_id")
        if product_id is None:
            raise KeyError("product_id")
        return cls(
            product_id=str(product_id),
            unit_price=to_decimal(
                _pick(data, "unit_price", "unitPrice", "price", default=_pick(product, "price", default=0))
            ),
            quantity=int(_pick(data, "quantity", default=1)),
            name=_pick(data, "name", default=_pick(product, "name")),
        )


@dataclass
class Cart:
    """Shopping cart. Insertion order of `items` is display order."""
    items: List[CartItem] = field(default_factory=list)
    discount: Optional[Discount] = None

    @property
    def item_count(self) -> int:
        """Number of distinct rows."""
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.product_id == product_id), None)

    def index_of(self, product_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.product_id == product_id:
                return index
        return -1

    def to_dict(self) -> dict:
        """Convert to dictionary for keyed storage."""
        return {
            "items": [item.to_dict() for item in self.items],
            "discount": self.discount.to_dict() if self.discount else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """Create from dictionary; rows with duplicate product ids are merged."""
        cart = cls()
        for raw in data.get("items") or []:
            item = CartItem.from_dict(raw)
            existing = cart.find(item.product_id)
            if existing:
                existing.quantity = clamp_quantity(existing.quantity + item.quantity)
                existing.unit_price = item.unit_price
            elif item.quantity >= MIN_QUANTITY:
                item.quantity = clamp_quantity(item.quantity)
                cart.items.append(item)
        discount = data.get("discount")
        if isinstance(discount, dict) and _pick(discount, "code"):
            cart.discount = Discount.from_dict(discount)
        return cart
