"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from storefront.errors import ValidationError
from storefront.money import multiply, round_money, to_decimal, to_float


class ItemCondition(str, Enum):
    """Product condition."""
    NEW = "new"
    USED = "used"


@dataclass(frozen=True)
class CartLine:
    """One product entry in the cart. Price is the unit price at add time."""
    id: str
    name: str
    price: Decimal
    quantity: int
    image: str = ""
    condition: ItemCondition = ItemCondition.NEW

    def __post_init__(self):
        # Normalize inputs coming from JSON
        object.__setattr__(self, "price", to_decimal(self.price))
        object.__setattr__(self, "quantity", int(self.quantity))
        object.__setattr__(self, "condition", ItemCondition(self.condition))
        if self.price < 0:
            raise ValidationError(f"Price of {self.id} must not be negative", field="price")

    @property
    def line_total(self) -> Decimal:
        """Price for all units of this line."""
        return multiply(self.price, self.quantity)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(round_money(self.price)),
            "quantity": self.quantity,
            "image": self.image,
            "condition": self.condition.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartLine":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            price=to_decimal(data.get("price")),
            quantity=int(data.get("quantity", 1)),
            image=data.get("image") or "",
            condition=data.get("condition") or ItemCondition.NEW,
        )


@dataclass(frozen=True)
class CartState:
    """Immutable cart snapshot. Totals are always derived from `items`."""
    items: tuple[CartLine, ...] = field(default_factory=tuple)

    def get(self, item_id: str) -> CartLine | None:
        return next((item for item in self.items if item.id == item_id), None)

    @property
    def total_price(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items
