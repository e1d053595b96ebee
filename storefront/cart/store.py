"""In-memory cart store."""
from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal

from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.store import Store

from .models import CartLine, CartState

logger = get_logger(__name__)


class CartStore(Store[CartState]):
    """
    Process-local shopping cart.

    Invariants:
    - at most one line per product id (adding an existing id merges);
    - no line with quantity <= 0 is ever kept.

    On merge only the quantity changes; the existing line keeps its name,
    image, condition and unit price. No operation raises for unknown ids.
    """

    def __init__(self, items: Iterable[CartLine] = ()):
        super().__init__(CartState())
        if items:
            self.replace_items(items)

    @property
    def items(self) -> tuple[CartLine, ...]:
        return self.get_state().items

    def add_item(self, line: CartLine) -> None:
        """Add a line, summing quantities when the product is already in the cart."""
        if line.quantity <= 0:
            logger.debug(f"Ignoring add of {sanitize_id_for_logging(line.id)} with quantity {line.quantity}")
            return

        items = self.items
        existing = self.get_state().get(line.id)
        if existing:
            merged = replace(existing, quantity=existing.quantity + line.quantity)
            items = tuple(merged if item.id == line.id else item for item in items)
        else:
            items = items + (line,)

        self._set_state(CartState(items=items))

    def remove_item(self, item_id: str) -> None:
        """Remove a line; no-op if absent."""
        self._set_state(CartState(items=tuple(item for item in self.items if item.id != item_id)))

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Set a line's quantity. Negative values clamp to 0, and 0 removes the line."""
        quantity = max(0, int(quantity))
        items = tuple(
            replace(item, quantity=quantity) if item.id == item_id else item
            for item in self.items
        )
        self._set_state(CartState(items=tuple(item for item in items if item.quantity > 0)))

    def clear(self) -> None:
        self._set_state(CartState())

    def replace_items(self, lines: Iterable[CartLine]) -> None:
        """Replace the whole cart, e.g. after loading the remote mirror."""
        merged: dict[str, CartLine] = {}
        for line in lines:
            if line.quantity <= 0:
                continue
            existing = merged.get(line.id)
            merged[line.id] = replace(existing, quantity=existing.quantity + line.quantity) if existing else line
        self._set_state(CartState(items=tuple(merged.values())))

    def total_price(self) -> Decimal:
        """Sum of price * quantity, recomputed on every call."""
        return self.get_state().total_price

    def total_items(self) -> int:
        return self.get_state().total_items
