"""In-memory shopping cart."""

import logging
from typing import Any

from .errors import LineItemNotFoundError, ValidationError
from .models import LineItem

logger = logging.getLogger(__name__)


class Cart:
    """
    Ordered collection of line items owned by one checkout session.

    At most one line exists per (product_id, variant) pair. Every mutating
    method returns the cart itself so calls can be chained.
    """

    def __init__(self, items: list[LineItem] | None = None):
        self._items: list[LineItem] = []
        for item in items or []:
            self.add_item(
                item.product_id,
                item.name,
                item.unit_price,
                quantity=item.quantity,
                variant=item.variant,
                notes=item.notes,
                unit_cost=item.unit_cost,
            )

    @property
    def items(self) -> list[LineItem]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def _find_index(self, line_item_id: str) -> int:
        for i, item in enumerate(self._items):
            if item.id == line_item_id:
                return i
        raise LineItemNotFoundError(line_item_id)

    def get(self, line_item_id: str) -> LineItem:
        """
        Get a line item by ID.

        Raises:
            LineItemNotFoundError: If no line has this ID.
        """
        return self._items[self._find_index(line_item_id)]

    def add_item(
        self,
        product_id: str,
        name: str,
        unit_price: int,
        quantity: int = 1,
        variant: str | None = None,
        notes: str | None = None,
        unit_cost: int = 0,
    ) -> "Cart":
        """
        Add a product, merging with an existing line for the same product and variant.

        Raises:
            ValidationError: If quantity <= 0 or unit_price < 0. The cart is
                left unchanged.
        """
        if quantity <= 0:
            raise ValidationError("must be at least 1", field="quantity")
        if unit_price < 0:
            raise ValidationError("must not be negative", field="unit_price")

        for item in self._items:
            if item.key == (product_id, variant):
                item.quantity += quantity
                if notes:
                    item.notes = notes
                return self

        self._items.append(
            LineItem.create(
                product_id=product_id,
                name=name,
                unit_price=unit_price,
                quantity=quantity,
                variant=variant,
                notes=notes,
                unit_cost=unit_cost,
            )
        )
        return self

    def update_quantity(self, line_item_id: str, new_quantity: int) -> "Cart":
        """Set a line's quantity exactly; zero or negative removes the line."""
        idx = self._find_index(line_item_id)
        if new_quantity <= 0:
            removed = self._items.pop(idx)
            logger.debug("Removed %s from cart (quantity %d)", removed.name, new_quantity)
        else:
            self._items[idx].quantity = new_quantity
        return self

    def remove_item(self, line_item_id: str) -> "Cart":
        self._items.pop(self._find_index(line_item_id))
        return self

    def clear(self) -> "Cart":
        self._items.clear()
        return self

    def subtotal(self) -> int:
        """Sum of unit_price * quantity, computed fresh on every call."""
        return sum(item.unit_price * item.quantity for item in self._items)

    def item_count(self) -> int:
        """Total number of units across all lines."""
        return sum(item.quantity for item in self._items)

    def to_dict(self) -> dict[str, Any]:
        return {"items": [item.to_dict() for item in self._items]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cart":
        cart = cls()
        # Saved line IDs are kept so clients can keep addressing them
        for raw in data.get("items", []):
            item = LineItem.from_dict(raw)
            if item.quantity <= 0:
                continue
            for existing in cart._items:
                if existing.key == item.key:
                    existing.quantity += item.quantity
                    break
            else:
                cart._items.append(item)
        return cart
