"""Utility functions for orderdesk."""

from dataclasses import dataclass

from .errors import ValidationError
from .models import Order
from .money import format_price


@dataclass(frozen=True)
class ItemSpec:
    """A cart line given on the command line."""

    product_id: str
    name: str
    unit_price: int
    quantity: int = 1
    variant: str | None = None


def parse_item_spec(spec: str) -> ItemSpec:
    """
    Parse an item specification.

    Formats:
    - "sku-1:Headphones:299000"
    - "sku-1:Headphones:299000:2"
    - "sku-1:Headphones:299000:2:Black"

    Raises:
        ValidationError: If the item string is malformed.
    """
    parts = spec.split(":")
    if len(parts) < 3 or len(parts) > 5:
        raise ValidationError(
            f"expected 'product_id:name:price[:qty[:variant]]', got '{spec}'", field="item"
        )

    product_id, name = parts[0].strip(), parts[1].strip()
    if not product_id or not name:
        raise ValidationError(f"product id and name are required in '{spec}'", field="item")

    try:
        unit_price = int(parts[2])
        quantity = int(parts[3]) if len(parts) > 3 and parts[3] else 1
    except ValueError:
        raise ValidationError(f"price and quantity must be integers in '{spec}'", field="item")

    if unit_price < 0:
        raise ValidationError("must not be negative", field="unit_price")
    if quantity <= 0:
        raise ValidationError("must be at least 1", field="quantity")

    variant = parts[4].strip() if len(parts) > 4 and parts[4].strip() else None
    return ItemSpec(product_id, name, unit_price, quantity, variant)


def format_order(order: Order, verbose: bool = False, currency: str = "IDR") -> str:
    """Format an order for display."""
    lines = [
        f"{order.id[:8]}  {order.order_number}  {order.customer.name}  "
        f"{format_price(order.total, currency)}  {order.status.value}/{order.payment_status.value}"
    ]

    if verbose:
        lines.append(f"  Phone: {order.customer.phone}")
        lines.append(f"  Address: {order.customer.address}")
        for item in order.items:
            variant = f" ({item.variant})" if item.variant else ""
            lines.append(
                f"  - {item.name}{variant} x{item.quantity} "
                f"= {format_price(item.line_total, currency)}"
            )
        if order.tracking_number:
            lines.append(f"  Tracking: {order.tracking_number}")
        lines.append(f"  Version: {order.version}  Updated: {order.updated_at}")

    return "\n".join(lines)
