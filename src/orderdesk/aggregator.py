"""Order detail views, customer aggregates and CSV/JSON export."""

import csv
import io
import json
from dataclasses import dataclass
from typing import Any, Iterable

from .message import normalize_phone
from .models import CustomerInfo, LineItem, Order
from .pricing import PricingBreakdown

EXPORT_COLUMNS = [
    "order_number",
    "created_at",
    "customer_name",
    "customer_phone",
    "status",
    "payment_status",
    "payment_method",
    "items",
    "subtotal",
    "discount",
    "shipping",
    "tax",
    "total",
]


@dataclass
class OrderLine:
    """A line item with its total recomputed from price and quantity."""

    item: LineItem
    line_total: int

    def to_dict(self) -> dict[str, Any]:
        result = self.item.to_dict()
        result["line_total"] = self.line_total
        return result


@dataclass
class OrderDetail:
    """Display and export view of one order."""

    order: Order
    customer: CustomerInfo
    lines: list[OrderLine]
    breakdown: PricingBreakdown
    stored_subtotal: int

    @property
    def item_count(self) -> int:
        return sum(line.item.quantity for line in self.lines)

    @property
    def subtotal_mismatch(self) -> bool:
        """True when the stored subtotal disagrees with the line items."""
        return self.stored_subtotal != self.breakdown.subtotal

    def to_dict(self) -> dict[str, Any]:
        result = self.order.to_dict()
        result["customer"] = self.customer.to_dict()
        result["items"] = [line.to_dict() for line in self.lines]
        result["breakdown"] = self.breakdown.to_dict()
        result["item_count"] = self.item_count
        result["stored_subtotal"] = self.stored_subtotal
        result["subtotal_mismatch"] = self.subtotal_mismatch
        return result


@dataclass
class CustomerStats:
    """Aggregates derived from a customer's orders."""

    customer_key: str
    name: str
    total_orders: int
    total_spent: int
    average_order_value: int
    first_order_date: str | None
    last_order_date: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "customer_key": self.customer_key,
            "name": self.name,
            "total_orders": self.total_orders,
            "total_spent": self.total_spent,
            "average_order_value": self.average_order_value,
            "first_order_date": self.first_order_date,
            "last_order_date": self.last_order_date,
        }


def build_order_detail(order: Order, customer: CustomerInfo | None = None) -> OrderDetail:
    """
    Combine an order with its customer and recomputed totals.

    Line totals and the subtotal come from the items, not from the stored
    subtotal. Discount, shipping and tax are taken from the order.

    Args:
        order: The stored order.
        customer: Linked customer record; defaults to the order's snapshot.
    """
    lines = [OrderLine(item=item, line_total=item.unit_price * item.quantity) for item in order.items]
    subtotal = sum(line.line_total for line in lines)
    breakdown = PricingBreakdown(
        subtotal=subtotal,
        discount=order.discount,
        shipping_cost=order.shipping,
        tax=order.tax,
        total=max(0, subtotal - order.discount + order.shipping + order.tax),
    )
    return OrderDetail(
        order=order,
        customer=customer or order.customer,
        lines=lines,
        breakdown=breakdown,
        stored_subtotal=order.subtotal,
    )


def _describe_items(lines: list[OrderLine]) -> str:
    parts = []
    for line in lines:
        name = line.item.name
        if line.item.variant:
            name = f"{name} ({line.item.variant})"
        parts.append(f"{name} x{line.item.quantity}")
    return "; ".join(parts)


def export_row(detail: OrderDetail) -> dict[str, Any]:
    """Flat row for spreadsheet export."""
    order = detail.order
    return {
        "order_number": order.order_number,
        "created_at": order.created_at,
        "customer_name": detail.customer.name,
        "customer_phone": detail.customer.phone,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "payment_method": order.payment_method.value,
        "items": _describe_items(detail.lines),
        "subtotal": detail.breakdown.subtotal,
        "discount": detail.breakdown.discount,
        "shipping": detail.breakdown.shipping_cost,
        "tax": detail.breakdown.tax,
        "total": detail.breakdown.total,
    }


def export_orders_csv(orders: Iterable[Order]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for order in orders:
        writer.writerow(export_row(build_order_detail(order)))
    return buf.getvalue()


def export_orders_json(orders: Iterable[Order]) -> str:
    data = [build_order_detail(order).to_dict() for order in orders]
    return json.dumps({"orders": data, "count": len(data)}, indent=2) + "\n"


def _customer_key(order: Order) -> str:
    return order.customer_id or normalize_phone(order.customer.phone) or order.customer.name


def customer_stats(orders: Iterable[Order]) -> list[CustomerStats]:
    """
    Per-customer aggregates recomputed from the order collection.

    Customers are keyed by customer_id, falling back to phone digits.
    Results are sorted by total spent, highest first.
    """
    grouped: dict[str, list[Order]] = {}
    for order in orders:
        grouped.setdefault(_customer_key(order), []).append(order)

    stats = []
    for key, customer_orders in grouped.items():
        customer_orders.sort(key=lambda o: o.created_at)
        total_spent = sum(o.total for o in customer_orders)
        count = len(customer_orders)
        stats.append(
            CustomerStats(
                customer_key=key,
                name=customer_orders[-1].customer.name,
                total_orders=count,
                total_spent=total_spent,
                average_order_value=total_spent // count,
                first_order_date=customer_orders[0].created_at,
                last_order_date=customer_orders[-1].created_at,
            )
        )
    stats.sort(key=lambda s: (-s.total_spent, s.customer_key))
    return stats
