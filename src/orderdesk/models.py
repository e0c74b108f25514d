"""Data models for orderdesk."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import random
import uuid


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new record ID."""
    return str(uuid.uuid4())


def _generate_order_number() -> str:
    """Generate a human-facing order number like ORD-2026-482913."""
    year = datetime.now(timezone.utc).year
    return f"ORD-{year}-{random.randint(0, 999999):06d}"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    WHATSAPP = "WHATSAPP"
    BANK_TRANSFER = "BANK_TRANSFER"
    EWALLET = "EWALLET"
    COD = "COD"
    CREDIT_CARD = "CREDIT_CARD"
    VIRTUAL_ACCOUNT = "VIRTUAL_ACCOUNT"


class OrderSource(str, Enum):
    MANUAL = "MANUAL"
    WHATSAPP = "WHATSAPP"
    WEBSITE = "WEBSITE"


@dataclass
class LineItem:
    """A product line in a cart or order."""

    id: str
    product_id: str
    name: str
    unit_price: int  # whole currency units
    quantity: int  # >= 1
    variant: str | None = None
    notes: str | None = None
    unit_cost: int = 0

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def key(self) -> tuple[str, str | None]:
        """Identity used to merge repeated adds of the same product."""
        return (self.product_id, self.variant)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
        }
        if self.variant is not None:
            result["variant"] = self.variant
        if self.notes is not None:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            id=data.get("id") or _generate_id(),
            product_id=data["product_id"],
            name=data["name"],
            unit_price=data["unit_price"],
            quantity=data["quantity"],
            variant=data.get("variant"),
            notes=data.get("notes"),
            unit_cost=data.get("unit_cost", 0),
        )

    @classmethod
    def create(
        cls,
        product_id: str,
        name: str,
        unit_price: int,
        quantity: int,
        variant: str | None = None,
        notes: str | None = None,
        unit_cost: int = 0,
    ) -> "LineItem":
        """Create a new line item with a generated ID."""
        return cls(
            id=_generate_id(),
            product_id=product_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            variant=variant,
            notes=notes,
            unit_cost=unit_cost,
        )


@dataclass(frozen=True)
class ShippingOption:
    """A delivery option from the store's fixed catalog."""

    name: str
    price: int
    duration_label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "price": self.price,
            "duration_label": self.duration_label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShippingOption":
        return cls(
            name=data["name"],
            price=data["price"],
            duration_label=data.get("duration_label", ""),
        )


@dataclass(frozen=True)
class Coupon:
    """A coupon that has been validated and resolved to an amount."""

    code: str
    discount_amount: int


@dataclass(frozen=True)
class CouponCheck:
    """Answer from a coupon validator."""

    valid: bool
    discount: int = 0
    reason: str | None = None


@dataclass
class CustomerInfo:
    """Contact and delivery details captured at checkout."""

    name: str
    phone: str
    address: str
    email: str | None = None
    city: str | None = None
    postal_code: str | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
        }
        for key in ("email", "city", "postal_code", "notes"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomerInfo":
        return cls(
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            email=data.get("email"),
            city=data.get("city"),
            postal_code=data.get("postal_code"),
            notes=data.get("notes"),
        )


@dataclass
class StatusChange:
    """One entry in an order's status history."""

    status: OrderStatus
    at: str
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value, "at": self.at}
        if self.note is not None:
            result["note"] = self.note
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusChange":
        return cls(
            status=OrderStatus(data["status"]),
            at=data["at"],
            note=data.get("note"),
        )


# Optional order fields serialized only when set
_ORDER_OPTIONAL = (
    "customer_id",
    "shipping_method",
    "coupon_code",
    "tracking_number",
    "transaction_id",
    "notes",
    "paid_at",
    "cancelled_at",
)


@dataclass
class Order:
    """A submitted order owned by the store."""

    id: str
    order_number: str
    customer: CustomerInfo
    items: list[LineItem]
    subtotal: int
    shipping: int
    tax: int
    discount: int
    total: int
    total_cost: int = 0
    total_profit: int = 0
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.WHATSAPP
    source: OrderSource = OrderSource.MANUAL
    customer_id: str | None = None
    shipping_method: str | None = None
    coupon_code: str | None = None
    tracking_number: str | None = None
    transaction_id: str | None = None
    notes: str | None = None
    paid_at: str | None = None
    cancelled_at: str | None = None
    status_history: list[StatusChange] = field(default_factory=list)
    version: int = 1
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "order_number": self.order_number,
            "customer": self.customer.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
            "total_cost": self.total_cost,
            "total_profit": self.total_profit,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method.value,
            "source": self.source.value,
            "status_history": [h.to_dict() for h in self.status_history],
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        for key in _ORDER_OPTIONAL:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            order_number=data["order_number"],
            customer=CustomerInfo.from_dict(data.get("customer", {})),
            items=[LineItem.from_dict(i) for i in data.get("items", [])],
            subtotal=data["subtotal"],
            shipping=data.get("shipping", 0),
            tax=data.get("tax", 0),
            discount=data.get("discount", 0),
            total=data["total"],
            total_cost=data.get("total_cost", 0),
            total_profit=data.get("total_profit", 0),
            status=OrderStatus(data.get("status", OrderStatus.PENDING.value)),
            payment_status=PaymentStatus(
                data.get("payment_status", PaymentStatus.PENDING.value)
            ),
            payment_method=PaymentMethod(
                data.get("payment_method", PaymentMethod.WHATSAPP.value)
            ),
            source=OrderSource(data.get("source", OrderSource.MANUAL.value)),
            customer_id=data.get("customer_id"),
            shipping_method=data.get("shipping_method"),
            coupon_code=data.get("coupon_code"),
            tracking_number=data.get("tracking_number"),
            transaction_id=data.get("transaction_id"),
            notes=data.get("notes"),
            paid_at=data.get("paid_at"),
            cancelled_at=data.get("cancelled_at"),
            status_history=[
                StatusChange.from_dict(h) for h in data.get("status_history", [])
            ],
            version=data.get("version", 1),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create(
        cls,
        customer: CustomerInfo,
        items: list[LineItem],
        subtotal: int,
        shipping: int,
        tax: int,
        discount: int,
        total: int,
        total_cost: int = 0,
        total_profit: int = 0,
        payment_method: PaymentMethod = PaymentMethod.WHATSAPP,
        source: OrderSource = OrderSource.MANUAL,
        **extra: Any,
    ) -> "Order":
        """Create a new PENDING order with generated ID, number and timestamps."""
        now = _utc_now()
        return cls(
            id=_generate_id(),
            order_number=_generate_order_number(),
            customer=customer,
            items=items,
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            discount=discount,
            total=total,
            total_cost=total_cost,
            total_profit=total_profit,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_method=payment_method,
            source=source,
            status_history=[StatusChange(status=OrderStatus.PENDING, at=now)],
            version=1,
            created_at=now,
            updated_at=now,
            **extra,
        )


@dataclass
class StoreSettings:
    """Per-store checkout configuration."""

    store_name: str
    whatsapp_number: str
    shipping_options: list[ShippingOption]
    payment_methods: list[str]
    minimum_order: int = 0
    free_shipping_threshold: int = 0
    currency: str = "IDR"
    tax_rate: float = 0.0
    confirmation_template: str | None = None
    created_at: str = field(default_factory=_utc_now)
    updated_at: str = field(default_factory=_utc_now)

    def get_shipping_option(self, name: str | None) -> ShippingOption:
        """Look up a shipping option by name (case-insensitive); default is the first."""
        if not self.shipping_options:
            raise ValueError("Store has no shipping options configured")
        if name is None:
            return self.shipping_options[0]
        for option in self.shipping_options:
            if option.name.lower() == name.lower():
                return option
        raise KeyError(name)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "store_name": self.store_name,
            "whatsapp_number": self.whatsapp_number,
            "shipping_options": [o.to_dict() for o in self.shipping_options],
            "payment_methods": list(self.payment_methods),
            "minimum_order": self.minimum_order,
            "free_shipping_threshold": self.free_shipping_threshold,
            "currency": self.currency,
            "tax_rate": self.tax_rate,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.confirmation_template is not None:
            result["confirmation_template"] = self.confirmation_template
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoreSettings":
        return cls(
            store_name=data["store_name"],
            whatsapp_number=data["whatsapp_number"],
            shipping_options=[
                ShippingOption.from_dict(o) for o in data.get("shipping_options", [])
            ],
            payment_methods=data.get("payment_methods", []),
            minimum_order=data.get("minimum_order", 0),
            free_shipping_threshold=data.get("free_shipping_threshold", 0),
            currency=data.get("currency", "IDR"),
            tax_rate=data.get("tax_rate", 0.0),
            confirmation_template=data.get("confirmation_template"),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )

    @classmethod
    def create_default(cls) -> "StoreSettings":
        """Settings used by a freshly initialized store."""
        return cls(
            store_name="Toko Digital",
            whatsapp_number="6281234567890",
            shipping_options=[
                ShippingOption("Regular", 10000, "3-5 days"),
                ShippingOption("Express", 20000, "1-2 days"),
                ShippingOption("Same Day", 35000, "Today"),
            ],
            payment_methods=["Bank Transfer", "E-Wallet", "COD"],
            minimum_order=50000,
            free_shipping_threshold=200000,
        )
