"""Checkout pricing: subtotal, coupon discount, shipping, tax and total."""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Protocol

from .cart import Cart
from .errors import CouponInvalidError, MinimumOrderError
from .models import Coupon, CouponCheck, LineItem, ShippingOption

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingBreakdown:
    """Totals shown at checkout and stored on the order."""

    subtotal: int
    discount: int
    shipping_cost: int
    tax: int
    total: int

    @property
    def free_shipping(self) -> bool:
        return self.shipping_cost == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping_cost": self.shipping_cost,
            "tax": self.tax,
            "total": self.total,
        }


@dataclass(frozen=True)
class OrderTotals:
    """Totals for a manually entered order, including cost and profit."""

    subtotal: int
    shipping: int
    tax: int
    discount: int
    total: int
    total_cost: int
    total_profit: int


class CouponValidator(Protocol):
    """Resolves a coupon code against the pre-discount subtotal."""

    def validate(self, code: str, subtotal: int) -> CouponCheck: ...


class PercentCouponValidator:
    """
    Validator backed by a fixed table of percentage coupons.

    Codes are matched case-insensitively. The discount is the given percent
    of the subtotal, truncated to whole currency units.
    """

    def __init__(self, percents: dict[str, int] | None = None):
        table = percents if percents is not None else {"WELCOME10": 10}
        self.percents = {code.upper(): pct for code, pct in table.items()}

    def validate(self, code: str, subtotal: int) -> CouponCheck:
        pct = self.percents.get(code.strip().upper())
        if pct is None:
            return CouponCheck(valid=False, reason="unknown code")
        return CouponCheck(valid=True, discount=subtotal * pct // 100)


def resolve_coupon(code: str, subtotal: int, validator: CouponValidator) -> Coupon:
    """
    Turn a coupon code into a Coupon with a concrete discount amount.

    Raises:
        CouponInvalidError: If the validator rejects the code.
    """
    check = validator.validate(code, subtotal)
    if not check.valid:
        logger.warning("Rejected coupon %r: %s", code, check.reason)
        raise CouponInvalidError(code, check.reason)
    return Coupon(code=code.strip().upper(), discount_amount=max(0, check.discount))


def shipping_cost_for(
    subtotal: int, option: ShippingOption, free_shipping_threshold: int
) -> int:
    """Shipping is free once the raw (pre-discount) subtotal reaches the threshold."""
    if free_shipping_threshold > 0 and subtotal >= free_shipping_threshold:
        return 0
    return option.price


def tax_for(subtotal: int, tax_rate: float) -> int:
    """
    Tax on subtotal, floored to whole units.

    The rate goes through its decimal string form so 0.29 means exactly 29%.
    """
    if not tax_rate:
        return 0
    return math.floor(Decimal(subtotal) * Decimal(str(tax_rate)))


def compute_totals(
    cart: Cart,
    shipping_option: ShippingOption,
    coupon: Coupon | None = None,
    free_shipping_threshold: int = 0,
    tax_rate: float = 0.0,
) -> PricingBreakdown:
    """
    Compute checkout totals for a cart.

    The total is floored at zero when the discount exceeds what is owed.
    """
    subtotal = cart.subtotal()
    discount = coupon.discount_amount if coupon else 0
    shipping_cost = shipping_cost_for(subtotal, shipping_option, free_shipping_threshold)
    tax = tax_for(subtotal, tax_rate)
    total = max(0, subtotal - discount + shipping_cost + tax)
    return PricingBreakdown(
        subtotal=subtotal,
        discount=discount,
        shipping_cost=shipping_cost,
        tax=tax,
        total=total,
    )


def check_minimum_order(total: int, minimum_order: int, currency: str = "IDR") -> None:
    """
    Raises:
        MinimumOrderError: If total is below minimum_order.
    """
    if minimum_order > 0 and total < minimum_order:
        raise MinimumOrderError(total, minimum_order, currency)


def compute_order_totals(
    items: Iterable[LineItem],
    shipping: int = 0,
    tax: int = 0,
    discount: int = 0,
) -> OrderTotals:
    """
    Totals for an order entered by the store owner.

    Profit excludes shipping, which is passed through to the courier.
    """
    items = list(items)
    subtotal = sum(item.unit_price * item.quantity for item in items)
    total_cost = sum(item.unit_cost * item.quantity for item in items)
    total = max(0, subtotal + shipping + tax - discount)
    return OrderTotals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount=discount,
        total=total,
        total_cost=total_cost,
        total_profit=total - total_cost - shipping,
    )
