"""Checkout session: cart, customer details, shipping and payment choices."""

import logging
from dataclasses import dataclass

from .cart import Cart
from .errors import CouponInvalidError, ValidationError
from .message import build_whatsapp_url, compose_checkout_message, to_international
from .models import (
    Coupon,
    CustomerInfo,
    Order,
    OrderSource,
    PaymentMethod,
    ShippingOption,
    StoreSettings,
)
from .pricing import (
    CouponValidator,
    PercentCouponValidator,
    PricingBreakdown,
    check_minimum_order,
    compute_totals,
    resolve_coupon,
)

logger = logging.getLogger(__name__)

# Display names used by the storefront, mapped to stored payment methods
PAYMENT_METHOD_ALIASES = {
    "bank transfer": PaymentMethod.BANK_TRANSFER,
    "transfer bank": PaymentMethod.BANK_TRANSFER,
    "e-wallet": PaymentMethod.EWALLET,
    "ewallet": PaymentMethod.EWALLET,
    "cod": PaymentMethod.COD,
    "credit card": PaymentMethod.CREDIT_CARD,
    "virtual account": PaymentMethod.VIRTUAL_ACCOUNT,
    "whatsapp": PaymentMethod.WHATSAPP,
}


def to_payment_method(label: str) -> PaymentMethod:
    """Map a storefront label or enum value to a PaymentMethod (default WHATSAPP)."""
    try:
        return PaymentMethod(label.upper())
    except ValueError:
        return PAYMENT_METHOD_ALIASES.get(label.strip().lower(), PaymentMethod.WHATSAPP)


def validate_customer(customer: CustomerInfo, require_location: bool = False) -> None:
    """
    Check required customer fields before submission.

    Args:
        customer: Details to check.
        require_location: Also require city and postal code (extended flow).

    Raises:
        ValidationError: Naming the first missing field.
    """
    required = ["name", "phone", "address"]
    if require_location:
        required += ["city", "postal_code"]
    for name in required:
        value = getattr(customer, name)
        if not value or not str(value).strip():
            raise ValidationError("is required", field=name)
    if len(to_international(customer.phone)) < 10:
        raise ValidationError("is not a valid phone number", field="phone")


@dataclass
class CheckoutResult:
    """A submitted order with the message and link for the store's chat."""

    order: Order
    message: str
    whatsapp_url: str


class CheckoutSession:
    """
    State of one shopper's checkout.

    The session owns its cart. Submitting turns it into a PENDING order and
    clears the cart; the caller is responsible for storing the order and
    opening the link.
    """

    def __init__(
        self,
        settings: StoreSettings,
        coupon_validator: CouponValidator | None = None,
        require_location: bool = True,
    ):
        self.settings = settings
        self.coupon_validator = coupon_validator or PercentCouponValidator()
        self.require_location = require_location
        self.cart = Cart()
        self.customer: CustomerInfo | None = None
        self.shipping_option: ShippingOption = settings.get_shipping_option(None)
        self.payment_method: str = (
            settings.payment_methods[0] if settings.payment_methods else "WhatsApp"
        )
        self.coupon: Coupon | None = None
        self.notices: list[str] = []

    def select_shipping(self, name: str) -> ShippingOption:
        """
        Raises:
            ValidationError: If the store has no option with this name.
        """
        try:
            self.shipping_option = self.settings.get_shipping_option(name)
        except KeyError:
            raise ValidationError(f"unknown shipping option '{name}'", field="shipping")
        return self.shipping_option

    def select_payment(self, method: str) -> str:
        if self.settings.payment_methods and method not in self.settings.payment_methods:
            raise ValidationError(f"unknown payment method '{method}'", field="payment_method")
        self.payment_method = method
        return method

    def apply_coupon(self, code: str) -> Coupon | None:
        """
        Apply a coupon to the current subtotal.

        An invalid code is not fatal: the session keeps going without a
        discount and records a notice for the shopper.
        """
        try:
            self.coupon = resolve_coupon(code, self.cart.subtotal(), self.coupon_validator)
        except CouponInvalidError as e:
            self.coupon = None
            self.notices.append(str(e))
            return None
        return self.coupon

    def remove_coupon(self) -> None:
        self.coupon = None

    def pricing(self) -> PricingBreakdown:
        # Re-resolve so a coupon tracks cart changes made after it was applied
        coupon = self.coupon
        if coupon is not None:
            try:
                coupon = resolve_coupon(
                    coupon.code, self.cart.subtotal(), self.coupon_validator
                )
            except CouponInvalidError as e:
                self.notices.append(str(e))
                coupon = self.coupon = None
        return compute_totals(
            self.cart,
            self.shipping_option,
            coupon=coupon,
            free_shipping_threshold=self.settings.free_shipping_threshold,
            tax_rate=self.settings.tax_rate,
        )

    def compose_message(self) -> str:
        if self.customer is None:
            raise ValidationError("customer details are missing", field="customer")
        return compose_checkout_message(
            self.customer,
            self.cart,
            self.pricing(),
            self.shipping_option,
            self.payment_method,
            self.settings.store_name,
            coupon_code=self.coupon.code if self.coupon else None,
            currency=self.settings.currency,
        )

    def submit(self) -> CheckoutResult:
        """
        Validate the session and turn it into an order.

        Raises:
            ValidationError: If the cart is empty or customer details are incomplete.
            MinimumOrderError: If the total is below the store minimum.
        """
        if self.cart.is_empty:
            raise ValidationError("cart is empty", field="items")
        if self.customer is None:
            raise ValidationError("customer details are missing", field="customer")
        validate_customer(self.customer, require_location=self.require_location)

        pricing = self.pricing()
        check_minimum_order(
            pricing.total, self.settings.minimum_order, self.settings.currency
        )

        message = self.compose_message()
        url = build_whatsapp_url(to_international(self.settings.whatsapp_number), message)

        items = self.cart.items
        total_cost = sum(item.unit_cost * item.quantity for item in items)
        order = Order.create(
            customer=self.customer,
            items=items,
            subtotal=pricing.subtotal,
            shipping=pricing.shipping_cost,
            tax=pricing.tax,
            discount=pricing.discount,
            total=pricing.total,
            total_cost=total_cost,
            total_profit=pricing.total - total_cost - pricing.shipping_cost,
            payment_method=to_payment_method(self.payment_method),
            source=OrderSource.WHATSAPP,
            shipping_method=self.shipping_option.name,
            coupon_code=self.coupon.code if self.coupon else None,
            notes=self.customer.notes,
        )
        logger.info(
            "Checkout submitted for %s: %d items, total %d",
            self.customer.name,
            self.cart.item_count(),
            pricing.total,
        )

        self.cart.clear()
        self.coupon = None
        return CheckoutResult(order=order, message=message, whatsapp_url=url)
