"""WhatsApp checkout and order messages."""

import re
from urllib.parse import quote

from .cart import Cart
from .models import CustomerInfo, Order, OrderStatus, ShippingOption
from .money import format_price
from .pricing import PricingBreakdown

WHATSAPP_DOMAIN = "wa.me"
DEFAULT_COUNTRY_CODE = "62"
SEPARATOR = "=" * 32

DEFAULT_CONFIRMATION_TEMPLATE = (
    "Hello [CUSTOMER_NAME], thank you for your order [ORDER_NUMBER] at [STORE_NAME]!"
)


def normalize_phone(raw: str) -> str:
    """Strip every non-digit character."""
    return re.sub(r"\D", "", raw or "")


def to_international(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a local phone number to international digits.

    "0812..." and "812..." become "62812..."; numbers already starting with
    the country code are kept.
    """
    digits = normalize_phone(raw)
    if not digits:
        return digits
    if digits.startswith(country_code):
        return digits
    if digits.startswith("0"):
        return country_code + digits[1:]
    return country_code + digits


def is_valid_whatsapp_number(raw: str) -> bool:
    return 10 <= len(to_international(raw)) <= 15


def build_whatsapp_url(phone: str, text: str, domain: str = WHATSAPP_DOMAIN) -> str:
    """Deep link that opens a chat with phone prefilled with text."""
    return f"https://{domain}/{normalize_phone(phone)}?text={quote(text, safe='')}"


def compose_checkout_message(
    customer: CustomerInfo,
    cart: Cart,
    pricing: PricingBreakdown,
    shipping_option: ShippingOption,
    payment_method: str,
    store_name: str,
    coupon_code: str | None = None,
    currency: str = "IDR",
) -> str:
    """
    Compose the order message a shopper sends to the store.

    Output is deterministic for the same inputs.
    """

    def price(amount: int) -> str:
        return format_price(amount, currency)

    lines = [f"*New Order from {store_name}*", ""]

    lines.append("*Customer Information:*")
    lines.append(f"Name: {customer.name}")
    lines.append(f"Phone: {customer.phone}")
    if customer.email:
        lines.append(f"Email: {customer.email}")
    lines.append(f"Address: {customer.address}")
    if customer.city:
        lines.append(f"City: {customer.city}")
    if customer.postal_code:
        lines.append(f"Postal Code: {customer.postal_code}")
    if customer.notes:
        lines.append(f"Notes: {customer.notes}")

    lines.append("")
    lines.append("*Order Details:*")
    lines.append(SEPARATOR)
    for item in cart:
        lines.append(f"*{item.name}*")
        if item.variant:
            lines.append(f"Variant: {item.variant}")
        lines.append(
            f"{item.quantity} x {price(item.unit_price)} = {price(item.line_total)}"
        )
        if item.notes:
            lines.append(f"Notes: {item.notes}")
        lines.append("")

    lines.append(SEPARATOR)
    lines.append(f"Subtotal: {price(pricing.subtotal)}")
    if pricing.discount > 0:
        label = f"Discount ({coupon_code})" if coupon_code else "Discount"
        lines.append(f"{label}: -{price(pricing.discount)}")
    shipping = "FREE" if pricing.shipping_cost == 0 else price(pricing.shipping_cost)
    lines.append(f"Shipping ({shipping_option.name}): {shipping}")
    if pricing.tax > 0:
        lines.append(f"Tax: {price(pricing.tax)}")
    lines.append(f"*TOTAL: {price(pricing.total)}*")
    lines.append("")

    lines.append(f"*Shipping:* {shipping_option.name} ({shipping_option.duration_label})")
    lines.append(f"*Payment:* {payment_method}")
    lines.append("")
    lines.append(
        "Thank you for shopping with us! "
        "Our team will contact you shortly to confirm your order."
    )
    return "\n".join(lines)


def compose_product_inquiry(
    name: str,
    price: int,
    description: str | None = None,
    custom_message: str | None = None,
    currency: str = "IDR",
) -> str:
    """Message a shopper sends to ask about one product."""
    lines = [
        "Hello! I'm interested in this product:",
        "",
        f"*{name}*",
        f"Price: {format_price(price, currency)}",
    ]
    if description:
        lines.append(description)
    lines.append("")
    if custom_message:
        lines.append(f"Additional message: {custom_message}")
        lines.append("")
    lines.append("Could you please provide more information? Thank you!")
    return "\n".join(lines)


def compose_store_inquiry(store_name: str, custom_message: str | None = None) -> str:
    """General question to the store; a default question is used when none is given."""
    body = custom_message or "I would like to know more about your products and services."
    return "\n".join([f"Hello {store_name}!", "", body, "", "Thank you!"])


def _items_summary(order: Order, currency: str) -> str:
    return "\n".join(
        f"- {item.name} x{item.quantity} - {format_price(item.line_total, currency)}"
        for item in order.items
    )


def render_template(
    template: str, order: Order, store_name: str, currency: str = "IDR"
) -> str:
    """Fill [PLACEHOLDER] tokens in a store's message template."""
    values = {
        "[ORDER_ID]": order.order_number,
        "[ORDER_NUMBER]": order.order_number,
        "[CUSTOMER_NAME]": order.customer.name,
        "[TOTAL]": format_price(order.total, currency),
        "[SUBTOTAL]": format_price(order.subtotal, currency),
        "[ITEMS]": _items_summary(order, currency),
        "[STORE_NAME]": store_name,
        "[PAYMENT_METHOD]": order.payment_method.value,
        "[STATUS]": order.status.value,
    }
    result = template
    for token, value in values.items():
        result = result.replace(token, value)
    return result


def compose_order_confirmation(
    order: Order,
    store_name: str,
    template: str | None = None,
    custom_message: str | None = None,
    currency: str = "IDR",
) -> str:
    """
    Message the store sends to confirm an order.

    A custom message is rendered as-is; otherwise the store template is
    rendered and followed by the order details block.
    """
    if custom_message:
        return render_template(custom_message, order, store_name, currency)

    message = render_template(
        template or DEFAULT_CONFIRMATION_TEMPLATE, order, store_name, currency
    )
    details = [
        "",
        "",
        "*Order Details:*",
        _items_summary(order, currency),
        "",
        f"*Total: {format_price(order.total, currency)}*",
        f"*Payment Method:* {order.payment_method.value}",
        f"*Status:* {order.status.value}",
        "",
        f"Thank you for choosing {store_name}!",
    ]
    return message + "\n".join(details)


def compose_status_notification(
    order: Order, store_name: str, currency: str = "IDR"
) -> str:
    """Customer notice for a cancelled or refunded order."""
    if order.status == OrderStatus.CANCELLED:
        headline = f"Your order {order.order_number} at {store_name} has been cancelled."
    elif order.status == OrderStatus.REFUNDED:
        headline = (
            f"Your order {order.order_number} at {store_name} has been refunded "
            f"({format_price(order.total, currency)})."
        )
    else:
        headline = (
            f"Your order {order.order_number} at {store_name} is now "
            f"{order.status.value}."
        )
    lines = [f"Hello {order.customer.name},", "", headline]
    if order.status_history and order.status_history[-1].note:
        lines.append(f"Reason: {order.status_history[-1].note}")
    lines.append("")
    lines.append("Please reply to this message if you have any questions.")
    return "\n".join(lines)


class WhatsAppLinkHook:
    """
    Status hook that prepares a customer notification link.

    Links are collected in `outbox` for the caller to deliver; nothing is sent.
    """

    def __init__(self, store_name: str, currency: str = "IDR"):
        self.store_name = store_name
        self.currency = currency
        self.outbox: list[tuple[str, str]] = []

    def on_status_change(self, order: Order, previous: OrderStatus) -> None:
        text = compose_status_notification(order, self.store_name, self.currency)
        phone = to_international(order.customer.phone)
        self.outbox.append((order.id, build_whatsapp_url(phone, text)))
