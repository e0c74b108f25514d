"""Tests for WhatsApp message composition."""

from urllib.parse import parse_qs, unquote, urlparse

import pytest

from orderdesk.message import (
    WhatsAppLinkHook,
    build_whatsapp_url,
    compose_checkout_message,
    compose_order_confirmation,
    compose_product_inquiry,
    compose_status_notification,
    compose_store_inquiry,
    is_valid_whatsapp_number,
    normalize_phone,
    render_template,
    to_international,
)
from orderdesk.models import OrderStatus, ShippingOption
from orderdesk.pricing import compute_totals
from orderdesk.status import transition

from .conftest import make_order

REGULAR = ShippingOption("Regular", 10000, "3-5 days")


class TestPhoneNumbers:
    def test_normalize_strips_non_digits(self):
        assert normalize_phone("+62 812-3456-7890") == "6281234567890"
        assert normalize_phone("") == ""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("081234567890", "6281234567890"),
            ("81234567890", "6281234567890"),
            ("+62 812 3456 7890", "6281234567890"),
            ("6281234567890", "6281234567890"),
        ],
    )
    def test_to_international(self, raw, expected):
        assert to_international(raw) == expected

    def test_validity(self):
        assert is_valid_whatsapp_number("0812-3456-7890")
        assert not is_valid_whatsapp_number("123")


class TestWhatsAppUrl:
    def test_text_is_fully_encoded(self):
        text = "Halo & selamat\nTotal: Rp 10.000 #1"
        url = build_whatsapp_url("+62 812-3456-7890", text)

        assert url.startswith("https://wa.me/6281234567890?text=")
        encoded = url.split("?text=", 1)[1]
        assert " " not in encoded and "&" not in encoded and "\n" not in encoded
        assert unquote(encoded) == text

    def test_custom_domain(self):
        url = build_whatsapp_url("628123", "hi", domain="api.whatsapp.com")
        assert urlparse(url).netloc == "api.whatsapp.com"


class TestCheckoutMessage:
    def test_contains_all_blocks(self, customer, cart):
        cart.add_item("sku-case", "Case", 50000, variant="Black")
        pricing = compute_totals(cart, REGULAR, free_shipping_threshold=200000)

        text = compose_checkout_message(
            customer, cart, pricing, REGULAR, "Bank Transfer", "Toko Digital"
        )
        lines = text.split("\n")

        assert lines[0] == "*New Order from Toko Digital*"
        assert "Name: Budi Santoso" in lines
        assert "Email: budi@example.com" in lines
        assert "City: Bandung" in lines
        assert "Variant: Black" in lines
        assert "1 x Rp 3.500.000 = Rp 3.500.000" in lines
        assert "Shipping (Regular): FREE" in lines
        assert "*TOTAL: Rp 3.849.000*" in lines
        assert "*Shipping:* Regular (3-5 days)" in lines
        assert "*Payment:* Bank Transfer" in lines

    def test_discount_line_names_coupon(self, customer):
        from orderdesk.cart import Cart
        from orderdesk.models import Coupon

        cart = Cart().add_item("p1", "Jaket", 300000)
        pricing = compute_totals(cart, REGULAR, coupon=Coupon("WELCOME10", 30000))
        text = compose_checkout_message(
            customer, cart, pricing, REGULAR, "COD", "Toko", coupon_code="WELCOME10"
        )

        assert "Discount (WELCOME10): -Rp 30.000" in text
        assert "Shipping (Regular): Rp 10.000" in text

    def test_optional_fields_omitted(self, cart):
        from orderdesk.models import CustomerInfo

        customer = CustomerInfo(name="Sari", phone="0811111111", address="Jl. Mawar 1")
        pricing = compute_totals(cart, REGULAR)
        text = compose_checkout_message(customer, cart, pricing, REGULAR, "COD", "Toko")

        assert "Email:" not in text
        assert "Discount" not in text
        assert "Tax:" not in text

    def test_deterministic(self, customer, cart):
        pricing = compute_totals(cart, REGULAR)
        args = (customer, cart, pricing, REGULAR, "COD", "Toko")
        assert compose_checkout_message(*args) == compose_checkout_message(*args)

    def test_survives_url_round_trip(self, customer, cart):
        pricing = compute_totals(cart, REGULAR)
        text = compose_checkout_message(customer, cart, pricing, REGULAR, "COD", "Toko")
        url = build_whatsapp_url("6281234567890", text)

        assert parse_qs(urlparse(url).query)["text"][0] == text


class TestOrderMessages:
    def test_render_template_placeholders(self, customer, cart):
        order = make_order(customer, cart)
        text = render_template(
            "[CUSTOMER_NAME] / [ORDER_NUMBER] / [TOTAL] / [STORE_NAME] / [STATUS]",
            order,
            "Toko",
        )
        assert text == f"Budi Santoso / {order.order_number} / Rp 3.799.000 / Toko / PENDING"

    def test_confirmation_appends_details(self, customer, cart):
        order = make_order(customer, cart)
        text = compose_order_confirmation(order, "Toko")

        assert text.startswith("Hello Budi Santoso, thank you for your order")
        assert "- Headphones x1 - Rp 299.000" in text
        assert "*Total: Rp 3.799.000*" in text

    def test_custom_message_replaces_template(self, customer, cart):
        order = make_order(customer, cart)
        text = compose_order_confirmation(order, "Toko", custom_message="Hi [CUSTOMER_NAME]")
        assert text == "Hi Budi Santoso"

    def test_cancellation_notice_includes_reason(self, customer, cart):
        order = make_order(customer, cart)
        transition(order, OrderStatus.CANCELLED, note="out of stock", hooks=())
        text = compose_status_notification(order, "Toko")

        assert "has been cancelled" in text
        assert "Reason: out of stock" in text

    def test_link_hook_collects_urls(self, customer, cart):
        order = make_order(customer, cart)
        hook = WhatsAppLinkHook("Toko")
        transition(order, OrderStatus.CANCELLED, hooks=[hook])

        assert len(hook.outbox) == 1
        order_id, url = hook.outbox[0]
        assert order_id == order.id
        assert url.startswith("https://wa.me/6281234567890?text=")


class TestInquiries:
    def test_product_inquiry(self):
        text = compose_product_inquiry("Headphones", 299000, description="Wireless, black")
        lines = text.split("\n")

        assert lines[0] == "Hello! I'm interested in this product:"
        assert "*Headphones*" in lines
        assert "Price: Rp 299.000" in lines
        assert "Wireless, black" in lines
        assert "Additional message" not in text
        assert lines[-1] == "Could you please provide more information? Thank you!"

    def test_product_inquiry_custom_message_and_currency(self):
        text = compose_product_inquiry("Mug", 12, custom_message="In stock?", currency="USD")
        assert "Price: $12.00" in text
        assert "Additional message: In stock?" in text

    def test_store_inquiry_default_question(self):
        text = compose_store_inquiry("Toko Digital")
        assert text == (
            "Hello Toko Digital!\n\n"
            "I would like to know more about your products and services.\n\n"
            "Thank you!"
        )

    def test_store_inquiry_custom_question(self):
        text = compose_store_inquiry("Toko Digital", "Buka hari Minggu?")
        assert "Buka hari Minggu?" in text
        assert "I would like to know more" not in text
