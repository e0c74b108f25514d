"""Tests for the FastAPI API."""

import csv
import io

import pytest
from fastapi.testclient import TestClient

CUSTOMER = {
    "name": "Budi Santoso",
    "phone": "0812-3456-7890",
    "address": "Jl. Merdeka 10",
    "city": "Bandung",
    "postal_code": "40111",
}

ITEMS = [
    {"product_id": "sku-hp", "name": "Headphones", "unit_price": 299000, "unit_cost": 200000},
    {"product_id": "sku-watch", "name": "Watch", "unit_price": 3500000, "unit_cost": 3000000},
]


@pytest.fixture
def api_client(data_dir):
    """Create test client with store data in a temp directory."""
    from orderdesk.api import app

    return TestClient(app)


@pytest.fixture
def created_order(api_client):
    response = api_client.post(
        "/api/orders", json={"customer": CUSTOMER, "items": ITEMS, "shipping": 10000}
    )
    assert response.status_code == 201
    return response.json()


class TestHealthCheck:
    def test_health_empty(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["order_count"] == 0
        assert data["settings_initialized"] is False

    def test_health_counts_orders(self, api_client, created_order):
        assert api_client.get("/api/health").json()["order_count"] == 1


class TestCreateOrder:
    def test_totals_cost_and_profit(self, created_order):
        assert created_order["subtotal"] == 3799000
        assert created_order["total"] == 3809000
        assert created_order["total_cost"] == 3200000
        assert created_order["total_profit"] == 3809000 - 3200000 - 10000
        assert created_order["status"] == "PENDING"
        assert created_order["source"] == "MANUAL"
        assert created_order["version"] == 1
        assert created_order["order_number"].startswith("ORD-")

    def test_empty_items_rejected(self, api_client):
        response = api_client.post("/api/orders", json={"customer": CUSTOMER, "items": []})
        assert response.status_code == 422

    def test_zero_quantity_rejected(self, api_client):
        item = dict(ITEMS[0], quantity=0)
        response = api_client.post("/api/orders", json={"customer": CUSTOMER, "items": [item]})
        assert response.status_code == 422

    def test_blank_name_rejected(self, api_client):
        customer = dict(CUSTOMER, name=" ")
        response = api_client.post("/api/orders", json={"customer": customer, "items": ITEMS})
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"


class TestListAndGet:
    def test_list(self, api_client, created_order):
        data = api_client.get("/api/orders").json()
        assert data["total"] == 1
        assert data["total_pages"] == 1
        assert data["orders"][0]["id"] == created_order["id"]

    def test_filter_by_status(self, api_client, created_order):
        data = api_client.get("/api/orders", params={"status": "SHIPPED"}).json()
        assert data["orders"] == []
        assert data["total"] == 0

    def test_invalid_status_filter(self, api_client):
        assert api_client.get("/api/orders", params={"status": "LOST"}).status_code == 422

    def test_detail(self, api_client, created_order):
        response = api_client.get(f"/api/orders/{created_order['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["breakdown"]["total"] == 3809000
        assert data["items"][0]["line_total"] == 299000
        assert data["item_count"] == 2
        assert data["allowed_transitions"] == ["CONFIRMED", "CANCELLED"]

    def test_detail_by_order_number(self, api_client, created_order):
        response = api_client.get(f"/api/orders/{created_order['order_number']}")
        assert response.json()["id"] == created_order["id"]

    def test_not_found(self, api_client):
        response = api_client.get("/api/orders/nope")
        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFoundError"


class TestStatusUpdates:
    def test_transition(self, api_client, created_order):
        response = api_client.post(
            f"/api/orders/{created_order['id']}/status",
            json={"status": "CONFIRMED", "expected_version": 1},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "CONFIRMED"
        assert data["order"]["version"] == 2
        assert data["notifications"] == []

    def test_illegal_transition(self, api_client, created_order):
        response = api_client.post(
            f"/api/orders/{created_order['id']}/status",
            json={"status": "SHIPPED", "tracking_number": "JNE1"},
        )
        assert response.status_code == 409
        assert response.json()["error_type"] == "InvalidTransitionError"

    def test_stale_version(self, api_client, created_order):
        url = f"/api/orders/{created_order['id']}/status"
        api_client.post(url, json={"status": "CONFIRMED", "expected_version": 1})

        response = api_client.post(url, json={"status": "CANCELLED", "expected_version": 1})
        assert response.status_code == 409
        assert response.json()["error_type"] == "ConflictError"

    def test_cancel_prepares_notification(self, api_client, created_order):
        response = api_client.post(
            f"/api/orders/{created_order['id']}/status",
            json={"status": "CANCELLED", "note": "out of stock"},
        )
        notifications = response.json()["notifications"]
        assert len(notifications) == 1
        assert notifications[0].startswith("https://wa.me/6281234567890?text=")

    def test_shipping_without_tracking(self, api_client, created_order):
        url = f"/api/orders/{created_order['id']}/status"
        api_client.post(url, json={"status": "CONFIRMED"})
        api_client.post(url, json={"status": "PROCESSING"})

        response = api_client.post(url, json={"status": "SHIPPED"})
        assert response.status_code == 400

    def test_payment(self, api_client, created_order):
        response = api_client.post(
            f"/api/orders/{created_order['id']}/payment",
            json={"payment_status": "PAID", "transaction_id": "TX-1"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "PAID"
        assert data["paid_at"] is not None

    def test_confirmation_message(self, api_client, created_order):
        response = api_client.post(
            f"/api/orders/{created_order['id']}/confirmation", json={}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["phone"] == "6281234567890"
        assert "Budi Santoso" in data["message"]
        assert data["whatsapp_url"].startswith("https://wa.me/6281234567890?text=")


class TestExportAndStats:
    def test_csv_export(self, api_client, created_order):
        response = api_client.get("/api/orders/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert rows[0]["order_number"] == created_order["order_number"]

    def test_json_export(self, api_client, created_order):
        data = api_client.get("/api/orders/export", params={"format": "json"}).json()
        assert data["count"] == 1

    def test_customer_stats(self, api_client, created_order):
        data = api_client.get("/api/customers/stats").json()
        assert data["count"] == 1
        assert data["customers"][0]["total_spent"] == 3809000


class TestCheckout:
    def test_quote(self, api_client):
        response = api_client.post("/api/checkout/quote", json={"items": ITEMS})
        assert response.status_code == 200
        data = response.json()
        assert data["breakdown"]["subtotal"] == 3799000
        assert data["breakdown"]["shipping_cost"] == 0
        assert data["free_shipping"] is True
        assert data["meets_minimum"] is True

    def test_quote_with_invalid_coupon(self, api_client):
        response = api_client.post(
            "/api/checkout/quote", json={"items": ITEMS, "coupon": "NOPE"}
        )
        data = response.json()
        assert data["coupon_code"] is None
        assert data["notices"] == ["Invalid coupon: NOPE (unknown code)"]

    def test_quote_unknown_shipping(self, api_client):
        response = api_client.post(
            "/api/checkout/quote", json={"items": ITEMS, "shipping": "Drone"}
        )
        assert response.status_code == 400

    def test_submit(self, api_client):
        response = api_client.post(
            "/api/checkout",
            json={"items": ITEMS, "customer": CUSTOMER, "coupon": "WELCOME10"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["order"]["source"] == "WHATSAPP"
        assert data["order"]["discount"] == 379900
        assert data["whatsapp_url"].startswith("https://wa.me/6281234567890?text=")
        assert api_client.get("/api/health").json()["order_count"] == 1

    def test_submit_below_minimum(self, api_client):
        items = [{"product_id": "p1", "name": "Stiker", "unit_price": 30000}]
        response = api_client.post("/api/checkout", json={"items": items, "customer": CUSTOMER})
        assert response.status_code == 400
        assert response.json()["error_type"] == "MinimumOrderError"

    def test_submit_without_customer(self, api_client):
        response = api_client.post("/api/checkout", json={"items": ITEMS})
        assert response.status_code == 400


class TestSettings:
    def test_defaults_when_uninitialized(self, api_client):
        data = api_client.get("/api/settings").json()
        assert data["store_name"] == "Toko Digital"
        assert data["minimum_order"] == 50000

    def test_update_initializes_and_persists(self, api_client):
        response = api_client.put(
            "/api/settings",
            json={"store_name": "Warung Sari", "minimum_order": 0},
        )
        assert response.status_code == 200
        assert response.json()["store_name"] == "Warung Sari"
        assert api_client.get("/api/health").json()["settings_initialized"] is True
        assert api_client.get("/api/settings").json()["minimum_order"] == 0

    def test_update_shipping_options(self, api_client):
        response = api_client.put(
            "/api/settings",
            json={"shipping_options": [{"name": "Kurir", "price": 5000, "duration_label": "Today"}]},
        )
        assert response.json()["shipping_options"][0]["name"] == "Kurir"

    def test_empty_shipping_options_rejected(self, api_client):
        response = api_client.put("/api/settings", json={"shipping_options": []})
        assert response.status_code == 400


class TestSettingsNulls:
    @pytest.mark.parametrize("field", ["minimum_order", "store_name", "shipping_options"])
    def test_null_required_field_rejected(self, api_client, field):
        response = api_client.put("/api/settings", json={field: None})
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

        assert api_client.get("/api/settings").status_code == 200
        quote = api_client.post("/api/checkout/quote", json={"items": ITEMS})
        assert quote.status_code == 200


class TestWhatsAppUrl:
    PRODUCT = {"product_id": "sku-hp", "name": "Headphones", "price": 299000, "description": "Wireless"}

    def test_store_inquiry(self, api_client):
        response = api_client.post("/api/whatsapp/url", json={"type": "store"})
        assert response.status_code == 200
        data = response.json()
        assert data["message"].startswith("Hello Toko Digital!")
        assert data["whatsapp_url"].startswith("https://wa.me/6281234567890?text=")

    def test_product_inquiry(self, api_client):
        response = api_client.post(
            "/api/whatsapp/url",
            json={"type": "inquiry", "product": self.PRODUCT, "custom_message": "Ada warna putih?"},
        )
        message = response.json()["message"]
        assert "*Headphones*" in message
        assert "Price: Rp 299.000" in message
        assert "Additional message: Ada warna putih?" in message

    def test_checkout_draft_uses_placeholders(self, api_client):
        response = api_client.post(
            "/api/whatsapp/url",
            json={"type": "checkout", "product": self.PRODUCT, "quantity": 2},
        )
        message = response.json()["message"]
        assert "Name: [Your Name]" in message
        assert "2 x Rp 299.000 = Rp 598.000" in message

    def test_bulk(self, api_client):
        response = api_client.post(
            "/api/whatsapp/url",
            json={"type": "bulk", "items": ITEMS, "customer": CUSTOMER},
        )
        message = response.json()["message"]
        assert "Name: Budi Santoso" in message
        assert "*TOTAL: Rp 3.799.000*" in message

    @pytest.mark.parametrize("payload", [{"type": "inquiry"}, {"type": "checkout"}, {"type": "bulk"}])
    def test_missing_payload_rejected(self, api_client, payload):
        assert api_client.post("/api/whatsapp/url", json=payload).status_code == 400

    def test_unknown_type(self, api_client):
        assert api_client.post("/api/whatsapp/url", json={"type": "spam"}).status_code == 422
