"""Tests for OrderStore."""

import json

import pytest

from orderdesk.cart import Cart
from orderdesk.errors import (
    ConflictError,
    InvalidSchemaVersionError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from orderdesk.models import CustomerInfo, OrderStatus, PaymentStatus

from .conftest import make_order


class RecordingHook:
    def __init__(self, store):
        self.store = store
        self.seen = []

    def on_status_change(self, order, previous):
        # The new status must already be on disk when hooks run
        self.seen.append(self.store.get_order(order.id).status)


@pytest.fixture
def order(order_store, customer, cart):
    return order_store.add_order(make_order(customer, cart))


class TestOrderStore:
    def test_empty_store(self, order_store):
        assert order_store.list_orders() == []
        assert order_store.count() == 0

    def test_add_and_get(self, order_store, order):
        loaded = order_store.get_order(order.id)

        assert loaded.order_number == order.order_number
        assert loaded.total == 3799000
        assert order_store.count() == 1

    def test_file_format(self, order_store, order):
        data = json.loads(order_store.config_path.read_text())
        assert data["schema_version"] == 1
        assert data["orders"][0]["id"] == order.id

    def test_get_by_order_number(self, order_store, order):
        assert order_store.get_order(order.order_number).id == order.id

    def test_get_by_prefix(self, order_store, order):
        assert order_store.get_order(order.id[:8]).id == order.id

    def test_ambiguous_prefix(self, order_store, customer):
        for suffix in ("1", "2"):
            o = make_order(customer, Cart().add_item("p", "Topi", 1000))
            o.id = f"abc{suffix}-order"
            order_store.add_order(o)

        with pytest.raises(OrderNotFoundError) as exc_info:
            order_store.get_order("abc")
        assert "ambiguous" in str(exc_info.value)

    @pytest.mark.parametrize("ref", ["", "   "])
    def test_blank_ref_not_found(self, order_store, order, ref):
        with pytest.raises(OrderNotFoundError) as exc_info:
            order_store.get_order(ref)
        assert "ambiguous" not in str(exc_info.value)

    def test_unknown_order(self, order_store):
        with pytest.raises(OrderNotFoundError):
            order_store.get_order("does-not-exist")

    def test_unsupported_schema(self, order_store):
        order_store.config_dir.mkdir(parents=True, exist_ok=True)
        order_store.config_path.write_text(json.dumps({"schema_version": 99, "orders": []}))
        with pytest.raises(InvalidSchemaVersionError):
            order_store.list_orders()


class TestUpdates:
    def test_status_update_bumps_version(self, order_store, order):
        updated = order_store.update_status(order.id, OrderStatus.CONFIRMED, expected_version=1)

        assert updated.version == 2
        assert order_store.get_order(order.id).status == OrderStatus.CONFIRMED

    def test_stale_version_conflicts(self, order_store, order):
        order_store.update_status(order.id, OrderStatus.CONFIRMED, expected_version=1)

        with pytest.raises(ConflictError) as exc_info:
            order_store.update_status(order.id, OrderStatus.CANCELLED, expected_version=1)

        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert order_store.get_order(order.id).status == OrderStatus.CONFIRMED

    def test_invalid_transition_not_persisted(self, order_store, order):
        with pytest.raises(InvalidTransitionError):
            order_store.update_status(order.id, OrderStatus.DELIVERED)

        stored = order_store.get_order(order.id)
        assert stored.status == OrderStatus.PENDING
        assert stored.version == 1

    def test_hooks_run_after_write(self, order_store, order):
        hook = RecordingHook(order_store)
        order_store.update_status(order.id, OrderStatus.CANCELLED, hooks=[hook])
        assert hook.seen == [OrderStatus.CANCELLED]

    def test_payment_update(self, order_store, order):
        updated = order_store.update_payment(
            order.id, PaymentStatus.PAID, expected_version=1, transaction_id="TX-9"
        )

        assert updated.version == 2
        stored = order_store.get_order(order.id)
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.transaction_id == "TX-9"
        assert stored.paid_at is not None


class TestSearch:
    @pytest.fixture
    def orders(self, order_store):
        created = []
        for i, (name, total) in enumerate([("Andi", 100000), ("Budi", 300000), ("Citra", 200000)]):
            o = make_order(
                CustomerInfo(name=name, phone=f"08120000000{i}", address="x"),
                Cart().add_item("p", "Item", total),
            )
            o.created_at = f"2026-01-0{i + 1}T00:00:00Z"
            created.append(order_store.add_order(o))
        order_store.update_status(created[1].id, OrderStatus.CONFIRMED)
        return created

    def test_newest_first_by_default(self, order_store, orders):
        page = order_store.search()
        assert [o.customer.name for o in page.orders] == ["Citra", "Budi", "Andi"]

    def test_filter_by_status(self, order_store, orders):
        page = order_store.search(status=OrderStatus.CONFIRMED)
        assert page.total == 1
        assert page.orders[0].customer.name == "Budi"

    def test_search_by_name(self, order_store, orders):
        assert order_store.search(search="cit").orders[0].customer.name == "Citra"

    def test_sort_by_total_ascending(self, order_store, orders):
        page = order_store.search(sort_by="total", sort_order="asc")
        assert [o.total for o in page.orders] == [100000, 200000, 300000]

    def test_pagination(self, order_store, orders):
        page = order_store.search(page=2, limit=2)

        assert page.total == 3
        assert page.total_pages == 2
        assert [o.customer.name for o in page.orders] == ["Andi"]
