"""Pytest fixtures for orderdesk tests."""

import tempfile
from pathlib import Path

import pytest

from orderdesk.cart import Cart
from orderdesk.models import CustomerInfo, Order, StoreSettings
from orderdesk.order_store import OrderStore
from orderdesk.pricing import compute_order_totals
from orderdesk.settings_store import SettingsStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def data_dir(temp_dir, monkeypatch):
    """Point ORDERDESK_DATA_DIR at a temporary directory."""
    monkeypatch.setenv("ORDERDESK_DATA_DIR", str(temp_dir))
    return temp_dir


@pytest.fixture
def settings():
    return StoreSettings.create_default()


@pytest.fixture
def settings_store(data_dir):
    store = SettingsStore(data_dir)
    store.init()
    return store


@pytest.fixture
def order_store(data_dir):
    return OrderStore(data_dir)


@pytest.fixture
def customer():
    return CustomerInfo(
        name="Budi Santoso",
        phone="0812-3456-7890",
        address="Jl. Merdeka 10",
        email="budi@example.com",
        city="Bandung",
        postal_code="40111",
    )


@pytest.fixture
def cart():
    """Headphones + Watch, one of each."""
    c = Cart()
    c.add_item("sku-hp", "Headphones", 299000)
    c.add_item("sku-watch", "Watch", 3500000)
    return c


def make_order(customer: CustomerInfo, cart: Cart, **extra) -> Order:
    """Build a PENDING order from a cart using manual-entry totals."""
    totals = compute_order_totals(cart.items, shipping=extra.pop("shipping", 0))
    return Order.create(
        customer=customer,
        items=cart.items,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        tax=totals.tax,
        discount=totals.discount,
        total=totals.total,
        total_cost=totals.total_cost,
        total_profit=totals.total_profit,
        **extra,
    )
