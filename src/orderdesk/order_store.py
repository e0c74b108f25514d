"""Order storage for orderdesk."""

import fcntl
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from .errors import ConflictError, InvalidSchemaVersionError, OrderNotFoundError
from .models import Order, OrderStatus, PaymentStatus
from .settings_store import get_data_dir, write_json_atomic
from .status import (
    NOTIFY_STATUSES,
    LoggingStatusHook,
    StatusHook,
    transition,
    update_payment_status,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
ORDERS_FILE = "orders.json"

SORT_FIELDS = {
    "created_at": lambda o: o.created_at,
    "order_number": lambda o: o.order_number,
    "customer_name": lambda o: o.customer.name.lower(),
    "total": lambda o: o.total,
    "status": lambda o: o.status.value,
    "payment_status": lambda o: o.payment_status.value,
}


class OrderPage:
    """One page of a filtered order listing."""

    def __init__(self, orders: list[Order], page: int, limit: int, total: int):
        self.orders = orders
        self.page = page
        self.limit = limit
        self.total = total

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


class OrderStore:
    """
    Manages order persistence.

    Every write is a read-modify-write under an exclusive file lock. Updates
    take the version the caller last saw; if the stored order has moved on,
    ConflictError is raised and nothing is written.
    """

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize OrderStore.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.config_dir = Path(config_dir) if config_dir else get_data_dir()
        self.config_path = self.config_dir / ORDERS_FILE

    def _ensure_dir(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Acquire exclusive lock on the orders file for read-modify-write operations."""
        self._ensure_dir()
        lock_path = self.config_dir / ".orders.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load_data(self) -> dict[str, Any]:
        if not self.config_path.exists():
            return {"schema_version": SCHEMA_VERSION, "orders": []}

        with open(self.config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        return data

    def _save_data(self, data: dict[str, Any]) -> None:
        write_json_atomic(self.config_path, data)

    def list_orders(self) -> list[Order]:
        """All orders, newest first."""
        orders = [Order.from_dict(o) for o in self._load_data().get("orders", [])]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders

    def count(self) -> int:
        return len(self._load_data().get("orders", []))

    def get_order(self, order_ref: str) -> Order:
        """
        Get an order by ID, ID prefix, or order number.

        Raises:
            OrderNotFoundError: If no order matches, or a prefix is ambiguous.
        """
        if not order_ref.strip():
            raise OrderNotFoundError(repr(order_ref))

        orders = self._load_data().get("orders", [])
        for o in orders:
            if o["id"] == order_ref or o["order_number"] == order_ref:
                return Order.from_dict(o)

        matches = [o for o in orders if o["id"].startswith(order_ref)]
        if not matches:
            raise OrderNotFoundError(order_ref)
        if len(matches) > 1:
            raise OrderNotFoundError(
                f"{order_ref} (ambiguous, matches {len(matches)} orders)"
            )
        return Order.from_dict(matches[0])

    def search(
        self,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> OrderPage:
        """
        Filter, sort and paginate orders.

        search matches order number, customer name, email or phone
        (case-insensitive substring). Unknown sort_by falls back to created_at.
        """
        orders = self.list_orders()
        if status is not None:
            orders = [o for o in orders if o.status == status]
        if payment_status is not None:
            orders = [o for o in orders if o.payment_status == payment_status]
        if search:
            needle = search.lower()
            orders = [
                o
                for o in orders
                if needle in o.order_number.lower()
                or needle in o.customer.name.lower()
                or needle in (o.customer.email or "").lower()
                or needle in o.customer.phone.lower()
            ]

        key = SORT_FIELDS.get(sort_by, SORT_FIELDS["created_at"])
        orders.sort(key=key, reverse=sort_order != "asc")

        page = max(page, 1)
        start = (page - 1) * limit
        return OrderPage(orders[start : start + limit], page, limit, len(orders))

    def add_order(self, order: Order) -> Order:
        """Persist a new order."""
        with self._lock():
            data = self._load_data()
            data["orders"].append(order.to_dict())
            self._save_data(data)

        logger.info("Created order %s (total %d)", order.order_number, order.total)
        return order

    def _modify(
        self,
        order_ref: str,
        expected_version: int | None,
        change: Callable[[Order], Order],
    ) -> Order:
        with self._lock():
            data = self._load_data()
            orders = data.get("orders", [])
            current = self.get_order(order_ref)

            if expected_version is not None and expected_version != current.version:
                logger.warning(
                    "Stale write to order %s: expected version %d, found %d",
                    current.order_number,
                    expected_version,
                    current.version,
                )
                raise ConflictError(current.id, expected_version, current.version)

            updated = change(current)
            updated.version = current.version + 1

            for i, o in enumerate(orders):
                if o["id"] == updated.id:
                    orders[i] = updated.to_dict()
                    break
            self._save_data(data)
            return updated

    def update_status(
        self,
        order_ref: str,
        target: OrderStatus,
        expected_version: int | None = None,
        tracking_number: str | None = None,
        note: str | None = None,
        hooks: list[StatusHook] | None = None,
    ) -> Order:
        """
        Transition an order's status and persist it.

        Hooks run after the new status has been written.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            ConflictError: If expected_version is stale.
            InvalidTransitionError: If the transition is not allowed.
        """
        previous: list[OrderStatus] = []

        def change(order: Order) -> Order:
            previous.append(order.status)
            return transition(
                order, target, tracking_number=tracking_number, note=note, hooks=()
            )

        updated = self._modify(order_ref, expected_version, change)
        if updated.status in NOTIFY_STATUSES:
            for hook in hooks if hooks is not None else (LoggingStatusHook(),):
                hook.on_status_change(updated, previous[0])
        return updated

    def update_payment(
        self,
        order_ref: str,
        target: PaymentStatus,
        expected_version: int | None = None,
        transaction_id: str | None = None,
    ) -> Order:
        """
        Change an order's payment status and persist it.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            ConflictError: If expected_version is stale.
            InvalidTransitionError: If the payment change is not allowed.
        """
        return self._modify(
            order_ref,
            expected_version,
            lambda order: update_payment_status(order, target, transaction_id=transaction_id),
        )
