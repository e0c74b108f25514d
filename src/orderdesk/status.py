"""
Order and payment status state machines.

Order lifecycle:

    PENDING -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED -> COMPLETED

Any status up to SHIPPED may be CANCELLED; DELIVERED and COMPLETED may be
REFUNDED. CANCELLED and REFUNDED are terminal. COMPLETED ends the normal
lifecycle but is not terminal for is_terminal(), since a refund can still
follow it.
"""

import logging
from typing import Iterable, Protocol

from .errors import InvalidTransitionError, ValidationError
from .models import Order, OrderStatus, PaymentStatus, StatusChange, _utc_now

logger = logging.getLogger(__name__)


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# Statuses that need a courier tracking number
TRACKING_REQUIRED = frozenset({OrderStatus.SHIPPED})

# Statuses after which a tracking number may be attached
TRACKING_ACCEPTED = frozenset(
    {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED}
)

# Statuses that notify the customer
NOTIFY_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.PROCESSING, PaymentStatus.PAID, PaymentStatus.FAILED}
    ),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.PROCESSING}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


class StatusHook(Protocol):
    """Side-effect hook run after an order reaches a notifying status."""

    def on_status_change(self, order: Order, previous: OrderStatus) -> None: ...


class LoggingStatusHook:
    """Records customer-facing status changes in the log."""

    def on_status_change(self, order: Order, previous: OrderStatus) -> None:
        logger.info(
            "Customer %s should be notified: order %s %s -> %s",
            order.customer.phone,
            order.order_number,
            previous.value,
            order.status.value,
        )


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def allowed_transitions(current: OrderStatus) -> list[OrderStatus]:
    """Targets reachable from current, in lifecycle order."""
    allowed = ORDER_TRANSITIONS.get(current, frozenset())
    return [s for s in OrderStatus if s in allowed]


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def transition(
    order: Order,
    target: OrderStatus,
    tracking_number: str | None = None,
    note: str | None = None,
    hooks: Iterable[StatusHook] | None = None,
    now: str | None = None,
) -> Order:
    """
    Move an order to a new status.

    Updates updated_at and status_history, records a tracking number when
    given, and runs hooks for CANCELLED and REFUNDED. A paid order that is
    refunded also has its payment marked REFUNDED.

    Raises:
        InvalidTransitionError: If target is not reachable from the current
            status. The order is not modified.
        ValidationError: If shipping without a tracking number, or a tracking
            number is given for a status that cannot carry one.
    """
    target = OrderStatus(target)
    previous = order.status

    if not can_transition(previous, target):
        logger.warning(
            "Rejected transition for order %s: %s -> %s",
            order.order_number,
            previous.value,
            target.value,
        )
        raise InvalidTransitionError(previous.value, target.value)

    tracking_number = tracking_number.strip() if tracking_number else None
    if tracking_number and target not in TRACKING_ACCEPTED:
        raise ValidationError(
            f"cannot be set when moving to {target.value}", field="tracking_number"
        )
    if target in TRACKING_REQUIRED and not (tracking_number or order.tracking_number):
        raise ValidationError(
            f"is required to mark an order {target.value}", field="tracking_number"
        )

    timestamp = now or _utc_now()
    order.status = target
    if tracking_number:
        order.tracking_number = tracking_number
    if target == OrderStatus.CANCELLED:
        order.cancelled_at = timestamp
    if target == OrderStatus.REFUNDED and order.payment_status == PaymentStatus.PAID:
        order.payment_status = PaymentStatus.REFUNDED
    order.status_history.append(StatusChange(status=target, at=timestamp, note=note))
    order.updated_at = timestamp

    logger.info(
        "Order %s: %s -> %s", order.order_number, previous.value, target.value
    )

    if target in NOTIFY_STATUSES:
        for hook in hooks if hooks is not None else (LoggingStatusHook(),):
            hook.on_status_change(order, previous)

    return order


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, frozenset())


def update_payment_status(
    order: Order,
    target: PaymentStatus,
    transaction_id: str | None = None,
    now: str | None = None,
) -> Order:
    """
    Move an order's payment to a new status.

    The first move to PAID stamps paid_at.

    Raises:
        InvalidTransitionError: If the payment change is not allowed.
    """
    target = PaymentStatus(target)
    previous = order.payment_status
    if not can_transition_payment(previous, target):
        logger.warning(
            "Rejected payment change for order %s: %s -> %s",
            order.order_number,
            previous.value,
            target.value,
        )
        raise InvalidTransitionError(previous.value, target.value, kind="payment")

    timestamp = now or _utc_now()
    order.payment_status = target
    if target == PaymentStatus.PAID and order.paid_at is None:
        order.paid_at = timestamp
    if transaction_id:
        order.transaction_id = transaction_id
    order.updated_at = timestamp

    logger.info(
        "Order %s payment: %s -> %s", order.order_number, previous.value, target.value
    )
    return order
