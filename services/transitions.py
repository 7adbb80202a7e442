"""
Allowed status transitions for orders and their payments.

Both tables list every enum member; a status with an empty set is terminal.
"""

from typing import Dict, FrozenSet

from models.order import OrderStatus
from models.payment import PaymentStatus

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),  # retry
    PaymentStatus.REFUNDED: frozenset(),
}

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PAYMENT_REQUIRED,
        OrderStatus.PAID,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAYMENT_REQUIRED: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({
        OrderStatus.IN_REVIEW,
        OrderStatus.SUBMITTED_TO_STATE,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_REVIEW: frozenset({
        OrderStatus.SUBMITTED_TO_STATE,
        OrderStatus.APPROVED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SUBMITTED_TO_STATE: frozenset({
        OrderStatus.APPROVED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.APPROVED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Order statuses that only make sense once the payment has cleared
PAID_ORDER_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PAID,
    OrderStatus.IN_REVIEW,
    OrderStatus.SUBMITTED_TO_STATE,
    OrderStatus.APPROVED,
    OrderStatus.COMPLETED,
})


def is_valid_payment_transition(current: PaymentStatus, new: PaymentStatus) -> bool:
    return PaymentStatus(new) in PAYMENT_TRANSITIONS[PaymentStatus(current)]


def is_valid_order_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]


def is_terminal_payment_status(status: PaymentStatus) -> bool:
    return not PAYMENT_TRANSITIONS[PaymentStatus(status)]


def is_terminal_order_status(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS[OrderStatus(status)]


def requires_payment(status: OrderStatus) -> bool:
    return OrderStatus(status) in PAID_ORDER_STATUSES
