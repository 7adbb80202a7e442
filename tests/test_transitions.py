import pytest

from models.order import OrderStatus
from models.payment import PaymentStatus
from services.transitions import (
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    is_terminal_order_status,
    is_terminal_payment_status,
    is_valid_order_transition,
    is_valid_payment_transition,
    requires_payment,
)


@pytest.mark.parametrize(
    "current, new, allowed",
    [
        (PaymentStatus.PENDING, PaymentStatus.PAID, True),
        (PaymentStatus.PENDING, PaymentStatus.FAILED, True),
        (PaymentStatus.PENDING, PaymentStatus.REFUNDED, False),
        (PaymentStatus.PAID, PaymentStatus.REFUNDED, True),
        (PaymentStatus.PAID, PaymentStatus.PENDING, False),
        (PaymentStatus.PAID, PaymentStatus.FAILED, False),
        (PaymentStatus.FAILED, PaymentStatus.PENDING, True),
        (PaymentStatus.FAILED, PaymentStatus.PAID, False),
        (PaymentStatus.REFUNDED, PaymentStatus.PAID, False),
        (PaymentStatus.REFUNDED, PaymentStatus.PENDING, False),
    ],
)
def test_payment_transitions(current, new, allowed):
    assert is_valid_payment_transition(current, new) is allowed


def test_payment_transition_accepts_plain_strings():
    assert is_valid_payment_transition("PENDING", "PAID")
    assert not is_valid_payment_transition("REFUNDED", "PAID")


def test_refunded_is_the_only_terminal_payment_status():
    assert [s for s in PaymentStatus if is_terminal_payment_status(s)] == [PaymentStatus.REFUNDED]


def test_no_status_transitions_to_itself():
    assert not any(is_valid_payment_transition(s, s) for s in PaymentStatus)
    assert not any(is_valid_order_transition(s, s) for s in OrderStatus)


def test_order_lifecycle_paths():
    assert is_valid_order_transition(OrderStatus.PENDING, OrderStatus.PAID)
    assert is_valid_order_transition(OrderStatus.PAID, OrderStatus.COMPLETED)
    assert is_valid_order_transition(OrderStatus.IN_REVIEW, OrderStatus.APPROVED)
    assert not is_valid_order_transition(OrderStatus.PENDING, OrderStatus.COMPLETED)
    assert not is_valid_order_transition(OrderStatus.COMPLETED, OrderStatus.CANCELLED)


def test_every_open_order_can_be_cancelled():
    for status in OrderStatus:
        if is_terminal_order_status(status):
            continue
        assert is_valid_order_transition(status, OrderStatus.CANCELLED), status


def test_terminal_order_statuses():
    terminal = {s for s in OrderStatus if is_terminal_order_status(s)}
    assert terminal == {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


def test_tables_cover_every_status():
    assert set(PAYMENT_TRANSITIONS) == set(PaymentStatus)
    assert set(ORDER_TRANSITIONS) == set(OrderStatus)


def test_fulfilment_statuses_require_payment():
    assert requires_payment(OrderStatus.PAID)
    assert requires_payment(OrderStatus.COMPLETED)
    assert not requires_payment(OrderStatus.PENDING)
    assert not requires_payment(OrderStatus.PAYMENT_REQUIRED)
    assert not requires_payment(OrderStatus.CANCELLED)
