"""Unit tests for the obligation state machine"""

import uuid
from datetime import date, datetime, timezone

import pytest

from rental_engine.domain.exceptions import InvalidStateError, ValidationError
from rental_engine.domain.models import ObligationStatus, PaymentObligation
from rental_engine.domain.obligations import apply_payment, can_transition, is_overdue, mark_overdue

PAID_AT = datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc)


def make_obligation(status=ObligationStatus.PENDING, amount=200000, paid=0, due=date(2025, 11, 4)):
    return PaymentObligation(
        id=uuid.uuid4(),
        rental_id=uuid.uuid4(),
        month_key="2025-11",
        amount_cents=amount,
        due_date=due,
        status=status,
        paid_cents=paid,
    )


def test_full_payment_settles():
    obligation = apply_payment(make_obligation(ObligationStatus.OVERDUE), 200000, PAID_AT, "upi")

    assert obligation.status == ObligationStatus.PAID
    assert obligation.paid_cents == 200000
    assert obligation.paid_date == PAID_AT
    assert obligation.payment_method == "upi"
    assert obligation.outstanding_cents == 0


def test_partial_then_remainder():
    """Partial accumulates; the remainder settles"""
    partial = apply_payment(make_obligation(), 50000, PAID_AT)
    assert partial.status == ObligationStatus.PARTIAL
    assert partial.outstanding_cents == 150000

    settled = apply_payment(partial, 150000, PAID_AT)
    assert settled.status == ObligationStatus.PAID
    assert settled.paid_cents == 200000


def test_payment_does_not_mutate_input():
    original = make_obligation()
    apply_payment(original, 1000, PAID_AT)
    assert original.status == ObligationStatus.PENDING
    assert original.paid_cents == 0


def test_paid_is_terminal():
    with pytest.raises(InvalidStateError):
        apply_payment(make_obligation(ObligationStatus.PAID, paid=200000), 100, PAID_AT)
    assert not can_transition(ObligationStatus.PAID, ObligationStatus.PENDING)
    assert not can_transition(ObligationStatus.PAID, ObligationStatus.OVERDUE)


@pytest.mark.parametrize("amount", [0, -100, 200001])
def test_payment_amount_validation(amount):
    with pytest.raises(ValidationError):
        apply_payment(make_obligation(), amount, PAID_AT)


def test_overpaying_a_partial_is_rejected():
    with pytest.raises(ValidationError):
        apply_payment(make_obligation(ObligationStatus.PARTIAL, paid=150000), 60000, PAID_AT)


def test_nothing_returns_to_pending():
    for status in ObligationStatus:
        if status != ObligationStatus.PENDING:
            assert not can_transition(status, ObligationStatus.PENDING)


def test_is_overdue_only_for_pending_past_due():
    today = date(2025, 11, 10)
    assert is_overdue(make_obligation(due=date(2025, 11, 9)), today)
    assert not is_overdue(make_obligation(due=date(2025, 11, 10)), today)
    assert not is_overdue(make_obligation(ObligationStatus.PARTIAL, paid=1, due=date(2025, 10, 1)), today)
    assert not is_overdue(make_obligation(ObligationStatus.PAID, paid=200000, due=date(2025, 10, 1)), today)


def test_mark_overdue_rejects_partial():
    with pytest.raises(InvalidStateError):
        mark_overdue(make_obligation(ObligationStatus.PARTIAL, paid=100))
    assert mark_overdue(make_obligation()).status == ObligationStatus.OVERDUE
