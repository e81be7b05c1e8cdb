"""
PaymentObligation state machine.

    Pending --(due date passed, sweep)--> Overdue
    Pending --(full payment)-----------> Paid
    Pending --(partial payment)--------> Partial
    Overdue --(full payment)-----------> Paid
    Overdue --(partial payment)--------> Partial
    Partial --(remaining balance)------> Paid

Paid is terminal. Nothing returns to Pending or Overdue.
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from rental_engine.domain.exceptions import InvalidStateError, ValidationError
from rental_engine.domain.models import ObligationStatus, PaymentObligation

ALLOWED_TRANSITIONS = {
    ObligationStatus.PENDING: {ObligationStatus.OVERDUE, ObligationStatus.PARTIAL, ObligationStatus.PAID},
    ObligationStatus.OVERDUE: {ObligationStatus.PARTIAL, ObligationStatus.PAID},
    ObligationStatus.PARTIAL: {ObligationStatus.PARTIAL, ObligationStatus.PAID},
    ObligationStatus.PAID: set(),
}


def can_transition(current: ObligationStatus, target: ObligationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def is_overdue(obligation: PaymentObligation, today: date) -> bool:
    """Pending obligation whose due date is behind today"""
    return obligation.status == ObligationStatus.PENDING and obligation.due_date < today


def mark_overdue(obligation: PaymentObligation) -> PaymentObligation:
    if not can_transition(obligation.status, ObligationStatus.OVERDUE):
        raise InvalidStateError(
            f"Obligation {obligation.month_key} cannot become Overdue from {obligation.status.value}"
        )
    return replace(obligation, status=ObligationStatus.OVERDUE)


def apply_payment(
    obligation: PaymentObligation,
    amount_cents: int,
    paid_at: datetime,
    payment_method: Optional[str] = None,
) -> PaymentObligation:
    """
    Apply a payment and return the obligation in its new state.

    Raises:
        InvalidStateError: obligation is already Paid
        ValidationError: amount is not positive or exceeds what is still owed
    """
    if obligation.status == ObligationStatus.PAID:
        raise InvalidStateError(f"Obligation {obligation.month_key} is already paid: no outstanding balance")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be a positive number of cents")

    outstanding = obligation.amount_cents - obligation.paid_cents
    if amount_cents > outstanding:
        raise ValidationError(
            f"Payment of {amount_cents} exceeds outstanding balance of {outstanding} for {obligation.month_key}"
        )

    paid_cents = obligation.paid_cents + amount_cents
    status = ObligationStatus.PAID if paid_cents == obligation.amount_cents else ObligationStatus.PARTIAL

    return replace(
        obligation,
        status=status,
        paid_cents=paid_cents,
        paid_date=paid_at,
        payment_method=payment_method or obligation.payment_method,
    )
