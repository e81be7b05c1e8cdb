"""Monthly payment obligation schedule for rentals"""

import uuid
from datetime import date, timedelta
from typing import Iterable, List

from rental_engine.domain.exceptions import ValidationError
from rental_engine.domain.models import ObligationStatus, PaymentObligation, Rental
from rental_engine.utils.date_utils import add_months, first_of_month, month_key

DUE_OFFSET_DAYS = 30


def obligation_due_date(start_date: date, index: int) -> date:
    """
    Due date of the ``index``-th obligation (1-based) of a rental.

    The first obligation is due 30 days after the rental starts. Every later
    obligation is due 30 days after the first day of its own month.

    Example (start 2025-10-05):
        1 -> 2025-11 due 2025-11-04
        2 -> 2025-12 due 2025-12-31
        3 -> 2026-01 due 2026-01-31
    """
    if index == 1:
        return start_date + timedelta(days=DUE_OFFSET_DAYS)
    target_month = add_months(first_of_month(start_date), index)
    return target_month + timedelta(days=DUE_OFFSET_DAYS)


def plan_obligations(
    rental: Rental,
    months_ahead: int,
    existing_month_keys: Iterable[str],
    today: date,
) -> List[PaymentObligation]:
    """
    Build the obligations missing from a rental's schedule.

    Requirements:
    - Month i (1..months_ahead) targets start month + i
    - Months already covered are skipped, so planning twice is a no-op
    - Obligations whose due date is already behind ``today`` start Overdue

    Raises:
        ValidationError: months_ahead is not a positive integer, or the
            rental has no start date
    """
    if isinstance(months_ahead, bool) or not isinstance(months_ahead, int) or months_ahead <= 0:
        raise ValidationError(f"months_ahead must be a positive integer, got {months_ahead!r}")
    if rental.start_date is None:
        raise ValidationError(f"Rental {rental.rental_code} has no start date")

    covered = set(existing_month_keys)
    start_month = first_of_month(rental.start_date)

    obligations = []
    for i in range(1, months_ahead + 1):
        key = month_key(add_months(start_month, i))
        if key in covered:
            continue

        due_date = obligation_due_date(rental.start_date, i)
        status = ObligationStatus.OVERDUE if due_date < today else ObligationStatus.PENDING

        obligations.append(
            PaymentObligation(
                id=uuid.uuid4(),
                rental_id=rental.id,
                month_key=key,
                amount_cents=rental.total_monthly_cents,
                due_date=due_date,
                status=status,
            )
        )
        covered.add(key)

    return obligations
