"""Unit tests for obligation schedule planning"""

import uuid
from datetime import date

import pytest

from rental_engine.domain.exceptions import ValidationError
from rental_engine.domain.models import Customer, ObligationStatus, Rental, RentalItem
from rental_engine.domain.schedule import obligation_due_date, plan_obligations


def make_rental(start_date=date(2025, 10, 5), monthly=200000) -> Rental:
    return Rental(
        id=uuid.uuid4(),
        rental_code="RENT-2025-1005-ABC123",
        customer=Customer(name="Asha Rao", email="asha@example.com", phone="+91-9000000000"),
        owner_ref="email:asha@example.com",
        items=[RentalItem(item_name="Sofa", quantity=1, monthly_rate_cents=monthly)],
        start_date=start_date,
        total_monthly_cents=monthly,
        total_deposit_cents=0,
    )


def test_due_date_law():
    """First obligation is start + 30 days, later ones first-of-month + 30 days"""
    start = date(2025, 10, 5)
    assert obligation_due_date(start, 1) == date(2025, 11, 4)
    assert obligation_due_date(start, 2) == date(2025, 12, 31)
    assert obligation_due_date(start, 3) == date(2026, 1, 31)


def test_due_date_february_spills_into_march():
    """Thirty days after Feb 1st lands in March"""
    assert obligation_due_date(date(2025, 12, 15), 2) == date(2026, 3, 3)


def test_plan_three_months():
    rental = make_rental()
    obligations = plan_obligations(rental, 3, [], today=date(2025, 10, 5))

    assert [o.month_key for o in obligations] == ["2025-11", "2025-12", "2026-01"]
    assert [o.due_date for o in obligations] == [date(2025, 11, 4), date(2025, 12, 31), date(2026, 1, 31)]
    assert all(o.amount_cents == 200000 for o in obligations)
    assert all(o.status == ObligationStatus.PENDING for o in obligations)
    assert all(o.rental_id == rental.id for o in obligations)


def test_plan_skips_covered_months():
    """Planning again only fills the gaps"""
    rental = make_rental()
    obligations = plan_obligations(rental, 3, ["2025-11", "2026-01"], today=date(2025, 10, 5))

    assert [o.month_key for o in obligations] == ["2025-12"]


def test_plan_is_noop_when_fully_covered():
    rental = make_rental()
    assert plan_obligations(rental, 2, ["2025-11", "2025-12"], today=date(2025, 10, 5)) == []


def test_backfill_creates_overdue_obligation():
    """A rental started in the past gets its missed month as Overdue"""
    rental = make_rental(start_date=date(2025, 9, 1))
    obligations = plan_obligations(rental, 2, [], today=date(2025, 11, 11))

    assert obligations[0].month_key == "2025-10"
    assert obligations[0].due_date == date(2025, 10, 1)
    assert obligations[0].status == ObligationStatus.OVERDUE
    assert obligations[1].month_key == "2025-11"
    assert obligations[1].due_date == date(2025, 12, 1)
    assert obligations[1].status == ObligationStatus.PENDING


def test_due_today_is_pending():
    """Only a due date strictly before today is overdue"""
    rental = make_rental()
    obligations = plan_obligations(rental, 1, [], today=date(2025, 11, 4))
    assert obligations[0].status == ObligationStatus.PENDING


@pytest.mark.parametrize("months_ahead", [0, -1, 1.5, "3", None, True])
def test_plan_rejects_bad_horizon(months_ahead):
    with pytest.raises(ValidationError):
        plan_obligations(make_rental(), months_ahead, [], today=date(2025, 10, 5))


def test_plan_requires_start_date():
    with pytest.raises(ValidationError):
        plan_obligations(make_rental(start_date=None), 3, [], today=date(2025, 10, 5))
