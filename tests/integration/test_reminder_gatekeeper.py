"""Integration tests for the reminder gatekeeper"""

import uuid
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from rental_engine.domain.exceptions import CooldownError, InvalidStateError, NotFoundError
from rental_engine.domain.models import ReminderTrigger, RentalItem, RentalStatus, TemplateKind
from rental_engine.infrastructure.database.repositories import RentalRepository
from rental_engine.services.rentals import RentalService


@pytest.fixture
def settled_rental(session_factory, clock, recorder):
    """Single-month rental whose only obligation is paid"""
    service = RentalService(session_factory, clock, months_ahead=1)
    rental = service.create_rental(
        "Meera", "meera@example.com", "1", [RentalItem(item_name="Desk", quantity=1, monthly_rate_cents=50000)],
        date(2025, 10, 5),
    )
    obligation = service.list_obligations(rental.id)[0]
    recorder.record_payment(obligation.id, obligation.amount_cents)
    return rental


def test_manual_reminder_overdue(make_rental, gatekeeper, dispatcher, rental_service, clock):
    rental = make_rental()

    result = gatekeeper.send_reminder(rental.id, ReminderTrigger.MANUAL)

    assert result.template_kind == TemplateKind.REMINDER_OVERDUE
    assert result.recipient == "asha@example.com"
    assert result.overdue_count == 1
    assert result.pending_count == 11
    assert result.total_overdue_cents == 200000
    assert result.can_send_after == clock.now() + timedelta(hours=24)

    sent = dispatcher.of_kind(TemplateKind.REMINDER_OVERDUE)
    assert len(sent) == 1
    payload = sent[0]["payload"]
    assert payload["obligations"][0]["days_overdue"] == 6
    assert payload["obligations"][1]["days_until_due"] == 51

    assert rental_service.get_rental(rental.id).last_reminder_sent_at == clock.now()


def test_cooldown_blocks_second_reminder(make_rental, gatekeeper, dispatcher, clock):
    rental = make_rental()
    gatekeeper.send_reminder(rental.id)

    clock.advance(hours=2)
    with pytest.raises(CooldownError) as exc_info:
        gatekeeper.send_reminder(rental.id)

    assert exc_info.value.hours_remaining == 22
    assert exc_info.value.minutes_remaining == 1320
    assert len(dispatcher.calls) == 1

    # Scheduled runs obey the same rule
    with pytest.raises(CooldownError):
        gatekeeper.send_reminder(rental.id, ReminderTrigger.SCHEDULED)

    clock.advance(hours=22)
    gatekeeper.send_reminder(rental.id)
    assert len(dispatcher.calls) == 2


def test_unknown_rental(gatekeeper):
    with pytest.raises(NotFoundError):
        gatekeeper.send_reminder(uuid.uuid4())


def test_inactive_rental(make_rental, gatekeeper, rental_service):
    rental = make_rental()
    rental_service.update_status(rental.id, RentalStatus.ON_HOLD)
    with pytest.raises(InvalidStateError):
        gatekeeper.send_reminder(rental.id)


def test_no_outstanding_balance(settled_rental, gatekeeper, rental_service, dispatcher):
    with pytest.raises(InvalidStateError, match="No outstanding balance"):
        gatekeeper.send_reminder(settled_rental.id)

    assert rental_service.get_rental(settled_rental.id).last_reminder_sent_at is None
    assert dispatcher.of_kind(TemplateKind.REMINDER_PENDING) == []
    assert dispatcher.of_kind(TemplateKind.REMINDER_OVERDUE) == []


def test_concurrent_reminder_loses_and_hits_cooldown(make_rental, gatekeeper, dispatcher, session_factory, clock):
    """The losing writer retries, sees the winner's stamp and is refused"""
    rental = make_rental()
    original = RentalRepository.update
    raced = []

    def racing_update(self, rental_id, expected_version, **values):
        if not raced:
            raced.append(True)
            with session_factory() as other:
                original(RentalRepository(other), rental_id, expected_version, last_reminder_sent_at=clock.now())
                other.commit()
        return original(self, rental_id, expected_version, **values)

    with patch.object(RentalRepository, "update", racing_update):
        with pytest.raises(CooldownError):
            gatekeeper.send_reminder(rental.id)

    assert dispatcher.calls == []


def test_scheduled_batch(make_rental, settled_rental, gatekeeper, clock):
    fresh = make_rental(email="fresh@example.com")
    recent = make_rental(email="recent@example.com")
    gatekeeper.send_reminder(recent.id)
    missing = uuid.uuid4()

    report = gatekeeper.send_scheduled_reminders([fresh.id, recent.id, settled_rental.id, missing])

    assert report.sent == [fresh.id]
    assert report.skipped_cooldown == [recent.id]
    assert report.skipped_no_balance == [settled_rental.id]
    assert [f.rental_id for f in report.failed] == [missing]


def test_run_scheduled_reminders_uses_candidates(make_rental, gatekeeper, dispatcher, clock):
    clock.set(datetime(2025, 10, 20, 9, 0, tzinfo=timezone.utc))
    rental = make_rental()

    # One day before the first due date
    clock.set(datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc))
    report = gatekeeper.run_scheduled_reminders()

    assert report.sent == [rental.id]
    assert dispatcher.calls[0]["template_kind"] == TemplateKind.REMINDER_PENDING

    # Re-running the same day is refused by the cooldown
    assert gatekeeper.run_scheduled_reminders().skipped_cooldown == [rental.id]
