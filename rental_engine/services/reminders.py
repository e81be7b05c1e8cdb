"""Payment reminders gated by a per-rental cooldown"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock
from rental_engine.domain.exceptions import CooldownError, InvalidStateError, NotFoundError
from rental_engine.domain.models import (
    FailedRental,
    ObligationStatus,
    Rental,
    ReminderContent,
    ReminderResult,
    ReminderTrigger,
    RentalStatus,
    ScheduledReminderReport,
)
from rental_engine.domain.ports import Dispatcher
from rental_engine.domain.reminders import build_reminder_content, check_cooldown, cooldown_ends_at
from rental_engine.infrastructure.database.repositories import ObligationRepository, RentalRepository
from rental_engine.infrastructure.observability.logging import log_reminder
from rental_engine.infrastructure.observability.metrics import record_reminder
from rental_engine.services.base import retry_on_conflict
from rental_engine.services.sweep import PaymentStateEvaluator

logger = logging.getLogger(__name__)


def reminder_payload(rental: Rental, content: ReminderContent) -> Dict[str, Any]:
    """Template variables for the reminder-pending / reminder-overdue messages"""
    return {
        "rental_code": rental.rental_code,
        "customer_name": rental.customer.name,
        "total_pending_cents": content.total_pending_cents,
        "total_overdue_cents": content.total_overdue_cents,
        "obligations": [
            {
                "month": line.month_key,
                "amount_cents": line.amount_cents,
                "outstanding_cents": line.outstanding_cents,
                "due_date": line.due_date.isoformat(),
                "status": line.status.value,
                "days_overdue": line.days_overdue,
                "days_until_due": line.days_until_due,
            }
            for line in content.lines
        ],
    }


class ReminderGatekeeper:
    """Decides whether a reminder may go out and hands it to the dispatcher"""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Clock,
        dispatcher: Dispatcher,
        evaluator: Optional[PaymentStateEvaluator] = None,
        cooldown: Optional[timedelta] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.dispatcher = dispatcher
        self.evaluator = evaluator or PaymentStateEvaluator(session_factory, clock)
        self.cooldown = cooldown or timedelta(hours=settings.reminder_cooldown_hours)

    def send_reminder(self, rental_id: uuid.UUID, trigger: ReminderTrigger = ReminderTrigger.MANUAL) -> ReminderResult:
        """
        Send one reminder covering every outstanding obligation of a rental.

        The cooldown stamp is committed before the notification is handed
        off; delivery happens in the background.

        Raises:
            NotFoundError: unknown rental
            InvalidStateError: rental not Active, or nothing outstanding
            CooldownError: a reminder went out less than the cooldown ago
        """
        try:
            rental, content, sent_at = self._reserve(rental_id)
        except CooldownError:
            record_reminder(trigger.value, "cooldown")
            raise
        except InvalidStateError:
            record_reminder(trigger.value, "no_balance")
            raise

        self.dispatcher.submit(rental.customer.email, content.template_kind, reminder_payload(rental, content))

        result = ReminderResult(
            rental_id=rental.id,
            trigger=trigger,
            template_kind=content.template_kind,
            recipient=rental.customer.email,
            sent_at=sent_at,
            can_send_after=cooldown_ends_at(sent_at, self.cooldown),
            pending_count=sum(1 for line in content.lines if line.status != ObligationStatus.OVERDUE),
            overdue_count=sum(1 for line in content.lines if line.status == ObligationStatus.OVERDUE),
            total_pending_cents=content.total_pending_cents,
            total_overdue_cents=content.total_overdue_cents,
        )
        record_reminder(trigger.value, "sent")
        log_reminder(result)
        return result

    @retry_on_conflict
    def _reserve(self, rental_id: uuid.UUID):
        now = self.clock.now()
        with self.session_factory() as db:
            rentals = RentalRepository(db)
            rental = rentals.get(rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {rental_id} not found")
            if rental.status != RentalStatus.ACTIVE:
                raise InvalidStateError(f"Rental {rental.rental_code} is {rental.status.value}, not Active")

            content = build_reminder_content(ObligationRepository(db).list_for_rental(rental_id), self.clock.today())
            check_cooldown(rental.last_reminder_sent_at, now, self.cooldown)

            rentals.update(rental_id, rental.version, last_reminder_sent_at=now)
            db.commit()
        return rental, content, now

    def send_scheduled_reminders(self, rental_ids: Iterable[uuid.UUID]) -> ScheduledReminderReport:
        """Apply the same gate to each candidate; one failure never stops the batch"""
        report = ScheduledReminderReport()
        for rental_id in rental_ids:
            try:
                self.send_reminder(rental_id, ReminderTrigger.SCHEDULED)
            except CooldownError:
                report.skipped_cooldown.append(rental_id)
            except InvalidStateError:
                report.skipped_no_balance.append(rental_id)
            except Exception as e:
                record_reminder(ReminderTrigger.SCHEDULED.value, "failed")
                report.failed.append(FailedRental(rental_id=rental_id, error=str(e)))
                logger.error(
                    f"Scheduled reminder failed: {e}",
                    extra={"step": "scheduled_reminder", "rental_id": str(rental_id)},
                )
            else:
                report.sent.append(rental_id)

        logger.info(
            "Scheduled reminders processed",
            extra={
                "step": "scheduled_reminders",
                "sent": len(report.sent),
                "skipped_cooldown": len(report.skipped_cooldown),
                "skipped_no_balance": len(report.skipped_no_balance),
                "failed": len(report.failed),
            },
        )
        return report

    def run_scheduled_reminders(self) -> ScheduledReminderReport:
        return self.send_scheduled_reminders(self.evaluator.find_reminder_candidates())
