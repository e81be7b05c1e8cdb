"""Daily evaluation of obligations: Pending past due becomes Overdue"""

import logging
import time
import uuid
from collections import OrderedDict
from datetime import date
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock
from rental_engine.domain.models import FailedRental, RentalStatus, SweepReport
from rental_engine.domain.obligations import is_overdue, mark_overdue
from rental_engine.domain.reminders import needs_reminder
from rental_engine.infrastructure.database.repositories import ObligationRepository
from rental_engine.infrastructure.observability.logging import log_sweep
from rental_engine.infrastructure.observability.metrics import obligations_overdue_counter, sweep_failure_counter
from rental_engine.services.base import retry_on_conflict

logger = logging.getLogger(__name__)


class PaymentStateEvaluator:
    """
    Runs the daily sweep over Active rentals.

    Each rental is evaluated in its own transaction, so one bad rental never
    aborts the run. Re-running on the same day changes nothing.
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock, window_days: Optional[Iterable[int]] = None):
        self.session_factory = session_factory
        self.clock = clock
        self.window_days = list(window_days if window_days is not None else settings.reminder_window_days)

    def run_daily_sweep(self) -> SweepReport:
        start_time = time.time()
        today = self.clock.today()
        report = SweepReport(run_at=self.clock.now(), today=today)

        with self.session_factory() as db:
            due = ObligationRepository(db).find_obligations_due_by(today)
        rental_ids = list(OrderedDict.fromkeys(o.rental_id for o in due))

        newly_overdue: Set[uuid.UUID] = set()
        for rental_id in rental_ids:
            try:
                marked = self._mark_rental_overdue(rental_id, today)
            except Exception as e:
                sweep_failure_counter.inc()
                report.failed_rentals.append(FailedRental(rental_id=rental_id, error=str(e)))
                logger.error(
                    f"Sweep failed for rental: {e}",
                    extra={"step": "sweep_rental", "rental_id": str(rental_id)},
                )
                continue

            if marked:
                report.obligations_marked_overdue += marked
                newly_overdue.add(rental_id)

        scanned, candidates = self._collect_candidates(today, newly_overdue)
        report.rentals_scanned = scanned
        report.reminder_candidates = candidates

        log_sweep(report, (time.time() - start_time) * 1000)
        return report

    @retry_on_conflict
    def _mark_rental_overdue(self, rental_id: uuid.UUID, today: date) -> int:
        """Flip every past-due Pending obligation of one rental. Returns how many moved."""
        with self.session_factory() as db:
            repo = ObligationRepository(db)
            marked = 0
            for obligation in repo.list_for_rental(rental_id):
                if not is_overdue(obligation, today):
                    continue
                updated = mark_overdue(obligation)
                repo.update(obligation.id, obligation.version, status=updated.status)
                marked += 1
            db.commit()

        if marked:
            obligations_overdue_counter.inc(marked)
        return marked

    def find_reminder_candidates(self) -> List[uuid.UUID]:
        """Rentals a reminder could go out for today. Sending is decided elsewhere."""
        _, candidates = self._collect_candidates(self.clock.today(), set())
        return candidates

    def _collect_candidates(self, today: date, newly_overdue: Set[uuid.UUID]):
        with self.session_factory() as db:
            records = ObligationRepository(db).list_grouped_by_rental([RentalStatus.ACTIVE])

        candidates = [
            rental.id
            for rental, obligations in records
            if rental.id in newly_overdue or needs_reminder(obligations, today, self.window_days)
        ]
        return len(records), candidates
