"""Read-side dues and collection reports"""

from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from rental_engine.domain import dues
from rental_engine.domain.clock import Clock
from rental_engine.domain.exceptions import ValidationError
from rental_engine.domain.models import DashboardSummary, DuesBreakdown, MonthlyCollection, RentalStatus
from rental_engine.infrastructure.database.repositories import ObligationRepository
from rental_engine.utils.date_utils import month_key


class DuesAggregator:
    """Reporting over Active rentals. Never writes."""

    def __init__(self, session_factory: sessionmaker, clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    def _records(self):
        with self.session_factory() as db:
            return ObligationRepository(db).list_grouped_by_rental([RentalStatus.ACTIVE])

    def dues_breakdown(self, dues_filter: Optional[dues.DuesFilter] = None) -> DuesBreakdown:
        return dues.dues_breakdown(self._records(), dues_filter or dues.DuesFilter(), self.clock.today())

    def dashboard_summary(self) -> DashboardSummary:
        return dues.dashboard_summary(self._records())

    def monthly_collection(self, month: Optional[str] = None) -> MonthlyCollection:
        """Collections of ``month`` (YYYY-MM), the current month by default"""
        key = month or month_key(self.clock.today())
        return dues.monthly_collection(self._records(), key, self.clock.tz)

    def collection_history(self, year: Optional[int] = None) -> List[MonthlyCollection]:
        if year is not None and not 1970 <= year <= 9999:
            raise ValidationError(f"Invalid year {year}")
        return dues.collection_history(self._records(), self.clock.tz, year)
