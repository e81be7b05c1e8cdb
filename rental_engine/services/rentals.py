"""Rental creation, obligation schedule generation and admin corrections"""

import logging
import uuid
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock
from rental_engine.domain.exceptions import ConcurrencyError, InvalidStateError, NotFoundError, ValidationError
from rental_engine.domain.identity import new_rental_code, normalize_email, resolve_owner
from rental_engine.domain.models import (
    Customer,
    ObligationStatus,
    PaymentObligation,
    Rental,
    RentalItem,
    RentalStatus,
)
from rental_engine.domain.schedule import plan_obligations
from rental_engine.infrastructure.database.repositories import ObligationRepository, RentalRepository
from rental_engine.infrastructure.observability.metrics import obligations_generated_counter
from rental_engine.services.base import retry_on_conflict
from rental_engine.utils.date_utils import is_month_key, month_key

logger = logging.getLogger(__name__)


class RentalService:
    """Owns the rental aggregate and its obligation schedule"""

    def __init__(self, session_factory: sessionmaker, clock: Clock, months_ahead: Optional[int] = None):
        self.session_factory = session_factory
        self.clock = clock
        self.months_ahead = months_ahead or settings.schedule_months_ahead

    def create_rental(
        self,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        items: Sequence[RentalItem],
        start_date: date,
        user_id: Optional[str] = None,
        end_date: Optional[date] = None,
    ) -> Rental:
        """
        Persist a new Active rental and generate its obligation schedule.

        Raises:
            ValidationError: no items, bad quantities or rates, zero monthly
                rent, bad email
        """
        if not items:
            raise ValidationError("A rental needs at least one item")
        for item in items:
            if item.quantity <= 0:
                raise ValidationError(f"Quantity of {item.item_name!r} must be positive")
            if item.monthly_rate_cents < 0 or item.deposit_cents < 0:
                raise ValidationError(f"Rate and deposit of {item.item_name!r} cannot be negative")
        if start_date is None:
            raise ValidationError("Rental start date is required")
        total_monthly_cents = sum(i.monthly_rate_cents * i.quantity for i in items)
        if total_monthly_cents <= 0:
            raise ValidationError("Monthly rent of a rental must be positive")

        email = normalize_email(customer_email)
        rental = Rental(
            id=uuid.uuid4(),
            rental_code=new_rental_code(self.clock.today()),
            customer=Customer(name=customer_name, email=email, phone=customer_phone),
            owner_ref=resolve_owner(email, user_id),
            items=list(items),
            start_date=start_date,
            end_date=end_date,
            total_monthly_cents=total_monthly_cents,
            total_deposit_cents=sum(i.deposit_cents for i in items),
            status=RentalStatus.ACTIVE,
        )

        with self.session_factory() as db:
            RentalRepository(db).create(rental)
            db.commit()

        logger.info(
            "Rental created",
            extra={"rental_id": str(rental.id), "rental_code": rental.rental_code, "owner_ref": rental.owner_ref},
        )
        self.generate(rental.id, self.months_ahead)
        return rental

    def get_rental(self, rental_id: uuid.UUID) -> Rental:
        with self.session_factory() as db:
            rental = RentalRepository(db).get(rental_id)
        if rental is None:
            raise NotFoundError(f"Rental {rental_id} not found")
        return rental

    def list_obligations(self, rental_id: uuid.UUID) -> List[PaymentObligation]:
        with self.session_factory() as db:
            if RentalRepository(db).get(rental_id) is None:
                raise NotFoundError(f"Rental {rental_id} not found")
            return ObligationRepository(db).list_for_rental(rental_id)

    @retry_on_conflict
    def generate(self, rental_id: uuid.UUID, months_ahead: int) -> List[PaymentObligation]:
        """
        Create the missing monthly obligations of a rental.

        Re-running is a no-op for months already on file. Returns only the
        obligations created by this call.

        Raises:
            NotFoundError: unknown rental
            ValidationError: bad horizon or missing start date
        """
        today = self.clock.today()
        with self.session_factory() as db:
            rental = RentalRepository(db).get(rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {rental_id} not found")

            obligations = ObligationRepository(db)
            planned = plan_obligations(rental, months_ahead, obligations.month_keys_for_rental(rental_id), today)
            if planned:
                obligations.add_many(planned)
                db.commit()

        for o in planned:
            obligations_generated_counter.labels(initial_status=o.status.value).inc()
        logger.info(
            "Obligation schedule generated",
            extra={"rental_id": str(rental_id), "months_ahead": months_ahead, "created_count": len(planned)},
        )
        return planned

    def add_obligation(
        self,
        rental_id: uuid.UUID,
        month: Optional[str] = None,
        amount_cents: Optional[int] = None,
        due_date: Optional[date] = None,
        notes: str = "",
    ) -> PaymentObligation:
        """
        Manually add one obligation. Defaults: current month, the rental's
        monthly total, due today.

        Raises:
            NotFoundError: unknown rental
            ValidationError: bad month or amount
            InvalidStateError: the month already has an obligation
        """
        today = self.clock.today()
        key = month or month_key(today)
        if not is_month_key(key):
            raise ValidationError(f"Invalid month format {key!r}. Use YYYY-MM")
        if amount_cents is not None and amount_cents <= 0:
            raise ValidationError("Obligation amount must be positive")

        with self.session_factory() as db:
            rental = RentalRepository(db).get(rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {rental_id} not found")

            repo = ObligationRepository(db)
            if repo.find_by_rental_and_month(rental_id, key) is not None:
                raise InvalidStateError(f"Rental {rental.rental_code} already has an obligation for {key}")

            due = due_date or today
            obligation = PaymentObligation(
                id=uuid.uuid4(),
                rental_id=rental_id,
                month_key=key,
                amount_cents=amount_cents or rental.total_monthly_cents,
                due_date=due,
                status=ObligationStatus.OVERDUE if due < today else ObligationStatus.PENDING,
                notes=notes,
            )
            try:
                repo.add_many([obligation])
            except ConcurrencyError as e:
                raise InvalidStateError(f"Rental {rental.rental_code} already has an obligation for {key}") from e
            db.commit()

        obligations_generated_counter.labels(initial_status=obligation.status.value).inc()
        logger.info("Obligation added", extra={"rental_id": str(rental_id), "month_key": key})
        return obligation

    def delete_obligation(self, obligation_id: uuid.UUID) -> None:
        """Remove an obligation. Invoices already issued for it stay untouched."""
        with self.session_factory() as db:
            if not ObligationRepository(db).delete(obligation_id):
                raise NotFoundError(f"Obligation {obligation_id} not found")
            db.commit()
        logger.info("Obligation deleted", extra={"obligation_id": str(obligation_id)})

    @retry_on_conflict
    def update_status(self, rental_id: uuid.UUID, status: RentalStatus) -> Rental:
        """Move a rental between Active, On Hold, Completed and Cancelled"""
        with self.session_factory() as db:
            repo = RentalRepository(db)
            rental = repo.get(rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {rental_id} not found")
            if rental.status == status:
                return rental

            values = {"status": status}
            if status in (RentalStatus.COMPLETED, RentalStatus.CANCELLED) and rental.end_date is None:
                values["end_date"] = self.clock.today()
            repo.update(rental_id, rental.version, **values)
            db.commit()
            updated = repo.get(rental_id)

        logger.info(
            "Rental status changed",
            extra={"rental_id": str(rental_id), "from_status": rental.status.value, "to_status": status.value},
        )
        return updated
