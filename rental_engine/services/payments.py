"""Recording payments against obligations"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from rental_engine.domain.clock import Clock
from rental_engine.domain.exceptions import ConcurrencyError, InvalidStateError, NotFoundError, ValidationError
from rental_engine.domain.models import ObligationStatus, PaymentEvent, PaymentOutcome, TemplateKind
from rental_engine.domain.obligations import apply_payment
from rental_engine.domain.ports import Dispatcher
from rental_engine.infrastructure.database.repositories import (
    ObligationRepository,
    PaymentEventRepository,
    RentalRepository,
)
from rental_engine.infrastructure.observability.metrics import payment_counter
from rental_engine.services.base import retry_on_conflict
from rental_engine.services.invoices import InvoiceIssuer

logger = logging.getLogger(__name__)


class PaymentRecorder:
    """Applies payments to obligations and triggers invoicing on settlement"""

    def __init__(self, session_factory: sessionmaker, clock: Clock, dispatcher: Dispatcher, issuer: InvoiceIssuer):
        self.session_factory = session_factory
        self.clock = clock
        self.dispatcher = dispatcher
        self.issuer = issuer

    def record_payment(
        self,
        obligation_id: uuid.UUID,
        amount_cents: int,
        payment_method: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentOutcome:
        """
        Record a payment and, when it settles the obligation, issue the invoice.

        A ``reference`` seen before returns the earlier outcome instead of
        applying the payment twice.

        Raises:
            NotFoundError: unknown obligation
            InvalidStateError: obligation already Paid, or ``reference`` already
                used for another obligation
            ValidationError: amount not positive or above the outstanding balance
        """
        if paid_at is not None and paid_at.tzinfo is None:
            raise ValidationError("paid_at must be timezone-aware")
        paid_at = (paid_at or self.clock.now()).astimezone(timezone.utc)

        event, obligation, recipient, replayed = self._apply(
            obligation_id, amount_cents, payment_method, paid_at, reference, notes
        )

        if not replayed:
            payment_counter.labels(status=event.resulting_status.value).inc()
            logger.info(
                "Payment recorded",
                extra={
                    "step": "payment_recorded",
                    "obligation_id": str(obligation.id),
                    "rental_id": str(obligation.rental_id),
                    "amount_cents": event.amount_cents,
                    "resulting_status": event.resulting_status.value,
                },
            )
            self.dispatcher.submit(
                recipient,
                TemplateKind.PAYMENT_CONFIRMATION,
                {
                    "month": obligation.month_key,
                    "amount_cents": event.amount_cents,
                    "paid_cents": obligation.paid_cents,
                    "outstanding_cents": obligation.outstanding_cents,
                    "status": obligation.status.value,
                    "paid_at": event.paid_at.isoformat(),
                    "reference": event.reference,
                },
            )

        invoice = None
        if event.resulting_status == ObligationStatus.PAID:
            invoice = self.issuer.issue_invoice(event.id)

        return PaymentOutcome(event=event, obligation=obligation, invoice=invoice)

    @retry_on_conflict
    def _apply(self, obligation_id, amount_cents, payment_method, paid_at, reference, notes):
        with self.session_factory() as db:
            events = PaymentEventRepository(db)
            obligations = ObligationRepository(db)

            if reference:
                existing = events.get_by_reference(reference)
                if existing is not None:
                    if existing.obligation_id != obligation_id:
                        raise InvalidStateError(
                            f"Payment reference {reference!r} was already used for another obligation"
                        )
                    obligation = obligations.get(existing.obligation_id)
                    if obligation is None:
                        raise NotFoundError(f"Obligation {existing.obligation_id} not found")
                    rental = RentalRepository(db).get(existing.rental_id)
                    if rental is None:
                        raise NotFoundError(f"Rental {existing.rental_id} not found")
                    return existing, obligation, rental.customer.email, True

            obligation = obligations.get(obligation_id)
            if obligation is None:
                raise NotFoundError(f"Obligation {obligation_id} not found")
            rental = RentalRepository(db).get(obligation.rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {obligation.rental_id} not found")

            updated = apply_payment(obligation, amount_cents, paid_at, payment_method)
            if notes:
                updated.notes = f"{updated.notes}\n{notes}".strip()

            obligations.update(
                obligation.id,
                obligation.version,
                status=updated.status,
                paid_cents=updated.paid_cents,
                paid_date=updated.paid_date,
                payment_method=updated.payment_method,
                notes=updated.notes,
            )
            updated.version = obligation.version + 1

            event = PaymentEvent(
                id=uuid.uuid4(),
                obligation_id=obligation.id,
                rental_id=obligation.rental_id,
                amount_cents=amount_cents,
                paid_at=paid_at,
                resulting_status=updated.status,
                payment_method=payment_method,
                reference=reference,
                notes=notes or "",
            )
            try:
                events.create(event)
            except IntegrityError as e:
                db.rollback()
                raise ConcurrencyError(f"Payment reference {reference!r} was recorded concurrently") from e
            db.commit()

        return event, updated, rental.customer.email, False
