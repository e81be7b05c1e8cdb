"""Invoice issuance for settled obligations"""

import base64
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock
from rental_engine.domain.exceptions import InvalidStateError, NotFoundError
from rental_engine.domain.invoices import build_invoice_data, date_bucket, format_invoice_number
from rental_engine.domain.models import (
    Invoice,
    ObligationStatus,
    PaymentEvent,
    PaymentObligation,
    Rental,
    RenderedDocument,
    TemplateKind,
)
from rental_engine.domain.ports import Dispatcher, DocumentRenderer
from rental_engine.infrastructure.database.repositories import (
    InvoiceCounterRepository,
    InvoiceRepository,
    ObligationRepository,
    PaymentEventRepository,
    RentalRepository,
)
from rental_engine.infrastructure.observability.logging import log_invoice
from rental_engine.infrastructure.observability.metrics import invoice_counter, render_failure_counter
from rental_engine.services.base import retry_on_conflict

logger = logging.getLogger(__name__)


class InvoiceIssuer:
    """Issues exactly one numbered invoice per settling payment event"""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Clock,
        renderer: DocumentRenderer,
        dispatcher: Dispatcher,
        prefix: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.renderer = renderer
        self.dispatcher = dispatcher
        self.prefix = prefix or settings.invoice_prefix

    def issue_invoice(self, payment_event_id: uuid.UUID) -> Invoice:
        """
        Return the invoice of a payment event, creating it on first call.

        Flow:
        1. Existing invoice for the event -> returned as is
        2. Allocate the day's next sequence number (first write of the transaction)
        3. Insert the invoice and commit
        4. Render and deliver the document, best-effort

        Raises:
            NotFoundError: unknown payment event
            InvalidStateError: the event did not settle its obligation
        """
        created = self._create(payment_event_id)
        if created is None:
            with self.session_factory() as db:
                return InvoiceRepository(db).get_by_payment_event(payment_event_id)

        invoice, rental, obligation, event = created
        invoice_counter.inc()
        log_invoice(invoice)
        self._deliver(invoice, rental, obligation, event)
        return invoice

    @retry_on_conflict
    def _create(self, payment_event_id: uuid.UUID):
        with self.session_factory() as db:
            invoices = InvoiceRepository(db)
            if invoices.get_by_payment_event(payment_event_id) is not None:
                return None

            event = PaymentEventRepository(db).get(payment_event_id)
            if event is None:
                raise NotFoundError(f"Payment event {payment_event_id} not found")
            if event.resulting_status != ObligationStatus.PAID:
                raise InvalidStateError(
                    f"Payment event {payment_event_id} left its obligation {event.resulting_status.value}; "
                    "invoices are issued on settlement only"
                )

            obligation = ObligationRepository(db).get(event.obligation_id)
            if obligation is None:
                raise NotFoundError(f"Obligation {event.obligation_id} not found")
            rental = RentalRepository(db).get(event.rental_id)
            if rental is None:
                raise NotFoundError(f"Rental {event.rental_id} not found")

            now = self.clock.now()
            today = self.clock.today()
            sequence = InvoiceCounterRepository(db).atomic_increment(date_bucket(today))

            invoice = Invoice(
                id=uuid.uuid4(),
                invoice_number=format_invoice_number(self.prefix, today, sequence),
                payment_event_id=event.id,
                rental_id=rental.id,
                obligation_id=obligation.id,
                amount_cents=obligation.amount_cents,
                generated_at=now,
            )
            try:
                invoices.create(invoice)
                db.commit()
            except IntegrityError:
                # Another caller issued this event's invoice first
                db.rollback()
                return None

        return invoice, rental, obligation, event

    def _render(self, invoice: Invoice, rental: Rental, obligation: PaymentObligation, event: PaymentEvent):
        try:
            return self.renderer.render(build_invoice_data(invoice, rental, obligation, event))
        except Exception as e:
            render_failure_counter.inc()
            logger.error(
                f"Invoice rendering failed: {e!r}",
                extra={"step": "invoice_render", "invoice_number": invoice.invoice_number},
            )
            return None

    def _deliver(self, invoice: Invoice, rental: Rental, obligation: PaymentObligation, event: PaymentEvent) -> None:
        document: Optional[RenderedDocument] = self._render(invoice, rental, obligation, event)

        payload = {
            "invoice_number": invoice.invoice_number,
            "rental_code": rental.rental_code,
            "customer_name": rental.customer.name,
            "month": obligation.month_key,
            "amount_cents": invoice.amount_cents,
            "generated_at": invoice.generated_at.isoformat(),
        }
        if document is not None:
            payload["attachment"] = {
                "filename": document.filename,
                "content_type": document.content_type,
                "content_base64": base64.b64encode(document.body).decode("ascii"),
            }

        self.dispatcher.submit(
            rental.customer.email,
            TemplateKind.INVOICE,
            payload,
            on_delivered=lambda: self.mark_delivered(invoice.id),
        )

    def list_invoices(self, rental_id: uuid.UUID) -> List[Invoice]:
        with self.session_factory() as db:
            return InvoiceRepository(db).list_for_rental(rental_id)

    def mark_delivered(self, invoice_id: uuid.UUID) -> None:
        with self.session_factory() as db:
            InvoiceRepository(db).mark_delivered(invoice_id)
            db.commit()
        logger.info("Invoice delivered", extra={"invoice_id": str(invoice_id)})
