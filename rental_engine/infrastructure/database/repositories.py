"""Data access layer for rentals, obligations, payment events and invoices"""

import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from rental_engine.domain.exceptions import ConcurrencyError
from rental_engine.domain.models import (
    Customer,
    Invoice,
    ObligationStatus,
    PaymentEvent,
    PaymentObligation,
    Rental,
    RentalItem,
    RentalStatus,
)
from rental_engine.infrastructure.database.models import (
    InvoiceCounterRecord,
    InvoiceRecord,
    PaymentEventRecord,
    PaymentObligationRecord,
    RentalItemRecord,
    RentalRecord,
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Backends without timezone support hand back naive UTC timestamps"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_rental(record: RentalRecord) -> Rental:
    return Rental(
        id=record.id,
        rental_code=record.rental_code,
        customer=Customer(
            name=record.customer_name,
            email=record.customer_email,
            phone=record.customer_phone,
        ),
        owner_ref=record.owner_ref,
        items=[
            RentalItem(
                item_name=item.item_name,
                quantity=item.quantity,
                monthly_rate_cents=item.monthly_rate_cents,
                deposit_cents=item.deposit_cents,
                item_ref=item.item_ref,
            )
            for item in record.items
        ],
        start_date=record.start_date,
        end_date=record.end_date,
        total_monthly_cents=record.total_monthly_cents,
        total_deposit_cents=record.total_deposit_cents,
        status=RentalStatus(record.status),
        last_reminder_sent_at=_utc(record.last_reminder_sent_at),
        version=record.version,
    )


def _to_obligation(record: PaymentObligationRecord) -> PaymentObligation:
    return PaymentObligation(
        id=record.id,
        rental_id=record.rental_id,
        month_key=record.month_key,
        amount_cents=record.amount_cents,
        paid_cents=record.paid_cents,
        due_date=record.due_date,
        paid_date=_utc(record.paid_date),
        status=ObligationStatus(record.status),
        payment_method=record.payment_method,
        notes=record.notes or "",
        version=record.version,
    )


def _to_event(record: PaymentEventRecord) -> PaymentEvent:
    return PaymentEvent(
        id=record.id,
        obligation_id=record.obligation_id,
        rental_id=record.rental_id,
        amount_cents=record.amount_cents,
        paid_at=_utc(record.paid_at),
        resulting_status=ObligationStatus(record.resulting_status),
        payment_method=record.payment_method,
        reference=record.reference,
        notes=record.notes or "",
    )


def _to_invoice(record: InvoiceRecord) -> Invoice:
    return Invoice(
        id=record.id,
        invoice_number=record.invoice_number,
        payment_event_id=record.payment_event_id,
        rental_id=record.rental_id,
        obligation_id=record.obligation_id,
        amount_cents=record.amount_cents,
        generated_at=_utc(record.generated_at),
        delivered=record.delivered,
    )


class RentalRepository:
    """Repository for rentals"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, rental: Rental) -> Rental:
        record = RentalRecord(
            id=rental.id,
            rental_code=rental.rental_code,
            customer_name=rental.customer.name,
            customer_email=rental.customer.email,
            customer_phone=rental.customer.phone,
            owner_ref=rental.owner_ref,
            start_date=rental.start_date,
            end_date=rental.end_date,
            total_monthly_cents=rental.total_monthly_cents,
            total_deposit_cents=rental.total_deposit_cents,
            status=rental.status.value,
            last_reminder_sent_at=rental.last_reminder_sent_at,
            version=rental.version,
            items=[
                RentalItemRecord(
                    position=position,
                    item_ref=item.item_ref,
                    item_name=item.item_name,
                    quantity=item.quantity,
                    monthly_rate_cents=item.monthly_rate_cents,
                    deposit_cents=item.deposit_cents,
                )
                for position, item in enumerate(rental.items)
            ],
        )
        self.db.add(record)
        self.db.flush()
        return _to_rental(record)

    def get(self, rental_id: uuid.UUID) -> Optional[Rental]:
        record = self.db.execute(
            select(RentalRecord)
            .where(RentalRecord.id == rental_id)
            .options(selectinload(RentalRecord.items))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _to_rental(record) if record else None

    def list_by_status(self, statuses: Sequence[RentalStatus]) -> List[Rental]:
        records = self.db.execute(
            select(RentalRecord)
            .where(RentalRecord.status.in_([s.value for s in statuses]))
            .options(selectinload(RentalRecord.items))
            .order_by(RentalRecord.created_at, RentalRecord.rental_code)
        ).scalars()
        return [_to_rental(r) for r in records]

    def update(self, rental_id: uuid.UUID, expected_version: int, **values) -> None:
        """
        Versioned write. Raises ConcurrencyError when another writer got
        there first.
        """
        if "status" in values and isinstance(values["status"], RentalStatus):
            values["status"] = values["status"].value
        result = self.db.execute(
            update(RentalRecord)
            .where(RentalRecord.id == rental_id, RentalRecord.version == expected_version)
            .values(version=expected_version + 1, updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyError(f"Rental {rental_id} was modified concurrently (expected version {expected_version})")


class ObligationRepository:
    """Repository for payment obligations"""

    def __init__(self, db: Session):
        self.db = db

    def add_many(self, obligations: Iterable[PaymentObligation]) -> None:
        """
        Insert obligations. A (rental, month) pair inserted concurrently by
        someone else surfaces as ConcurrencyError.
        """
        for o in obligations:
            self.db.add(
                PaymentObligationRecord(
                    id=o.id,
                    rental_id=o.rental_id,
                    month_key=o.month_key,
                    amount_cents=o.amount_cents,
                    paid_cents=o.paid_cents,
                    due_date=o.due_date,
                    paid_date=o.paid_date,
                    status=o.status.value,
                    payment_method=o.payment_method,
                    notes=o.notes,
                    version=o.version,
                )
            )
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise ConcurrencyError("Obligation month was scheduled concurrently") from e

    def get(self, obligation_id: uuid.UUID) -> Optional[PaymentObligation]:
        record = self.db.get(PaymentObligationRecord, obligation_id, populate_existing=True)
        return _to_obligation(record) if record else None

    def list_for_rental(self, rental_id: uuid.UUID) -> List[PaymentObligation]:
        records = self.db.execute(
            select(PaymentObligationRecord)
            .where(PaymentObligationRecord.rental_id == rental_id)
            .order_by(PaymentObligationRecord.due_date)
            .execution_options(populate_existing=True)
        ).scalars()
        return [_to_obligation(r) for r in records]

    def month_keys_for_rental(self, rental_id: uuid.UUID) -> List[str]:
        return list(
            self.db.execute(
                select(PaymentObligationRecord.month_key).where(PaymentObligationRecord.rental_id == rental_id)
            ).scalars()
        )

    def find_by_rental_and_month(self, rental_id: uuid.UUID, month_key: str) -> Optional[PaymentObligation]:
        record = self.db.execute(
            select(PaymentObligationRecord).where(
                PaymentObligationRecord.rental_id == rental_id,
                PaymentObligationRecord.month_key == month_key,
            )
        ).scalar_one_or_none()
        return _to_obligation(record) if record else None

    def find_obligations_due_by(
        self,
        day: date,
        rental_statuses: Sequence[RentalStatus] = (RentalStatus.ACTIVE,),
    ) -> List[PaymentObligation]:
        """Pending obligations due strictly before ``day`` on rentals in the given statuses"""
        records = self.db.execute(
            select(PaymentObligationRecord)
            .join(RentalRecord, RentalRecord.id == PaymentObligationRecord.rental_id)
            .where(
                PaymentObligationRecord.status == ObligationStatus.PENDING.value,
                PaymentObligationRecord.due_date < day,
                RentalRecord.status.in_([s.value for s in rental_statuses]),
            )
            .order_by(PaymentObligationRecord.rental_id, PaymentObligationRecord.due_date)
        ).scalars()
        return [_to_obligation(r) for r in records]

    def list_grouped_by_rental(
        self, rental_statuses: Sequence[RentalStatus]
    ) -> List[Tuple[Rental, List[PaymentObligation]]]:
        """Every rental in the given statuses together with its obligations"""
        rentals = RentalRepository(self.db).list_by_status(rental_statuses)
        if not rentals:
            return []

        records = self.db.execute(
            select(PaymentObligationRecord)
            .where(PaymentObligationRecord.rental_id.in_([r.id for r in rentals]))
            .order_by(PaymentObligationRecord.due_date)
        ).scalars()

        by_rental: Dict[uuid.UUID, List[PaymentObligation]] = defaultdict(list)
        for record in records:
            by_rental[record.rental_id].append(_to_obligation(record))
        return [(rental, by_rental[rental.id]) for rental in rentals]

    def update(self, obligation_id: uuid.UUID, expected_version: int, **values) -> None:
        """Versioned write. Raises ConcurrencyError on a lost race."""
        if "status" in values and isinstance(values["status"], ObligationStatus):
            values["status"] = values["status"].value
        result = self.db.execute(
            update(PaymentObligationRecord)
            .where(
                PaymentObligationRecord.id == obligation_id,
                PaymentObligationRecord.version == expected_version,
            )
            .values(version=expected_version + 1, updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyError(
                f"Obligation {obligation_id} was modified concurrently (expected version {expected_version})"
            )

    def delete(self, obligation_id: uuid.UUID) -> bool:
        result = self.db.execute(
            delete(PaymentObligationRecord)
            .where(PaymentObligationRecord.id == obligation_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class PaymentEventRepository:
    """Repository for recorded payments"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, event: PaymentEvent) -> PaymentEvent:
        record = PaymentEventRecord(
            id=event.id,
            obligation_id=event.obligation_id,
            rental_id=event.rental_id,
            amount_cents=event.amount_cents,
            payment_method=event.payment_method,
            paid_at=event.paid_at,
            resulting_status=event.resulting_status.value,
            reference=event.reference,
            notes=event.notes,
        )
        self.db.add(record)
        self.db.flush()
        return event

    def get(self, event_id: uuid.UUID) -> Optional[PaymentEvent]:
        record = self.db.get(PaymentEventRecord, event_id)
        return _to_event(record) if record else None

    def get_by_reference(self, reference: str) -> Optional[PaymentEvent]:
        record = self.db.execute(
            select(PaymentEventRecord).where(PaymentEventRecord.reference == reference)
        ).scalar_one_or_none()
        return _to_event(record) if record else None


class InvoiceRepository:
    """Repository for invoices"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, invoice: Invoice) -> Invoice:
        """Insert an invoice. IntegrityError propagates when the payment event already has one."""
        self.db.add(
            InvoiceRecord(
                id=invoice.id,
                invoice_number=invoice.invoice_number,
                payment_event_id=invoice.payment_event_id,
                rental_id=invoice.rental_id,
                obligation_id=invoice.obligation_id,
                amount_cents=invoice.amount_cents,
                generated_at=invoice.generated_at,
                delivered=invoice.delivered,
            )
        )
        self.db.flush()
        return invoice

    def get(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        record = self.db.get(InvoiceRecord, invoice_id, populate_existing=True)
        return _to_invoice(record) if record else None

    def get_by_payment_event(self, payment_event_id: uuid.UUID) -> Optional[Invoice]:
        record = self.db.execute(
            select(InvoiceRecord)
            .where(InvoiceRecord.payment_event_id == payment_event_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return _to_invoice(record) if record else None

    def list_for_rental(self, rental_id: uuid.UUID) -> List[Invoice]:
        records = self.db.execute(
            select(InvoiceRecord).where(InvoiceRecord.rental_id == rental_id).order_by(InvoiceRecord.invoice_number)
        ).scalars()
        return [_to_invoice(r) for r in records]

    def mark_delivered(self, invoice_id: uuid.UUID) -> None:
        self.db.execute(
            update(InvoiceRecord)
            .where(InvoiceRecord.id == invoice_id)
            .values(delivered=True)
            .execution_options(synchronize_session=False)
        )


class InvoiceCounterRepository:
    """Per-day invoice sequence allocation"""

    def __init__(self, db: Session):
        self.db = db

    def atomic_increment(self, date_bucket: str) -> int:
        """
        Allocate the next value of the ``date_bucket`` sequence.

        The increment is a single ``UPDATE ... SET current_value = current_value + 1``;
        the row stays locked until the caller commits, so concurrent
        allocations serialize and never observe the same value. The first
        allocation of a day inserts the row; losing that insert race rolls
        the transaction back and retries with the update.

        Must be the first write of the caller's transaction: a lost insert
        race rolls the whole transaction back.
        """
        for _ in range(2):
            result = self.db.execute(
                update(InvoiceCounterRecord)
                .where(InvoiceCounterRecord.date_bucket == date_bucket)
                .values(current_value=InvoiceCounterRecord.current_value + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return self.db.execute(
                    select(InvoiceCounterRecord.current_value).where(InvoiceCounterRecord.date_bucket == date_bucket)
                ).scalar_one()

            try:
                self.db.execute(insert(InvoiceCounterRecord).values(date_bucket=date_bucket, current_value=1))
                return 1
            except IntegrityError:
                self.db.rollback()

        raise ConcurrencyError(f"Could not allocate invoice number for bucket {date_bucket}")
