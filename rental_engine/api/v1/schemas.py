"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from rental_engine.domain.models import (
    CollectionEntry,
    CustomerDues,
    DashboardSummary,
    DueEntry,
    Invoice,
    MonthlyCollection,
    PaymentObligation,
    Rental,
    RentalStatus,
    ReminderResult,
    ScheduledReminderReport,
    SweepReport,
)


class RentalItemSchema(BaseModel):
    """Single line of a rental"""

    item_name: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0)
    monthly_rate_cents: int = Field(..., ge=0, description="Monthly rent per unit in cents")
    deposit_cents: int = Field(0, ge=0)
    item_ref: Optional[str] = None


class RentalCreateRequest(BaseModel):
    """Request body for POST /v1/rentals"""

    customer_name: str = Field(..., min_length=1)
    customer_email: str = Field(..., min_length=3)
    customer_phone: str = Field(..., min_length=1)
    items: List[RentalItemSchema] = Field(..., min_length=1)
    start_date: date
    end_date: Optional[date] = None
    user_id: Optional[str] = Field(None, description="Account identifier when the customer has one")


class RentalResponse(BaseModel):
    rental_id: str
    rental_code: str
    owner_ref: str
    customer_name: str
    customer_email: str
    customer_phone: str
    status: RentalStatus
    start_date: Optional[date]
    end_date: Optional[date]
    total_monthly_cents: int
    total_deposit_cents: int
    last_reminder_sent_at: Optional[datetime] = None
    items: List[RentalItemSchema]

    @classmethod
    def from_domain(cls, rental: Rental) -> "RentalResponse":
        return cls(
            rental_id=str(rental.id),
            rental_code=rental.rental_code,
            owner_ref=rental.owner_ref,
            customer_name=rental.customer.name,
            customer_email=rental.customer.email,
            customer_phone=rental.customer.phone,
            status=rental.status,
            start_date=rental.start_date,
            end_date=rental.end_date,
            total_monthly_cents=rental.total_monthly_cents,
            total_deposit_cents=rental.total_deposit_cents,
            last_reminder_sent_at=rental.last_reminder_sent_at,
            items=[
                RentalItemSchema(
                    item_name=i.item_name,
                    quantity=i.quantity,
                    monthly_rate_cents=i.monthly_rate_cents,
                    deposit_cents=i.deposit_cents,
                    item_ref=i.item_ref,
                )
                for i in rental.items
            ],
        )


class StatusUpdateRequest(BaseModel):
    status: RentalStatus


class ObligationSchema(BaseModel):
    """One month's rent requirement"""

    obligation_id: str
    month: str
    amount_cents: int
    paid_cents: int
    outstanding_cents: int
    due_date: date
    status: str
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None

    @classmethod
    def from_domain(cls, o: PaymentObligation) -> "ObligationSchema":
        return cls(
            obligation_id=str(o.id),
            month=o.month_key,
            amount_cents=o.amount_cents,
            paid_cents=o.paid_cents,
            outstanding_cents=o.outstanding_cents,
            due_date=o.due_date,
            status=o.status.value,
            paid_date=o.paid_date,
            payment_method=o.payment_method,
        )


class ScheduleRequest(BaseModel):
    months_ahead: int = Field(12, gt=0)


class ScheduleResponse(BaseModel):
    rental_id: str
    created: List[ObligationSchema]


class AddObligationRequest(BaseModel):
    month: Optional[str] = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    amount_cents: Optional[int] = Field(None, gt=0)
    due_date: Optional[date] = None
    notes: str = ""


class ReminderRequest(BaseModel):
    trigger: str = Field("manual", pattern="^(manual|scheduled)$")


class ReminderResponse(BaseModel):
    rental_id: str
    trigger: str
    template: str
    recipient: str
    last_reminder_sent_at: datetime
    can_send_after: datetime
    pending_count: int
    overdue_count: int
    total_pending_cents: int
    total_overdue_cents: int

    @classmethod
    def from_domain(cls, r: ReminderResult) -> "ReminderResponse":
        return cls(
            rental_id=str(r.rental_id),
            trigger=r.trigger.value,
            template=r.template_kind.value,
            recipient=r.recipient,
            last_reminder_sent_at=r.sent_at,
            can_send_after=r.can_send_after,
            pending_count=r.pending_count,
            overdue_count=r.overdue_count,
            total_pending_cents=r.total_pending_cents,
            total_overdue_cents=r.total_overdue_cents,
        )


class InvoiceSchema(BaseModel):
    invoice_id: str
    invoice_number: str
    payment_event_id: str
    rental_id: str
    obligation_id: str
    amount_cents: int
    generated_at: datetime
    delivered: bool

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceSchema":
        return cls(
            invoice_id=str(invoice.id),
            invoice_number=invoice.invoice_number,
            payment_event_id=str(invoice.payment_event_id),
            rental_id=str(invoice.rental_id),
            obligation_id=str(invoice.obligation_id),
            amount_cents=invoice.amount_cents,
            generated_at=invoice.generated_at,
            delivered=invoice.delivered,
        )


class PaymentRequest(BaseModel):
    """Request body for POST /v1/obligations/{id}/payments"""

    amount_cents: int = Field(..., gt=0, description="Amount paid in cents")
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    reference: Optional[str] = Field(None, max_length=128, description="Caller's idempotency key")
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_event_id: str
    obligation: ObligationSchema
    invoice: Optional[InvoiceSchema] = None


class FailedRentalSchema(BaseModel):
    rental_id: str
    error: str


class SweepResponse(BaseModel):
    run_at: datetime
    today: date
    rentals_scanned: int
    obligations_marked_overdue: int
    failed_rentals: List[FailedRentalSchema]
    reminder_candidates: List[str]

    @classmethod
    def from_domain(cls, report: SweepReport) -> "SweepResponse":
        return cls(
            run_at=report.run_at,
            today=report.today,
            rentals_scanned=report.rentals_scanned,
            obligations_marked_overdue=report.obligations_marked_overdue,
            failed_rentals=[FailedRentalSchema(rental_id=str(f.rental_id), error=f.error) for f in report.failed_rentals],
            reminder_candidates=[str(r) for r in report.reminder_candidates],
        )


class ScheduledRemindersResponse(BaseModel):
    sent: List[str]
    skipped_cooldown: List[str]
    skipped_no_balance: List[str]
    failed: List[FailedRentalSchema]

    @classmethod
    def from_domain(cls, report: ScheduledReminderReport) -> "ScheduledRemindersResponse":
        return cls(
            sent=[str(r) for r in report.sent],
            skipped_cooldown=[str(r) for r in report.skipped_cooldown],
            skipped_no_balance=[str(r) for r in report.skipped_no_balance],
            failed=[FailedRentalSchema(rental_id=str(f.rental_id), error=f.error) for f in report.failed],
        )


class DueEntrySchema(BaseModel):
    obligation_id: str
    rental_id: str
    rental_code: str
    customer_name: str
    customer_email: str
    month: str
    amount_cents: int
    outstanding_cents: int
    due_date: date
    status: str
    days_overdue: Optional[int] = None

    @classmethod
    def from_domain(cls, e: DueEntry) -> "DueEntrySchema":
        return cls(
            obligation_id=str(e.obligation_id),
            rental_id=str(e.rental_id),
            rental_code=e.rental_code,
            customer_name=e.customer.name,
            customer_email=e.customer.email,
            month=e.month_key,
            amount_cents=e.amount_cents,
            outstanding_cents=e.outstanding_cents,
            due_date=e.due_date,
            status=e.status.value,
            days_overdue=e.days_overdue,
        )


class CustomerDuesSchema(BaseModel):
    owner_ref: str
    customer_name: str
    customer_email: str
    customer_phone: str
    rental_codes: List[str]
    total_pending_cents: int
    total_overdue_cents: int
    total_partial_cents: int
    total_due_cents: int
    obligations: List[DueEntrySchema]

    @classmethod
    def from_domain(cls, c: CustomerDues) -> "CustomerDuesSchema":
        return cls(
            owner_ref=c.owner_ref,
            customer_name=c.customer.name,
            customer_email=c.customer.email,
            customer_phone=c.customer.phone,
            rental_codes=c.rental_codes,
            total_pending_cents=c.total_pending_cents,
            total_overdue_cents=c.total_overdue_cents,
            total_partial_cents=c.total_partial_cents,
            total_due_cents=c.total_due_cents,
            obligations=[DueEntrySchema.from_domain(e) for e in c.obligations],
        )


class DuesResponse(BaseModel):
    total_due_cents: int
    pending_count: int
    overdue_count: int
    by_customer: List[CustomerDuesSchema]
    all: List[DueEntrySchema]


class CollectionEntrySchema(BaseModel):
    obligation_id: str
    rental_code: str
    customer_name: str
    month: str
    amount_cents: int
    paid_date: datetime
    payment_method: Optional[str] = None

    @classmethod
    def from_domain(cls, e: CollectionEntry) -> "CollectionEntrySchema":
        return cls(
            obligation_id=str(e.obligation_id),
            rental_code=e.rental_code,
            customer_name=e.customer.name,
            month=e.month_key,
            amount_cents=e.amount_cents,
            paid_date=e.paid_date,
            payment_method=e.payment_method,
        )


class MonthlyCollectionResponse(BaseModel):
    month: str
    total_collected_cents: int
    payments_count: int
    average_payment_cents: int
    payments: List[CollectionEntrySchema]

    @classmethod
    def from_domain(cls, m: MonthlyCollection) -> "MonthlyCollectionResponse":
        return cls(
            month=m.month_key,
            total_collected_cents=m.total_collected_cents,
            payments_count=m.payments_count,
            average_payment_cents=m.average_payment_cents,
            payments=[CollectionEntrySchema.from_domain(p) for p in m.payments],
        )


class DashboardResponse(BaseModel):
    """Fleet totals over Active rentals"""

    active_rentals: int
    total_rented_items: int
    potential_monthly_revenue_cents: int
    total_deposits_cents: int
    total_pending_cents: int
    total_overdue_cents: int
    total_partial_cents: int
    total_paid_cents: int

    @classmethod
    def from_domain(cls, s: DashboardSummary) -> "DashboardResponse":
        return cls(
            active_rentals=s.active_rentals,
            total_rented_items=s.total_rented_items,
            potential_monthly_revenue_cents=s.potential_monthly_revenue_cents,
            total_deposits_cents=s.total_deposits_cents,
            total_pending_cents=s.total_pending_cents,
            total_overdue_cents=s.total_overdue_cents,
            total_partial_cents=s.total_partial_cents,
            total_paid_cents=s.total_paid_cents,
        )
