"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class RentalStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ON_HOLD = "On Hold"


class ObligationStatus(str, Enum):
    PENDING = "Pending"
    OVERDUE = "Overdue"
    PARTIAL = "Partial"
    PAID = "Paid"


OUTSTANDING_STATUSES = (ObligationStatus.PENDING, ObligationStatus.OVERDUE, ObligationStatus.PARTIAL)


class ReminderTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class TemplateKind(str, Enum):
    REMINDER_PENDING = "reminder-pending"
    REMINDER_OVERDUE = "reminder-overdue"
    INVOICE = "invoice"
    PAYMENT_CONFIRMATION = "payment-confirmation"


@dataclass
class Customer:
    """Contact details of the person renting"""

    name: str
    email: str
    phone: str


@dataclass
class RentalItem:
    """Single line of a rental"""

    item_name: str
    quantity: int
    monthly_rate_cents: int
    deposit_cents: int = 0
    item_ref: Optional[str] = None


@dataclass
class Rental:
    """Recurring lease of one or more items"""

    id: uuid.UUID
    rental_code: str
    customer: Customer
    owner_ref: str
    items: List[RentalItem]
    start_date: Optional[date]
    total_monthly_cents: int
    total_deposit_cents: int
    status: RentalStatus = RentalStatus.ACTIVE
    end_date: Optional[date] = None
    last_reminder_sent_at: Optional[datetime] = None
    version: int = 1


@dataclass
class PaymentObligation:
    """One month's rent requirement"""

    id: uuid.UUID
    rental_id: uuid.UUID
    month_key: str  # "YYYY-MM"
    amount_cents: int
    due_date: date
    status: ObligationStatus = ObligationStatus.PENDING
    paid_cents: int = 0
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    notes: str = ""
    version: int = 1

    @property
    def outstanding_cents(self) -> int:
        if self.status == ObligationStatus.PAID:
            return 0
        return self.amount_cents - self.paid_cents


@dataclass
class PaymentEvent:
    """A payment recorded against one obligation"""

    id: uuid.UUID
    obligation_id: uuid.UUID
    rental_id: uuid.UUID
    amount_cents: int
    paid_at: datetime
    resulting_status: ObligationStatus
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: str = ""


@dataclass
class Invoice:
    """Numbered document tied to one settling payment event"""

    id: uuid.UUID
    invoice_number: str
    payment_event_id: uuid.UUID
    rental_id: uuid.UUID
    obligation_id: uuid.UUID
    amount_cents: int
    generated_at: datetime
    delivered: bool = False


@dataclass
class RenderedDocument:
    """Output of the document renderer"""

    filename: str
    content_type: str
    body: bytes


@dataclass
class FailedRental:
    rental_id: uuid.UUID
    error: str


@dataclass
class SweepReport:
    """Outcome of one daily sweep"""

    run_at: datetime
    today: date
    rentals_scanned: int = 0
    obligations_marked_overdue: int = 0
    failed_rentals: List[FailedRental] = field(default_factory=list)
    reminder_candidates: List[uuid.UUID] = field(default_factory=list)


@dataclass
class ReminderLine:
    """One obligation as it appears inside a reminder"""

    obligation_id: uuid.UUID
    month_key: str
    amount_cents: int
    outstanding_cents: int
    due_date: date
    status: ObligationStatus
    days_overdue: Optional[int] = None
    days_until_due: Optional[int] = None


@dataclass
class ReminderContent:
    template_kind: TemplateKind
    lines: List[ReminderLine]
    total_pending_cents: int
    total_overdue_cents: int


@dataclass
class ReminderResult:
    rental_id: uuid.UUID
    trigger: ReminderTrigger
    template_kind: TemplateKind
    recipient: str
    sent_at: datetime
    can_send_after: datetime
    pending_count: int
    overdue_count: int
    total_pending_cents: int
    total_overdue_cents: int


@dataclass
class ScheduledReminderReport:
    sent: List[uuid.UUID] = field(default_factory=list)
    skipped_cooldown: List[uuid.UUID] = field(default_factory=list)
    skipped_no_balance: List[uuid.UUID] = field(default_factory=list)
    failed: List[FailedRental] = field(default_factory=list)


@dataclass
class PaymentOutcome:
    event: PaymentEvent
    obligation: PaymentObligation
    invoice: Optional[Invoice] = None


@dataclass
class DueEntry:
    """One outstanding obligation in a dues report"""

    obligation_id: uuid.UUID
    rental_id: uuid.UUID
    rental_code: str
    owner_ref: str
    customer: Customer
    month_key: str
    amount_cents: int
    outstanding_cents: int
    due_date: date
    status: ObligationStatus
    days_overdue: Optional[int]


@dataclass
class CustomerDues:
    owner_ref: str
    customer: Customer
    rental_codes: List[str] = field(default_factory=list)
    total_pending_cents: int = 0
    total_overdue_cents: int = 0
    total_partial_cents: int = 0
    total_due_cents: int = 0
    obligations: List[DueEntry] = field(default_factory=list)


@dataclass
class DuesBreakdown:
    total_due_cents: int
    by_customer: List[CustomerDues]
    all: List[DueEntry]

    @property
    def pending_count(self) -> int:
        return sum(1 for d in self.all if d.status == ObligationStatus.PENDING)

    @property
    def overdue_count(self) -> int:
        return sum(1 for d in self.all if d.status == ObligationStatus.OVERDUE)


@dataclass
class CollectionEntry:
    """One settled obligation in a collection report"""

    obligation_id: uuid.UUID
    rental_id: uuid.UUID
    rental_code: str
    customer: Customer
    month_key: str
    amount_cents: int
    paid_date: datetime
    payment_method: Optional[str]


@dataclass
class MonthlyCollection:
    month_key: str
    total_collected_cents: int
    payments_count: int
    average_payment_cents: int
    payments: List[CollectionEntry]


@dataclass
class DashboardSummary:
    """Fleet-level totals over Active rentals"""

    active_rentals: int = 0
    total_rented_items: int = 0
    potential_monthly_revenue_cents: int = 0
    total_deposits_cents: int = 0
    total_pending_cents: int = 0
    total_overdue_cents: int = 0
    total_partial_cents: int = 0
    total_paid_cents: int = 0
