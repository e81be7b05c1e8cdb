"""Dues and collection aggregation - read-side reporting over obligations"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rental_engine.domain.exceptions import ValidationError
from rental_engine.domain.models import (
    OUTSTANDING_STATUSES,
    CollectionEntry,
    CustomerDues,
    DashboardSummary,
    DueEntry,
    DuesBreakdown,
    MonthlyCollection,
    ObligationStatus,
    PaymentObligation,
    Rental,
)
from rental_engine.utils.date_utils import is_month_key, local_date, month_key

RentalObligations = Iterable[Tuple[Rental, Iterable[PaymentObligation]]]


@dataclass(frozen=True)
class DuesFilter:
    """Recognized dues filters. Unknown keys are rejected, never passed on."""

    status: Optional[ObligationStatus] = None
    month_key: Optional[str] = None
    customer_email: Optional[str] = None

    FIELDS = ("status", "month_key", "customer_email")

    def __post_init__(self):
        if self.status is not None and self.status not in OUTSTANDING_STATUSES:
            raise ValidationError(f"Dues can only be filtered by an outstanding status, got {self.status.value}")
        if self.month_key is not None and not is_month_key(self.month_key):
            raise ValidationError(f"Invalid month format {self.month_key!r}. Use YYYY-MM")

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]]) -> "DuesFilter":
        unknown = sorted(set(params) - set(cls.FIELDS))
        if unknown:
            raise ValidationError(f"Unrecognized dues filter(s): {', '.join(unknown)}")

        status = params.get("status")
        if status:
            try:
                status = ObligationStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown obligation status {status!r}") from e

        return cls(
            status=status or None,
            month_key=params.get("month_key") or None,
            customer_email=params.get("customer_email") or None,
        )

    def matches(self, rental: Rental, obligation: PaymentObligation) -> bool:
        if self.status is not None and obligation.status != self.status:
            return False
        if self.month_key is not None and obligation.month_key != self.month_key:
            return False
        if self.customer_email is not None:
            if rental.customer.email.strip().lower() != self.customer_email.strip().lower():
                return False
        return True


def _days_overdue(obligation: PaymentObligation, today: date) -> Optional[int]:
    if obligation.due_date < today:
        return (today - obligation.due_date).days
    return None


def dues_breakdown(records: RentalObligations, dues_filter: DuesFilter, today: date) -> DuesBreakdown:
    """
    Group every outstanding obligation by customer.

    - Pending and Overdue count their full amount
    - Partial counts only the unpaid remainder
    - Entries are ordered Overdue first, then by due date
    """
    entries: List[DueEntry] = []
    by_owner: Dict[str, CustomerDues] = {}

    for rental, obligations in records:
        for o in obligations:
            if o.status not in OUTSTANDING_STATUSES or not dues_filter.matches(rental, o):
                continue

            entry = DueEntry(
                obligation_id=o.id,
                rental_id=rental.id,
                rental_code=rental.rental_code,
                owner_ref=rental.owner_ref,
                customer=rental.customer,
                month_key=o.month_key,
                amount_cents=o.amount_cents,
                outstanding_cents=o.outstanding_cents,
                due_date=o.due_date,
                status=o.status,
                days_overdue=_days_overdue(o, today),
            )
            entries.append(entry)

            group = by_owner.get(rental.owner_ref)
            if group is None:
                group = CustomerDues(owner_ref=rental.owner_ref, customer=rental.customer)
                by_owner[rental.owner_ref] = group
            if rental.rental_code not in group.rental_codes:
                group.rental_codes.append(rental.rental_code)

            if o.status == ObligationStatus.PENDING:
                group.total_pending_cents += entry.outstanding_cents
            elif o.status == ObligationStatus.OVERDUE:
                group.total_overdue_cents += entry.outstanding_cents
            else:
                group.total_partial_cents += entry.outstanding_cents
            group.total_due_cents += entry.outstanding_cents
            group.obligations.append(entry)

    def order(entry: DueEntry):
        return (entry.status != ObligationStatus.OVERDUE, entry.due_date)

    entries.sort(key=order)
    for group in by_owner.values():
        group.obligations.sort(key=order)

    customers = sorted(by_owner.values(), key=lambda g: g.total_due_cents, reverse=True)

    return DuesBreakdown(
        total_due_cents=sum(e.outstanding_cents for e in entries),
        by_customer=customers,
        all=entries,
    )


def _collection_entries(records: RentalObligations, tz) -> Dict[str, List[CollectionEntry]]:
    buckets: Dict[str, List[CollectionEntry]] = {}
    for rental, obligations in records:
        for o in obligations:
            if o.status != ObligationStatus.PAID or o.paid_date is None:
                continue
            key = month_key(local_date(o.paid_date, tz))
            buckets.setdefault(key, []).append(
                CollectionEntry(
                    obligation_id=o.id,
                    rental_id=rental.id,
                    rental_code=rental.rental_code,
                    customer=rental.customer,
                    month_key=o.month_key,
                    amount_cents=o.amount_cents,
                    paid_date=o.paid_date,
                    payment_method=o.payment_method,
                )
            )
    return buckets


def _summarize(key: str, payments: List[CollectionEntry]) -> MonthlyCollection:
    payments = sorted(payments, key=lambda p: p.paid_date, reverse=True)
    total = sum(p.amount_cents for p in payments)
    count = len(payments)
    return MonthlyCollection(
        month_key=key,
        total_collected_cents=total,
        payments_count=count,
        average_payment_cents=total // count if count else 0,
        payments=payments,
    )


def monthly_collection(records: RentalObligations, key: str, tz) -> MonthlyCollection:
    """
    Settled obligations whose paid date falls in month ``key``.

    Bucketing uses the paid date, not the obligation's own month: rent for
    October paid in November is collected in November.
    """
    if not is_month_key(key):
        raise ValidationError(f"Invalid month format {key!r}. Use YYYY-MM")
    buckets = _collection_entries(records, tz)
    return _summarize(key, buckets.get(key, []))


def collection_history(records: RentalObligations, tz, year: Optional[int] = None) -> List[MonthlyCollection]:
    """Every month with collections, oldest first, optionally limited to one year"""
    buckets = _collection_entries(records, tz)
    prefix = f"{year:04d}-" if year is not None else ""
    return [_summarize(key, buckets[key]) for key in sorted(buckets) if key.startswith(prefix)]


def dashboard_summary(records: RentalObligations) -> DashboardSummary:
    """
    Fleet totals for the admin dashboard.

    Outstanding sums follow the dues rule (Partial counts its remainder);
    ``total_paid_cents`` is everything received so far, partial receipts
    included.
    """
    summary = DashboardSummary()
    for rental, obligations in records:
        summary.active_rentals += 1
        summary.total_rented_items += sum(item.quantity for item in rental.items)
        summary.potential_monthly_revenue_cents += rental.total_monthly_cents
        summary.total_deposits_cents += rental.total_deposit_cents

        for o in obligations:
            summary.total_paid_cents += o.paid_cents
            if o.status == ObligationStatus.PENDING:
                summary.total_pending_cents += o.outstanding_cents
            elif o.status == ObligationStatus.OVERDUE:
                summary.total_overdue_cents += o.outstanding_cents
            elif o.status == ObligationStatus.PARTIAL:
                summary.total_partial_cents += o.outstanding_cents
    return summary
