"""Invoice numbering and the data handed to the document renderer"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from rental_engine.domain.models import Invoice, PaymentEvent, PaymentObligation, Rental


def date_bucket(day: date) -> str:
    """Counter bucket for a calendar day, e.g. ``20251110``"""
    return day.strftime("%Y%m%d")


def format_invoice_number(prefix: str, day: date, sequence: int) -> str:
    """
    Format ``PREFIX-YYYY-MMDD-NNNN``.

    Example:
        format_invoice_number("INV", date(2025, 11, 10), 1) -> "INV-2025-1110-0001"
    """
    if sequence <= 0:
        raise ValueError("Invoice sequence must be positive")
    return f"{prefix}-{day.year:04d}-{day.month:02d}{day.day:02d}-{sequence:04d}"


@dataclass
class InvoiceLine:
    description: str
    quantity: int
    unit_price_cents: int
    total_cents: int


@dataclass
class InvoiceData:
    """Everything the renderer needs; built once per invoice"""

    invoice_number: str
    invoice_date: datetime
    customer_name: str
    customer_email: str
    customer_phone: str
    rental_code: str
    month_key: str
    lines: List[InvoiceLine] = field(default_factory=list)
    total_cents: int = 0
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_status: str = "Paid"


def build_invoice_data(
    invoice: Invoice,
    rental: Rental,
    obligation: PaymentObligation,
    event: PaymentEvent,
) -> InvoiceData:
    lines = [
        InvoiceLine(
            description=f"{item.item_name} - rent for {obligation.month_key}",
            quantity=item.quantity,
            unit_price_cents=item.monthly_rate_cents,
            total_cents=item.monthly_rate_cents * item.quantity,
        )
        for item in rental.items
    ]
    if sum(line.total_cents for line in lines) != invoice.amount_cents:
        # Manually added obligation with its own amount
        lines = [
            InvoiceLine(
                description=f"Rent for {obligation.month_key}",
                quantity=1,
                unit_price_cents=invoice.amount_cents,
                total_cents=invoice.amount_cents,
            )
        ]
    return InvoiceData(
        invoice_number=invoice.invoice_number,
        invoice_date=invoice.generated_at,
        customer_name=rental.customer.name,
        customer_email=rental.customer.email,
        customer_phone=rental.customer.phone,
        rental_code=rental.rental_code,
        month_key=obligation.month_key,
        lines=lines,
        total_cents=invoice.amount_cents,
        payment_method=event.payment_method,
        payment_reference=event.reference,
    )
