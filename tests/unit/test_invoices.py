"""Unit tests for invoice numbering, invoice data and HTML rendering"""

import uuid
from datetime import date, datetime, timezone

import pytest

from rental_engine.domain.invoices import build_invoice_data, date_bucket, format_invoice_number
from rental_engine.domain.models import (
    Customer,
    Invoice,
    ObligationStatus,
    PaymentEvent,
    PaymentObligation,
    Rental,
    RentalItem,
)
from rental_engine.infrastructure.rendering.invoice_html import HtmlInvoiceRenderer, format_amount


def test_invoice_number_format():
    assert format_invoice_number("INV", date(2025, 11, 10), 1) == "INV-2025-1110-0001"
    assert format_invoice_number("INV", date(2026, 1, 2), 42) == "INV-2026-0102-0042"


def test_invoice_number_rejects_zero():
    with pytest.raises(ValueError):
        format_invoice_number("INV", date(2025, 11, 10), 0)


def test_date_bucket():
    assert date_bucket(date(2025, 11, 10)) == "20251110"


@pytest.fixture
def invoice_parts():
    rental = Rental(
        id=uuid.uuid4(),
        rental_code="RENT-2025-1005-ABC123",
        customer=Customer(name="Asha <Rao>", email="asha@example.com", phone="+91-9000000000"),
        owner_ref="email:asha@example.com",
        items=[
            RentalItem(item_name="Sofa", quantity=1, monthly_rate_cents=150000),
            RentalItem(item_name="Chair", quantity=2, monthly_rate_cents=25000),
        ],
        start_date=date(2025, 10, 5),
        total_monthly_cents=200000,
        total_deposit_cents=0,
    )
    obligation = PaymentObligation(
        id=uuid.uuid4(),
        rental_id=rental.id,
        month_key="2025-11",
        amount_cents=200000,
        due_date=date(2025, 11, 4),
        status=ObligationStatus.PAID,
        paid_cents=200000,
    )
    paid_at = datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc)
    event = PaymentEvent(
        id=uuid.uuid4(),
        obligation_id=obligation.id,
        rental_id=rental.id,
        amount_cents=200000,
        paid_at=paid_at,
        resulting_status=ObligationStatus.PAID,
        payment_method="upi",
        reference="UPI-1",
    )
    invoice = Invoice(
        id=uuid.uuid4(),
        invoice_number="INV-2025-1110-0001",
        payment_event_id=event.id,
        rental_id=rental.id,
        obligation_id=obligation.id,
        amount_cents=200000,
        generated_at=paid_at,
    )
    return invoice, rental, obligation, event


def test_build_invoice_data(invoice_parts):
    data = build_invoice_data(*invoice_parts)

    assert data.invoice_number == "INV-2025-1110-0001"
    assert data.month_key == "2025-11"
    assert data.total_cents == 200000
    assert [line.total_cents for line in data.lines] == [150000, 50000]
    assert data.payment_method == "upi"
    assert data.payment_reference == "UPI-1"


def test_custom_amount_invoiced_as_single_line(invoice_parts):
    invoice, rental, obligation, event = invoice_parts
    invoice.amount_cents = 150000
    obligation.amount_cents = 150000

    data = build_invoice_data(invoice, rental, obligation, event)

    assert len(data.lines) == 1
    assert data.lines[0].description == "Rent for 2025-11"
    assert data.lines[0].total_cents == 150000
    assert sum(line.total_cents for line in data.lines) == data.total_cents


def test_html_renderer_escapes_and_formats(invoice_parts):
    document = HtmlInvoiceRenderer(company_name="Rentals").render(build_invoice_data(*invoice_parts))

    html = document.body.decode("utf-8")
    assert document.filename == "INV-2025-1110-0001.html"
    assert document.content_type == "text/html"
    assert "Asha &lt;Rao&gt;" in html
    assert "INR 2,000.00" in html


def test_format_amount():
    assert format_amount(123456) == "INR 1,234.56"
    assert format_amount(5, currency="USD") == "USD 0.05"
