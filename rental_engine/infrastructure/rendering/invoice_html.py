"""HTML invoice renderer"""

from html import escape

from rental_engine.domain.invoices import InvoiceData
from rental_engine.domain.models import RenderedDocument


def format_amount(cents: int, currency: str = "INR") -> str:
    return f"{currency} {cents // 100:,}.{cents % 100:02d}"


class HtmlInvoiceRenderer:
    """Renders invoice data to a standalone HTML document. Pure: no I/O."""

    def __init__(self, company_name: str = "Rentals", currency: str = "INR"):
        self.company_name = company_name
        self.currency = currency

    def render(self, invoice_data: InvoiceData) -> RenderedDocument:
        rows = "".join(
            "<tr>"
            f"<td>{escape(line.description)}</td>"
            f"<td class=\"num\">{line.quantity}</td>"
            f"<td class=\"num\">{format_amount(line.unit_price_cents, self.currency)}</td>"
            f"<td class=\"num\">{format_amount(line.total_cents, self.currency)}</td>"
            "</tr>"
            for line in invoice_data.lines
        )
        method = escape(invoice_data.payment_method or "N/A")
        reference = escape(invoice_data.payment_reference or "N/A")

        html = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>Invoice {escape(invoice_data.invoice_number)}</title>
<style>
body {{ font-family: Arial, sans-serif; color: #333; }}
table {{ width: 100%; border-collapse: collapse; }}
th {{ background: #2563eb; color: white; text-align: left; padding: 8px; }}
td {{ padding: 8px; border-bottom: 1px solid #ddd; }}
.num {{ text-align: right; }}
</style>
</head>
<body>
<h1>{escape(self.company_name)}</h1>
<h2>Invoice {escape(invoice_data.invoice_number)}</h2>
<p>Date: {invoice_data.invoice_date.strftime("%d %B %Y")}</p>
<p>Rental: {escape(invoice_data.rental_code)} ({escape(invoice_data.month_key)})</p>
<h3>Bill to</h3>
<p>{escape(invoice_data.customer_name)}<br>{escape(invoice_data.customer_email)}<br>{escape(invoice_data.customer_phone)}</p>
<table>
<tr><th>Description</th><th>Qty</th><th>Unit price</th><th>Total</th></tr>
{rows}
</table>
<p class="num"><strong>Total: {format_amount(invoice_data.total_cents, self.currency)}</strong></p>
<p>Status: {escape(invoice_data.payment_status)} | Method: {method} | Reference: {reference}</p>
</body>
</html>
"""
        return RenderedDocument(
            filename=f"{invoice_data.invoice_number}.html",
            content_type="text/html",
            body=html.encode("utf-8"),
        )
