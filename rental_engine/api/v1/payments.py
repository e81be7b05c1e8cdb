"""Payment recording and invoice issuance endpoints"""

from fastapi import APIRouter, Depends

from rental_engine.api.dependencies import get_issuer, get_payment_recorder, parse_uuid
from rental_engine.api.v1.schemas import InvoiceSchema, ObligationSchema, PaymentRequest, PaymentResponse
from rental_engine.services.invoices import InvoiceIssuer
from rental_engine.services.payments import PaymentRecorder

router = APIRouter()


@router.post("/obligations/{obligation_id}/payments", response_model=PaymentResponse)
def record_payment(
    obligation_id: str,
    request_body: PaymentRequest,
    recorder: PaymentRecorder = Depends(get_payment_recorder),
):
    """
    Record a payment against one obligation.

    Flow:
    1. Apply the amount (Paid when fully covered, Partial otherwise)
    2. Persist the payment event
    3. Issue the invoice when the obligation is settled

    Repeating a call with the same ``reference`` returns the first outcome.
    """
    outcome = recorder.record_payment(
        parse_uuid(obligation_id, "obligation"),
        request_body.amount_cents,
        payment_method=request_body.payment_method,
        paid_at=request_body.paid_at,
        reference=request_body.reference,
        notes=request_body.notes,
    )
    return PaymentResponse(
        payment_event_id=str(outcome.event.id),
        obligation=ObligationSchema.from_domain(outcome.obligation),
        invoice=InvoiceSchema.from_domain(outcome.invoice) if outcome.invoice else None,
    )


@router.post("/payment-events/{payment_event_id}/invoice", response_model=InvoiceSchema)
def issue_invoice(payment_event_id: str, issuer: InvoiceIssuer = Depends(get_issuer)):
    """Issue (or return the already issued) invoice of a settling payment"""
    return InvoiceSchema.from_domain(issuer.issue_invoice(parse_uuid(payment_event_id, "payment event")))
