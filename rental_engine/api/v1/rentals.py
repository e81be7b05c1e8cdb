"""Rental, schedule and reminder endpoints"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response

from rental_engine.api.dependencies import get_gatekeeper, get_issuer, get_rental_service, parse_uuid
from rental_engine.api.v1.schemas import (
    AddObligationRequest,
    InvoiceSchema,
    ObligationSchema,
    RentalCreateRequest,
    RentalResponse,
    ReminderRequest,
    ReminderResponse,
    ScheduleRequest,
    ScheduleResponse,
    StatusUpdateRequest,
)
from rental_engine.domain.models import ReminderTrigger, RentalItem
from rental_engine.services.invoices import InvoiceIssuer
from rental_engine.services.reminders import ReminderGatekeeper
from rental_engine.services.rentals import RentalService

router = APIRouter()


@router.post("/rentals", response_model=RentalResponse, status_code=201)
def create_rental(request_body: RentalCreateRequest, service: RentalService = Depends(get_rental_service)):
    """
    Create an Active rental and generate its monthly obligations.

    The customer's owner reference is resolved once here: the account id
    when given, otherwise the normalized email.
    """
    rental = service.create_rental(
        customer_name=request_body.customer_name,
        customer_email=request_body.customer_email,
        customer_phone=request_body.customer_phone,
        items=[RentalItem(**item.model_dump()) for item in request_body.items],
        start_date=request_body.start_date,
        end_date=request_body.end_date,
        user_id=request_body.user_id,
    )
    return RentalResponse.from_domain(rental)


@router.get("/rentals/{rental_id}", response_model=RentalResponse)
def get_rental(rental_id: str, service: RentalService = Depends(get_rental_service)):
    return RentalResponse.from_domain(service.get_rental(parse_uuid(rental_id, "rental")))


@router.patch("/rentals/{rental_id}/status", response_model=RentalResponse)
def update_status(
    rental_id: str,
    request_body: StatusUpdateRequest,
    service: RentalService = Depends(get_rental_service),
):
    return RentalResponse.from_domain(service.update_status(parse_uuid(rental_id, "rental"), request_body.status))


@router.get("/rentals/{rental_id}/obligations", response_model=List[ObligationSchema])
def list_obligations(rental_id: str, service: RentalService = Depends(get_rental_service)):
    return [ObligationSchema.from_domain(o) for o in service.list_obligations(parse_uuid(rental_id, "rental"))]


@router.post("/rentals/{rental_id}/schedule", response_model=ScheduleResponse)
def generate_schedule(
    rental_id: str,
    request_body: ScheduleRequest,
    service: RentalService = Depends(get_rental_service),
):
    """Create missing obligations up to ``months_ahead`` months after the start month"""
    rental_uuid = parse_uuid(rental_id, "rental")
    created = service.generate(rental_uuid, request_body.months_ahead)
    return ScheduleResponse(rental_id=str(rental_uuid), created=[ObligationSchema.from_domain(o) for o in created])


@router.post("/rentals/{rental_id}/obligations", response_model=ObligationSchema, status_code=201)
def add_obligation(
    rental_id: str,
    request_body: AddObligationRequest,
    service: RentalService = Depends(get_rental_service),
):
    obligation = service.add_obligation(
        parse_uuid(rental_id, "rental"),
        month=request_body.month,
        amount_cents=request_body.amount_cents,
        due_date=request_body.due_date,
        notes=request_body.notes,
    )
    return ObligationSchema.from_domain(obligation)


@router.delete("/obligations/{obligation_id}", status_code=204)
def delete_obligation(obligation_id: str, service: RentalService = Depends(get_rental_service)):
    service.delete_obligation(parse_uuid(obligation_id, "obligation"))
    return Response(status_code=204)


@router.post("/rentals/{rental_id}/reminders", response_model=ReminderResponse)
def send_reminder(
    rental_id: str,
    request_body: Optional[ReminderRequest] = None,
    gatekeeper: ReminderGatekeeper = Depends(get_gatekeeper),
):
    """
    Send a payment reminder now.

    Returns 429 with the remaining wait while the rental is in its cooldown.
    """
    trigger = ReminderTrigger(request_body.trigger) if request_body else ReminderTrigger.MANUAL
    result = gatekeeper.send_reminder(parse_uuid(rental_id, "rental"), trigger)
    return ReminderResponse.from_domain(result)


@router.get("/rentals/{rental_id}/invoices", response_model=List[InvoiceSchema])
def list_invoices(rental_id: str, issuer: InvoiceIssuer = Depends(get_issuer)):
    return [InvoiceSchema.from_domain(i) for i in issuer.list_invoices(parse_uuid(rental_id, "rental"))]
