"""Dependency injection for FastAPI endpoints"""

import uuid
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import HTTPException, Request
from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings
from rental_engine.domain.clock import Clock, SystemClock
from rental_engine.domain.ports import Dispatcher, DocumentRenderer
from rental_engine.infrastructure.clients.dispatcher import NotificationDispatcher
from rental_engine.infrastructure.clients.notifications import NotificationClient
from rental_engine.infrastructure.database.session import get_session_factory
from rental_engine.infrastructure.rendering.invoice_html import HtmlInvoiceRenderer
from rental_engine.scheduler import DailyScheduler
from rental_engine.services.dues import DuesAggregator
from rental_engine.services.invoices import InvoiceIssuer
from rental_engine.services.payments import PaymentRecorder
from rental_engine.services.reminders import ReminderGatekeeper
from rental_engine.services.rentals import RentalService
from rental_engine.services.sweep import PaymentStateEvaluator


@dataclass
class ServiceContainer:
    """Every service wired to one session factory, clock and dispatcher"""

    rentals: RentalService
    evaluator: PaymentStateEvaluator
    gatekeeper: ReminderGatekeeper
    issuer: InvoiceIssuer
    payments: PaymentRecorder
    dues: DuesAggregator
    scheduler: DailyScheduler
    dispatcher: Dispatcher

    @classmethod
    def build(
        cls,
        session_factory: sessionmaker,
        clock: Clock,
        dispatcher: Dispatcher,
        renderer: DocumentRenderer,
    ) -> "ServiceContainer":
        evaluator = PaymentStateEvaluator(session_factory, clock)
        gatekeeper = ReminderGatekeeper(session_factory, clock, dispatcher, evaluator=evaluator)
        issuer = InvoiceIssuer(session_factory, clock, renderer, dispatcher)
        return cls(
            rentals=RentalService(session_factory, clock),
            evaluator=evaluator,
            gatekeeper=gatekeeper,
            issuer=issuer,
            payments=PaymentRecorder(session_factory, clock, dispatcher, issuer),
            dues=DuesAggregator(session_factory, clock),
            scheduler=DailyScheduler(
                evaluator, gatekeeper, clock, hour=settings.sweep_hour, minute=settings.sweep_minute
            ),
            dispatcher=dispatcher,
        )


def build_default_container(clock: Optional[Clock] = None) -> ServiceContainer:
    """Production wiring from settings"""
    dispatcher = NotificationDispatcher(
        NotificationClient(),
        timeout=settings.dispatch_timeout_seconds,
        max_workers=settings.dispatch_max_workers,
    )
    return ServiceContainer.build(
        session_factory=get_session_factory(),
        clock=clock or SystemClock(ZoneInfo(settings.timezone)),
        dispatcher=dispatcher,
        renderer=HtmlInvoiceRenderer(),
    )


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        container = build_default_container()
        request.app.state.container = container
    return container


def get_rental_service(request: Request) -> RentalService:
    return get_container(request).rentals


def get_evaluator(request: Request) -> PaymentStateEvaluator:
    return get_container(request).evaluator


def get_gatekeeper(request: Request) -> ReminderGatekeeper:
    return get_container(request).gatekeeper


def get_issuer(request: Request) -> InvoiceIssuer:
    return get_container(request).issuer


def get_payment_recorder(request: Request) -> PaymentRecorder:
    return get_container(request).payments


def get_dues_aggregator(request: Request) -> DuesAggregator:
    return get_container(request).dues


def parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
