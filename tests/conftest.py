"""Pytest fixtures for testing"""

from datetime import date, datetime, timezone
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rental_engine.api.dependencies import ServiceContainer
from rental_engine.api.main import create_app
from rental_engine.domain.clock import FixedClock
from rental_engine.domain.invoices import InvoiceData
from rental_engine.domain.models import RenderedDocument, RentalItem
from rental_engine.infrastructure.database.models import Base
from rental_engine.services.dues import DuesAggregator
from rental_engine.services.invoices import InvoiceIssuer
from rental_engine.services.payments import PaymentRecorder
from rental_engine.services.reminders import ReminderGatekeeper
from rental_engine.services.rentals import RentalService
from rental_engine.services.sweep import PaymentStateEvaluator


class RecordingDispatcher:
    """Stands in for the notification dispatcher; delivers synchronously"""

    def __init__(self, deliver: bool = True):
        self.deliver = deliver
        self.calls: List[dict] = []

    def submit(self, recipient, template_kind, payload, on_delivered=None):
        self.calls.append({"recipient": recipient, "template_kind": template_kind, "payload": payload})
        if self.deliver and on_delivered is not None:
            on_delivered()
        return None

    def of_kind(self, template_kind) -> List[dict]:
        return [c for c in self.calls if c["template_kind"] == template_kind]


class StubRenderer:
    def __init__(self):
        self.rendered: List[InvoiceData] = []

    def render(self, invoice_data: InvoiceData) -> RenderedDocument:
        self.rendered.append(invoice_data)
        return RenderedDocument(
            filename=f"{invoice_data.invoice_number}.html",
            content_type="text/html",
            body=b"<html></html>",
        )


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads share one database"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def undelivering_dispatcher() -> RecordingDispatcher:
    """Accepts notifications but never reports them delivered"""
    return RecordingDispatcher(deliver=False)


@pytest.fixture
def renderer() -> StubRenderer:
    return StubRenderer()


@pytest.fixture
def rental_service(session_factory, clock) -> RentalService:
    return RentalService(session_factory, clock, months_ahead=12)


@pytest.fixture
def evaluator(session_factory, clock) -> PaymentStateEvaluator:
    return PaymentStateEvaluator(session_factory, clock, window_days=[3, 1, 0])


@pytest.fixture
def gatekeeper(session_factory, clock, dispatcher, evaluator) -> ReminderGatekeeper:
    return ReminderGatekeeper(session_factory, clock, dispatcher, evaluator=evaluator)


@pytest.fixture
def issuer(session_factory, clock, renderer, dispatcher) -> InvoiceIssuer:
    return InvoiceIssuer(session_factory, clock, renderer, dispatcher, prefix="INV")


@pytest.fixture
def recorder(session_factory, clock, dispatcher, issuer) -> PaymentRecorder:
    return PaymentRecorder(session_factory, clock, dispatcher, issuer)


@pytest.fixture
def aggregator(session_factory, clock) -> DuesAggregator:
    return DuesAggregator(session_factory, clock)


@pytest.fixture
def make_rental(rental_service):
    """Create a rental through the service, with sensible defaults"""

    def _make(
        start_date: date = date(2025, 10, 5),
        email: str = "asha@example.com",
        name: str = "Asha Rao",
        monthly_rate_cents: int = 200000,
        quantity: int = 1,
        user_id=None,
    ):
        return rental_service.create_rental(
            customer_name=name,
            customer_email=email,
            customer_phone="+91-9000000000",
            items=[RentalItem(item_name="Sofa", quantity=quantity, monthly_rate_cents=monthly_rate_cents)],
            start_date=start_date,
            user_id=user_id,
        )

    return _make


@pytest.fixture
def container(session_factory, clock, dispatcher, renderer) -> ServiceContainer:
    return ServiceContainer.build(session_factory, clock, dispatcher, renderer)


@pytest.fixture
def client(container) -> TestClient:
    """Create FastAPI test client bound to the test database"""
    app = create_app(container=container, run_scheduler=False)
    return TestClient(app)
