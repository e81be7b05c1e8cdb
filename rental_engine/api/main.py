"""FastAPI application factory"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from rental_engine.api.dependencies import ServiceContainer, build_default_container, get_request_id
from rental_engine.api.middleware import MetricsMiddleware, RequestIDMiddleware
from rental_engine.api.v1 import operations, payments, rentals, reports
from rental_engine.config import settings
from rental_engine.domain.exceptions import (
    ChannelError,
    ConcurrencyError,
    CooldownError,
    DomainException,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from rental_engine.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

ERROR_STATUS = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (CooldownError, 429),
    (InvalidStateError, 409),
    (ConcurrencyError, 409),
    (ChannelError, 502),
]


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status_code = next((code for kind, code in ERROR_STATUS if isinstance(exc, kind)), 500)
    body = {"detail": str(exc), "error": type(exc).__name__}

    if isinstance(exc, CooldownError):
        body.update(
            hours_remaining=exc.hours_remaining,
            minutes_remaining=exc.minutes_remaining,
            can_send_after=exc.can_send_after.isoformat(),
            last_reminder_sent=exc.last_sent_at.isoformat(),
        )

    log = logging.error if status_code >= 500 else logging.warning
    log(f"{type(exc).__name__}: {exc}", extra={"request_id": get_request_id(request), "status": status_code})
    return JSONResponse(status_code=status_code, content=body)


def create_app(container: Optional[ServiceContainer] = None, run_scheduler: Optional[bool] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    ``container`` replaces the production wiring (tests pass one bound to
    SQLite and fakes). The daily scheduler starts with the app unless
    disabled.
    """
    if run_scheduler is None:
        run_scheduler = settings.scheduler_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.container is None:
            app.state.container = build_default_container()
        services: ServiceContainer = app.state.container

        if run_scheduler:
            services.scheduler.start()
        yield
        await services.scheduler.stop()
        shutdown = getattr(services.dispatcher, "shutdown", None)
        if shutdown is not None:
            shutdown(wait=False)

    app = FastAPI(
        title="Rental Payment Lifecycle Engine",
        description="Rent obligations, overdue tracking, reminders, invoices and dues reporting",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        scheduler_running = app.state.container is not None and app.state.container.scheduler.running
        return {"status": "ok", "service": settings.service_name, "scheduler_running": scheduler_running}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(rentals.router, prefix="/v1", tags=["rentals"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(operations.router, prefix="/v1", tags=["operations"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
