"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from rental_engine.domain.models import Invoice, ReminderResult, SweepReport

SERVICE_NAME = "rental-engine"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = SERVICE_NAME


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_sweep(report: SweepReport, duration_ms: float) -> None:
    """Log structured sweep outcome"""
    logging.info(
        "Daily sweep completed",
        extra={
            "step": "sweep_complete",
            "today": report.today.isoformat(),
            "rentals_scanned": report.rentals_scanned,
            "obligations_marked_overdue": report.obligations_marked_overdue,
            "failed_rentals": len(report.failed_rentals),
            "reminder_candidates": len(report.reminder_candidates),
            "duration_ms": duration_ms,
        },
    )


def log_reminder(result: ReminderResult) -> None:
    logging.info(
        "Payment reminder accepted",
        extra={
            "step": "reminder_sent",
            "rental_id": str(result.rental_id),
            "trigger": result.trigger.value,
            "template_kind": result.template_kind.value,
            "pending_count": result.pending_count,
            "overdue_count": result.overdue_count,
            "last_reminder_sent_at": result.sent_at.isoformat(),
        },
    )


def log_invoice(invoice: Invoice) -> None:
    logging.info(
        "Invoice issued",
        extra={
            "step": "invoice_issued",
            "invoice_number": invoice.invoice_number,
            "payment_event_id": str(invoice.payment_event_id),
            "rental_id": str(invoice.rental_id),
            "amount_cents": invoice.amount_cents,
        },
    )
