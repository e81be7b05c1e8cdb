"""Prometheus metrics for obligations, reminders, invoices and notification delivery"""

from prometheus_client import Counter, Histogram

# Schedule and sweep
obligations_generated_counter = Counter(
    "rental_obligations_generated_total",
    "Payment obligations created",
    ["initial_status"],  # Pending | Overdue
)

obligations_overdue_counter = Counter(
    "rental_obligations_marked_overdue_total",
    "Obligations moved from Pending to Overdue by the sweep",
)

sweep_failure_counter = Counter(
    "rental_sweep_failures_total",
    "Rentals the daily sweep failed to evaluate",
)

# Reminders
reminder_counter = Counter(
    "rental_reminders_total",
    "Reminder requests by trigger and outcome",
    ["trigger", "outcome"],  # manual|scheduled x sent|cooldown|no_balance|failed
)

# Payments and invoices
payment_counter = Counter(
    "rental_payments_recorded_total",
    "Payments recorded by resulting obligation status",
    ["status"],
)

invoice_counter = Counter(
    "rental_invoices_issued_total",
    "Invoices issued",
)

# Notification channel
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification channel response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
    ["template_kind"],
)

render_failure_counter = Counter(
    "invoice_render_failures_total",
    "Invoice documents that failed to render",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_reminder(trigger: str, outcome: str) -> None:
    reminder_counter.labels(trigger=trigger, outcome=outcome).inc()
