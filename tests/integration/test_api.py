"""Integration tests for the HTTP API"""

import uuid

import pytest

RENTAL_BODY = {
    "customer_name": "Asha Rao",
    "customer_email": "Asha@Example.com",
    "customer_phone": "+91-9000000000",
    "items": [
        {"item_name": "Sofa", "quantity": 2, "monthly_rate_cents": 100000, "deposit_cents": 50000},
    ],
    "start_date": "2025-10-05",
}


@pytest.fixture
def rental(client):
    response = client.post("/v1/rentals", json=RENTAL_BODY)
    assert response.status_code == 201
    return response.json()


def test_health_check(client):
    """Test health check endpoint"""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["scheduler_running"] is False


def test_metrics_endpoint(client):
    """Test Prometheus metrics endpoint"""
    client.get("/health")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_request_duration_seconds" in response.text


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_create_rental(rental):
    assert rental["rental_code"].startswith("RENT-2025-1110-")
    assert rental["owner_ref"] == "email:asha@example.com"
    assert rental["customer_email"] == "asha@example.com"
    assert rental["status"] == "Active"
    assert rental["total_monthly_cents"] == 200000
    assert rental["total_deposit_cents"] == 50000


def test_create_rental_rejects_empty_items(client):
    response = client.post("/v1/rentals", json={**RENTAL_BODY, "items": []})
    assert response.status_code == 422


def test_list_obligations(client, rental):
    response = client.get(f"/v1/rentals/{rental['rental_id']}/obligations")

    assert response.status_code == 200
    obligations = response.json()
    assert len(obligations) == 12
    assert obligations[0]["month"] == "2025-11"
    assert obligations[0]["due_date"] == "2025-11-04"
    assert obligations[0]["status"] == "Overdue"
    assert obligations[1]["status"] == "Pending"


def test_schedule_extends_horizon(client, rental):
    response = client.post(f"/v1/rentals/{rental['rental_id']}/schedule", json={"months_ahead": 14})

    assert response.status_code == 200
    assert [o["month"] for o in response.json()["created"]] == ["2026-11", "2026-12"]


def test_schedule_rejects_zero_months(client, rental):
    response = client.post(f"/v1/rentals/{rental['rental_id']}/schedule", json={"months_ahead": 0})
    assert response.status_code == 422


def test_invalid_rental_id(client):
    response = client.get("/v1/rentals/not-a-uuid")

    assert response.status_code == 400
    assert "Invalid rental ID format" in response.json()["detail"]


def test_unknown_rental(client):
    response = client.get(f"/v1/rentals/{uuid.uuid4()}")
    assert response.status_code == 404


def test_reminder_then_cooldown(client, rental):
    url = f"/v1/rentals/{rental['rental_id']}/reminders"

    first = client.post(url)
    assert first.status_code == 200
    body = first.json()
    assert body["template"] == "reminder-overdue"
    assert body["trigger"] == "manual"
    assert body["overdue_count"] == 1

    second = client.post(url, json={"trigger": "manual"})
    assert second.status_code == 429
    body = second.json()
    assert body["hours_remaining"] == 24
    assert body["minutes_remaining"] == 1440
    assert "can_send_after" in body
    assert "last_reminder_sent" in body


def test_reminder_for_cancelled_rental(client, rental):
    client.patch(f"/v1/rentals/{rental['rental_id']}/status", json={"status": "Cancelled"})

    response = client.post(f"/v1/rentals/{rental['rental_id']}/reminders")
    assert response.status_code == 409


def test_status_update_sets_end_date(client, rental):
    response = client.patch(f"/v1/rentals/{rental['rental_id']}/status", json={"status": "Completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "Completed"
    assert response.json()["end_date"] == "2025-11-10"


def test_payment_issues_invoice(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[0]

    response = client.post(
        f"/v1/obligations/{obligation['obligation_id']}/payments",
        json={"amount_cents": 200000, "payment_method": "upi", "reference": "UPI-1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["obligation"]["status"] == "Paid"
    assert data["invoice"]["invoice_number"] == "INV-2025-1110-0001"

    invoice = client.post(f"/v1/payment-events/{data['payment_event_id']}/invoice")
    assert invoice.status_code == 200
    assert invoice.json()["invoice_id"] == data["invoice"]["invoice_id"]

    invoices = client.get(f"/v1/rentals/{rental['rental_id']}/invoices").json()
    assert [i["invoice_number"] for i in invoices] == ["INV-2025-1110-0001"]


def test_partial_payment_has_no_invoice(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[0]

    response = client.post(f"/v1/obligations/{obligation['obligation_id']}/payments", json={"amount_cents": 5000})

    assert response.status_code == 200
    assert response.json()["obligation"]["status"] == "Partial"
    assert response.json()["invoice"] is None


def test_payment_rejects_non_positive_amount(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[0]
    response = client.post(f"/v1/obligations/{obligation['obligation_id']}/payments", json={"amount_cents": 0})
    assert response.status_code == 422


def test_delete_obligation(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[-1]

    assert client.delete(f"/v1/obligations/{obligation['obligation_id']}").status_code == 204
    assert client.delete(f"/v1/obligations/{obligation['obligation_id']}").status_code == 404


def test_dues(client, rental):
    response = client.get("/v1/dues", params={"status": "Overdue"})

    assert response.status_code == 200
    data = response.json()
    assert data["total_due_cents"] == 200000
    assert data["overdue_count"] == 1
    assert data["by_customer"][0]["owner_ref"] == "email:asha@example.com"


def test_dashboard(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[0]
    client.post(f"/v1/obligations/{obligation['obligation_id']}/payments", json={"amount_cents": 50000})

    response = client.get("/v1/dashboard")

    assert response.status_code == 200
    data = response.json()
    assert data["active_rentals"] == 1
    assert data["total_rented_items"] == 2
    assert data["potential_monthly_revenue_cents"] == 200000
    assert data["total_deposits_cents"] == 50000
    assert data["total_overdue_cents"] == 0
    assert data["total_partial_cents"] == 150000
    assert data["total_pending_cents"] == 11 * 200000
    assert data["total_paid_cents"] == 50000


def test_dues_rejects_unknown_filter(client):
    response = client.get("/v1/dues", params={"customer": "asha"})

    assert response.status_code == 422
    assert "customer" in response.json()["detail"]


def test_sweep_and_scheduled_reminders(client, rental):
    sweep = client.post("/v1/sweep")
    assert sweep.status_code == 200
    assert sweep.json()["rentals_scanned"] == 1

    reminders = client.post("/v1/reminders/scheduled")
    assert reminders.status_code == 200
    assert reminders.json()["failed"] == []


def test_monthly_collection(client, rental):
    obligation = client.get(f"/v1/rentals/{rental['rental_id']}/obligations").json()[0]
    client.post(f"/v1/obligations/{obligation['obligation_id']}/payments", json={"amount_cents": 200000})

    response = client.get("/v1/collections/monthly")
    assert response.status_code == 200
    assert response.json()["month"] == "2025-11"
    assert response.json()["total_collected_cents"] == 200000

    history = client.get("/v1/collections/history", params={"year": 2025}).json()
    assert [m["month"] for m in history] == ["2025-11"]


def test_monthly_collection_bad_month(client):
    assert client.get("/v1/collections/monthly", params={"month": "November"}).status_code == 422
