"""End-to-end tests for the rental payment lifecycle"""

from datetime import date, datetime, timezone

from rental_engine.domain.models import ObligationStatus, TemplateKind


def test_full_rental_lifecycle(make_rental, rental_service, evaluator, gatekeeper, recorder, issuer, aggregator, clock, dispatcher):
    """
    Test the complete flow from rental to invoice:
    1. Rental starts on 2025-10-05, first obligation due 2025-11-04
    2. Daily sweep on 2025-11-05 marks it Overdue and queues a reminder
    3. Scheduled reminder goes out with the overdue template
    4. Full payment settles the obligation and issues the invoice
    5. Issuing again returns the same invoice
    """
    clock.set(datetime(2025, 10, 20, 9, 0, tzinfo=timezone.utc))
    rental = make_rental(start_date=date(2025, 10, 5))
    first = rental_service.list_obligations(rental.id)[0]
    assert first.amount_cents == 200000
    assert first.status == ObligationStatus.PENDING

    # Step 1: sweep the day after the due date
    clock.set(datetime(2025, 11, 5, 9, 0, tzinfo=timezone.utc))
    sweep = evaluator.run_daily_sweep()
    assert sweep.obligations_marked_overdue == 1
    assert rental.id in sweep.reminder_candidates

    # Step 2: scheduled reminder
    reminders = gatekeeper.send_scheduled_reminders(sweep.reminder_candidates)
    assert reminders.sent == [rental.id]
    assert len(dispatcher.of_kind(TemplateKind.REMINDER_OVERDUE)) == 1
    assert aggregator.dues_breakdown().overdue_count == 1

    # Step 3: the customer pays in full a few days later
    clock.set(datetime(2025, 11, 10, 9, 0, tzinfo=timezone.utc))
    outcome = recorder.record_payment(first.id, 200000, payment_method="bank_transfer", reference="TXN-1")
    assert outcome.obligation.status == ObligationStatus.PAID
    assert outcome.invoice.invoice_number == "INV-2025-1110-0001"
    # Delivery is reported back asynchronously; the stored invoice carries the flag
    assert issuer.list_invoices(rental.id)[0].delivered is True
    assert len(dispatcher.of_kind(TemplateKind.PAYMENT_CONFIRMATION)) == 1

    # Step 4: invoicing again is a no-op
    again = issuer.issue_invoice(outcome.event.id)
    assert again.id == outcome.invoice.id
    assert len(dispatcher.of_kind(TemplateKind.INVOICE)) == 1

    # Dues and collections reflect the settlement
    assert aggregator.dues_breakdown().overdue_count == 0
    collection = aggregator.monthly_collection("2025-11")
    assert collection.total_collected_cents == 200000
    assert collection.payments[0].payment_method == "bank_transfer"
