"""On-demand runs of the daily jobs"""

from fastapi import APIRouter, Depends

from rental_engine.api.dependencies import get_evaluator, get_gatekeeper
from rental_engine.api.v1.schemas import ScheduledRemindersResponse, SweepResponse
from rental_engine.services.reminders import ReminderGatekeeper
from rental_engine.services.sweep import PaymentStateEvaluator

router = APIRouter()


@router.post("/sweep", response_model=SweepResponse)
def run_sweep(evaluator: PaymentStateEvaluator = Depends(get_evaluator)):
    """Mark past-due obligations Overdue. Safe to repeat on the same day."""
    return SweepResponse.from_domain(evaluator.run_daily_sweep())


@router.post("/reminders/scheduled", response_model=ScheduledRemindersResponse)
def run_scheduled_reminders(gatekeeper: ReminderGatekeeper = Depends(get_gatekeeper)):
    return ScheduledRemindersResponse.from_domain(gatekeeper.run_scheduled_reminders())
