"""Daily trigger for the sweep and scheduled reminders"""

import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import Optional, Tuple

from rental_engine.domain.clock import Clock
from rental_engine.domain.models import ScheduledReminderReport, SweepReport
from rental_engine.services.reminders import ReminderGatekeeper
from rental_engine.services.sweep import PaymentStateEvaluator

logger = logging.getLogger(__name__)


def next_run_at(now: datetime, at: time, tz) -> datetime:
    """Next local wall-clock occurrence of ``at`` strictly after ``now``"""
    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), at, tzinfo=tz)
    if candidate <= local_now:
        candidate = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=tz)
    return candidate


class DailyScheduler:
    """
    Runs the sweep, then scheduled reminders, once a day at a fixed local
    time. Holds no state of its own: a missed or repeated run is harmless
    because both steps are re-runnable from persisted state.
    """

    def __init__(
        self,
        evaluator: PaymentStateEvaluator,
        gatekeeper: ReminderGatekeeper,
        clock: Clock,
        hour: int = 9,
        minute: int = 0,
    ):
        self.evaluator = evaluator
        self.gatekeeper = gatekeeper
        self.clock = clock
        self.at = time(hour=hour, minute=minute)
        self._task: Optional[asyncio.Task] = None

    def run_once(self) -> Tuple[SweepReport, ScheduledReminderReport]:
        sweep_report = self.evaluator.run_daily_sweep()
        reminder_report = self.gatekeeper.send_scheduled_reminders(sweep_report.reminder_candidates)
        return sweep_report, reminder_report

    def seconds_until_next_run(self) -> float:
        now = self.clock.now()
        return max((next_run_at(now, self.at, self.clock.tz) - now).total_seconds(), 0.0)

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.info("Next daily run scheduled", extra={"step": "scheduler", "in_seconds": round(delay)})
            await asyncio.sleep(delay)
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.error(f"Daily run failed: {e!r}", extra={"step": "scheduler"})

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
