"""Reminder cooldown rule, content selection and candidate detection"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from rental_engine.domain.exceptions import CooldownError, InvalidStateError
from rental_engine.domain.models import (
    OUTSTANDING_STATUSES,
    ObligationStatus,
    PaymentObligation,
    ReminderContent,
    ReminderLine,
    TemplateKind,
)

DEFAULT_COOLDOWN = timedelta(hours=24)


def cooldown_ends_at(last_sent_at: datetime, cooldown: timedelta = DEFAULT_COOLDOWN) -> datetime:
    return last_sent_at + cooldown


def check_cooldown(
    last_sent_at: Optional[datetime],
    now: datetime,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> None:
    """Raise CooldownError when the last reminder is younger than the cooldown"""
    if last_sent_at is None:
        return
    can_send_after = cooldown_ends_at(last_sent_at, cooldown)
    if now < can_send_after:
        raise CooldownError(last_sent_at=last_sent_at, can_send_after=can_send_after, now=now)


def build_reminder_content(obligations: Iterable[PaymentObligation], today: date) -> ReminderContent:
    """
    Aggregate every outstanding obligation of a rental into one reminder.

    The overdue template wins as soon as one obligation is Overdue; otherwise
    the pending template is used.

    Raises:
        InvalidStateError: nothing is outstanding
    """
    outstanding = sorted(
        (o for o in obligations if o.status in OUTSTANDING_STATUSES),
        key=lambda o: o.due_date,
    )
    if not outstanding:
        raise InvalidStateError("No outstanding balance: every obligation of this rental is paid")

    lines: List[ReminderLine] = []
    total_pending = 0
    total_overdue = 0
    for o in outstanding:
        line = ReminderLine(
            obligation_id=o.id,
            month_key=o.month_key,
            amount_cents=o.amount_cents,
            outstanding_cents=o.outstanding_cents,
            due_date=o.due_date,
            status=o.status,
        )
        if o.due_date < today:
            line.days_overdue = (today - o.due_date).days
        else:
            line.days_until_due = (o.due_date - today).days

        if o.status == ObligationStatus.OVERDUE:
            total_overdue += o.outstanding_cents
        else:
            total_pending += o.outstanding_cents
        lines.append(line)

    any_overdue = any(o.status == ObligationStatus.OVERDUE for o in outstanding)
    kind = TemplateKind.REMINDER_OVERDUE if any_overdue else TemplateKind.REMINDER_PENDING

    return ReminderContent(
        template_kind=kind,
        lines=lines,
        total_pending_cents=total_pending,
        total_overdue_cents=total_overdue,
    )


def needs_reminder(
    obligations: Iterable[PaymentObligation],
    today: date,
    window_days: Iterable[int],
) -> bool:
    """
    True when a rental has a Pending obligation due exactly one of
    ``window_days`` from today, or an Overdue obligation on its overdue
    cadence: daily for the first three days, weekly after that.
    """
    windows = set(window_days)
    for o in obligations:
        if o.status == ObligationStatus.PENDING and (o.due_date - today).days in windows:
            return True
        if o.status == ObligationStatus.OVERDUE:
            days_overdue = (today - o.due_date).days
            if 0 < days_overdue <= 3 or (days_overdue > 0 and days_overdue % 7 == 0):
                return True
    return False
