"""Domain-specific exceptions"""

import math
from datetime import datetime, timedelta


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input is malformed (bad horizon, missing start date, bad amount)"""

    pass


class NotFoundError(DomainException):
    """Rental, obligation or payment event does not exist"""

    pass


class InvalidStateError(DomainException):
    """Operation is not allowed in the entity's current state"""

    pass


class ConcurrencyError(DomainException):
    """A versioned write lost against a concurrent writer"""

    pass


class ChannelError(DomainException):
    """Notification channel or document renderer failed"""

    pass


class CooldownError(DomainException):
    """A reminder was sent for this rental too recently"""

    def __init__(self, last_sent_at: datetime, can_send_after: datetime, now: datetime):
        remaining: timedelta = can_send_after - now
        remaining_seconds = max(remaining.total_seconds(), 0.0)
        self.last_sent_at = last_sent_at
        self.can_send_after = can_send_after
        self.hours_remaining = math.ceil(remaining_seconds / 3600)
        self.minutes_remaining = math.ceil(remaining_seconds / 60)
        super().__init__(
            f"Reminder was recently sent. Please wait {self.hours_remaining} hour(s) "
            f"before sending another reminder (after {can_send_after.isoformat()})."
        )
