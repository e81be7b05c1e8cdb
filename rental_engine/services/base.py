"""Shared plumbing for application services"""

import functools
import logging

from rental_engine.domain.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


def retry_on_conflict(func):
    """
    Re-run a unit of work once when it loses an optimistic version check.

    The wrapped callable must open its own session so the second attempt
    re-reads current state. A second conflict propagates.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConcurrencyError as e:
            logger.warning(f"Retrying {func.__name__} after conflict: {e}")
            return func(*args, **kwargs)

    return wrapper
