"""Fire-and-forget dispatch of notifications on a background thread pool"""

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from rental_engine.domain.models import TemplateKind
from rental_engine.domain.ports import NotificationChannel
from rental_engine.infrastructure.observability.metrics import notification_failure_counter

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Hands notifications to the channel without blocking the caller.

    Each delivery runs on a worker thread with its own event loop and is
    bounded by ``timeout`` seconds. Failures are logged and counted; they
    never reach the code that submitted the notification.
    """

    def __init__(self, channel: NotificationChannel, timeout: float = 30.0, max_workers: int = 4):
        self.channel = channel
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def submit(
        self,
        recipient: str,
        template_kind: TemplateKind,
        payload: Dict[str, Any],
        on_delivered: Optional[Callable[[], None]] = None,
    ) -> Optional[Future]:
        try:
            return self._executor.submit(self._deliver, recipient, template_kind, payload, on_delivered)
        except RuntimeError:
            # Executor already shut down (process stopping)
            logger.warning(
                "Notification dropped, dispatcher is shut down",
                extra={"template_kind": template_kind.value, "recipient": recipient},
            )
            return None

    def _deliver(
        self,
        recipient: str,
        template_kind: TemplateKind,
        payload: Dict[str, Any],
        on_delivered: Optional[Callable[[], None]],
    ) -> bool:
        try:
            asyncio.run(asyncio.wait_for(self.channel.send(recipient, template_kind, payload), self.timeout))
        except Exception as e:
            notification_failure_counter.labels(template_kind=template_kind.value).inc()
            logger.error(
                f"Notification delivery failed: {e!r}",
                extra={"template_kind": template_kind.value, "recipient": recipient},
            )
            return False

        if on_delivered is not None:
            try:
                on_delivered()
            except Exception as e:
                logger.error(
                    f"Delivery callback failed: {e!r}",
                    extra={"template_kind": template_kind.value, "recipient": recipient},
                )
        return True

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
