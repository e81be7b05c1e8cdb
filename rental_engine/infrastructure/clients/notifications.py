"""Notification webhook client with exponential backoff retry logic"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from rental_engine.config import settings
from rental_engine.domain.exceptions import ChannelError
from rental_engine.domain.models import TemplateKind
from rental_engine.infrastructure.observability.metrics import notification_latency_histogram


class NotificationClient:
    """Client posting notification requests to the delivery service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries or settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base if backoff_base is None else backoff_base
        self._transport = transport

    async def send(self, recipient: str, template_kind: TemplateKind, payload: Dict[str, Any]) -> None:
        """
        Request delivery of one templated message.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s (base^attempt)
        - Retries on 5xx errors and network failures, not on 4xx
        - Tracks latency histogram

        Raises:
            ChannelError: delivery service rejected the request or stayed
                unavailable after all retries
        """
        body = {"recipient": recipient, "template": template_kind.value, "payload": payload}

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while True:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=body)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        raise ChannelError(
                            f"Notification rejected: {e.response.status_code} for {template_kind.value}"
                        ) from e
                    error: Exception = e

                except httpx.RequestError as e:
                    error = e

                attempt += 1
                if attempt >= self.max_retries:
                    raise ChannelError(
                        f"Notification channel unavailable after {attempt} attempts: {error}"
                    ) from error

                # Exponential backoff: 1s, 2s, 4s
                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)
