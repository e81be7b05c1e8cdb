"""Interfaces of the collaborators the engine calls out to"""

from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional, Protocol

from rental_engine.domain.invoices import InvoiceData
from rental_engine.domain.models import RenderedDocument, TemplateKind


class NotificationChannel(Protocol):
    async def send(self, recipient: str, template_kind: TemplateKind, payload: Dict[str, Any]) -> None:
        ...


class DocumentRenderer(Protocol):
    def render(self, invoice_data: InvoiceData) -> RenderedDocument:
        ...


class Dispatcher(Protocol):
    """Fire-and-forget hand-off to the notification channel. Never raises."""

    def submit(
        self,
        recipient: str,
        template_kind: TemplateKind,
        payload: Dict[str, Any],
        on_delivered: Optional[Callable[[], None]] = None,
    ) -> Optional[Future]:
        ...
