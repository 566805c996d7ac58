"""Reward effect channels.

A :class:`RewardEvent` leaves the session through a :class:`RewardDispatcher`,
which hands it to every registered :class:`RewardHandler`.  The rendering
layer (VR scene, audio engine) lives outside this package; a handler only
delivers the event to it.

Dispatch runs in a background task scheduled by the session, so a slow or
broken channel never delays the next decision.  To add a channel, subclass
:class:`RewardHandler`, implement ``send`` and register it with
:meth:`RewardDispatcher.add_handler` (or in :func:`create_dispatcher`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from neurogate.config import Settings
    from neurogate.models import RewardEvent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Which channels accepted one reward event."""

    sequence_number: int
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        return not self.failed


class RewardHandler(ABC):
    """One delivery channel for reward events."""

    name: str = "base"

    @abstractmethod
    async def send(self, event: RewardEvent) -> bool:
        """Deliver *event*; return ``False`` if the channel rejected it."""

    def should_handle(self, event: RewardEvent) -> bool:  # noqa: ARG002
        return True


class LogHandler(RewardHandler):
    name = "log"

    async def send(self, event: RewardEvent) -> bool:
        logger.info(
            "effect.log",
            sequence=event.sequence_number,
            timestamp=round(event.timestamp, 3),
        )
        return True


class WebhookHandler(RewardHandler):
    """POST each event as JSON to an external renderer."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def send(self, event: RewardEvent) -> bool:
        payload = event.model_dump(mode="json")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("effect.webhook_failed", url=self._url, sequence=event.sequence_number, error=str(exc))
            return False
        logger.debug("effect.webhook_sent", url=self._url, sequence=event.sequence_number)
        return True


class RewardDispatcher:
    """Send each reward event to every handler, isolating failures.

    Handlers run in registration order.  An exception in one handler is
    logged and counted as a failure; the remaining handlers still run.
    """

    def __init__(self, *, handlers: list[RewardHandler] | None = None) -> None:
        self._handlers: list[RewardHandler] = handlers if handlers is not None else [LogHandler()]

    def add_handler(self, handler: RewardHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, name: str) -> bool:
        """Drop the first handler called *name*; ``False`` if none matched."""
        for handler in self._handlers:
            if handler.name == name:
                self._handlers.remove(handler)
                return True
        return False

    @property
    def handler_names(self) -> list[str]:
        return [h.name for h in self._handlers]

    async def dispatch(self, event: RewardEvent) -> DispatchResult:
        result = DispatchResult(sequence_number=event.sequence_number)
        for handler in self._handlers:
            if not handler.should_handle(event):
                continue
            try:
                delivered = await handler.send(event)
            except Exception:
                logger.exception("effect.handler_error", handler=handler.name, sequence=event.sequence_number)
                delivered = False
            (result.sent if delivered else result.failed).append(handler.name)

        if not result.all_ok:
            logger.warning("effect.partial_failure", sequence=event.sequence_number, failed=result.failed)
        return result


def create_dispatcher(settings: Settings) -> RewardDispatcher:
    """Log channel always; webhook channel when ``webhook_url`` is set."""
    dispatcher = RewardDispatcher()
    if settings.webhook_url:
        dispatcher.add_handler(WebhookHandler(settings.webhook_url))
    return dispatcher
