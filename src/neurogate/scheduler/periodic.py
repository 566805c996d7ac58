"""Cancellable periodic tasks on the running event loop.

Integration::

    task = PeriodicTask("controller", 120.0, controller_step)
    task.start()
    ...
    await task.stop()

The callback runs once per ``interval`` seconds, first after one full
interval.  It may be a plain function or a coroutine function.  An exception
raised by the callback is logged and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Union

import structlog

logger = structlog.get_logger(__name__)

Callback = Callable[[], Union[None, Awaitable[None]]]


class PeriodicTask:
    """Run *callback* every *interval* seconds until stopped."""

    def __init__(self, name: str, interval: float, callback: Callback) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._name = name
        self._interval = interval
        self._callback = callback
        self._running = False
        self._task: asyncio.Task | None = None

        # Track run stats
        self._stats: dict[str, Any] = {
            "last_run": None,
            "total_runs": 0,
            "errors": 0,
        }

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        """Start the periodic loop on the running event loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=f"periodic:{self._name}")
        logger.info("periodic.started", task=self._name, interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the loop and wait for the task to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("periodic.stopped", task=self._name, runs=self._stats["total_runs"])

    @property
    def stats(self) -> dict[str, Any]:
        return dict(self._stats)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval(self) -> float:
        return self._interval

    # ── Main loop ─────────────────────────────────────────────

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self._interval
        while self._running:
            # Sleep to an absolute deadline so the cadence does not drift
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            next_at = max(next_at + self._interval, loop.time())
            await self.run_once()

    async def run_once(self) -> None:
        """Invoke the callback immediately, isolating any error."""
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            self._stats["errors"] += 1
            logger.exception("periodic.run_error", task=self._name)
        finally:
            self._stats["total_runs"] += 1
            self._stats["last_run"] = datetime.now(UTC).isoformat()
