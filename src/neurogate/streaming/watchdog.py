"""Transport-gap detection for push streams.

A stream that goes quiet for longer than ``gap_seconds`` is reported as
:attr:`SignalStatus.STALLED`.  The status is reported beside the data, never
folded into it.
"""

from __future__ import annotations

import structlog

from neurogate.models import SignalStatus

logger = structlog.get_logger(__name__)

DEFAULT_GAP_SECONDS = 3.0


class SignalWatchdog:
    """Track the arrival time of one stream and classify its health."""

    def __init__(self, stream: str, gap_seconds: float = DEFAULT_GAP_SECONDS) -> None:
        if gap_seconds <= 0:
            raise ValueError(f"gap_seconds must be > 0, got {gap_seconds}")
        self._stream = stream
        self._gap = gap_seconds
        self._last_seen: float | None = None
        self._status = SignalStatus.WAITING
        self._gaps = 0

    @property
    def stream(self) -> str:
        return self._stream

    @property
    def status(self) -> SignalStatus:
        return self._status

    @property
    def gap_count(self) -> int:
        return self._gaps

    @property
    def last_seen(self) -> float | None:
        return self._last_seen

    def feed(self, now: float) -> SignalStatus | None:
        """Note an arrival at *now*.  Returns the new status if it changed."""
        self._last_seen = now
        return self._transition(SignalStatus.OK)

    def check(self, now: float) -> SignalStatus | None:
        """Re-evaluate at *now*.  Returns the new status if it changed."""
        if self._last_seen is None:
            return None
        if now - self._last_seen > self._gap:
            return self._transition(SignalStatus.STALLED, silent_for=now - self._last_seen)
        return None

    def _transition(self, status: SignalStatus, silent_for: float | None = None) -> SignalStatus | None:
        previous = self._status
        if status is previous:
            return None
        self._status = status
        if status is SignalStatus.STALLED:
            self._gaps += 1
            logger.warning(
                "watchdog.signal_lost",
                stream=self._stream,
                silent_for=round(silent_for or 0.0, 3),
            )
        elif previous is SignalStatus.STALLED:
            logger.info("watchdog.signal_restored", stream=self._stream)
        else:
            logger.info("watchdog.signal_acquired", stream=self._stream)
        return status
