"""Timed session phases: baseline, training, cool-down.

Integration::

    runner = PhaseRunner(
        {SessionPhase.BASELINE: 120.0, SessionPhase.TRAINING: 900.0, SessionPhase.COOLDOWN: 180.0},
        on_transition=note,
        on_complete=finish,
    )
    runner.start()          # enters BASELINE, arms the first timer
    ...
    runner.cancel()

Each phase is armed with ``loop.call_later`` and hands over to the next one
when its timer fires.  Without a running event loop no timer is armed and the
caller drives the sequence with :meth:`PhaseRunner.advance`.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Mapping

import structlog

from neurogate.models import SessionPhase

logger = structlog.get_logger(__name__)

PHASE_ORDER = (SessionPhase.BASELINE, SessionPhase.TRAINING, SessionPhase.COOLDOWN)

Transition = Callable[[SessionPhase, SessionPhase], None]


class PhaseRunner:
    """Walk the fixed phase sequence, one timer at a time.

    Parameters
    ----------
    durations : Mapping[SessionPhase, float]
        Seconds for every phase in :data:`PHASE_ORDER`.
    on_transition : callable
        ``(previous, current)`` called on every phase change.
    on_complete : callable | None
        Called once after the last phase ends.
    clock : callable
        Monotonic clock used for elapsed / remaining time.
    """

    def __init__(
        self,
        durations: Mapping[SessionPhase, float],
        *,
        on_transition: Transition | None = None,
        on_complete: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        for phase in PHASE_ORDER:
            if durations.get(phase, 0) <= 0:
                raise ValueError(f"{phase.value} duration must be > 0, got {durations.get(phase)}")
        self._durations = {phase: float(durations[phase]) for phase in PHASE_ORDER}
        self._on_transition = on_transition
        self._on_complete = on_complete
        self._clock = clock

        self._phase = SessionPhase.NOT_STARTED
        self._phase_started: float | None = None
        self._handle: asyncio.TimerHandle | None = None

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        if self._phase is not SessionPhase.NOT_STARTED:
            raise RuntimeError(f"phase sequence already started (phase={self._phase.value})")
        self._enter(PHASE_ORDER[0])

    def advance(self) -> SessionPhase:
        """End the current phase now and enter the next one."""
        if self._phase in (SessionPhase.NOT_STARTED, SessionPhase.COMPLETED):
            return self._phase
        self._cancel_timer()
        index = PHASE_ORDER.index(self._phase)
        if index + 1 < len(PHASE_ORDER):
            self._enter(PHASE_ORDER[index + 1])
        else:
            self._enter(SessionPhase.COMPLETED)
            if self._on_complete is not None:
                self._on_complete()
        return self._phase

    def cancel(self) -> None:
        """Disarm the pending timer; the current phase is left as it is."""
        self._cancel_timer()

    # ── Queries ───────────────────────────────────────────────

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    def duration(self, phase: SessionPhase) -> float:
        return self._durations.get(phase, 0.0)

    @property
    def total_duration(self) -> float:
        return sum(self._durations.values())

    def elapsed(self) -> float:
        if self._phase_started is None:
            return 0.0
        return self._clock() - self._phase_started

    def remaining(self) -> float:
        return max(0.0, self.duration(self._phase) - self.elapsed())

    def progress(self) -> float:
        if self._phase is SessionPhase.COMPLETED:
            return 1.0
        duration = self.duration(self._phase)
        if duration <= 0:
            return 0.0
        return max(0.0, min(1.0, self.elapsed() / duration))

    # ── Internals ─────────────────────────────────────────────

    def _enter(self, phase: SessionPhase) -> None:
        previous = self._phase
        self._phase = phase
        self._phase_started = self._clock()
        logger.info(
            "phase.entered",
            phase=phase.value,
            previous=previous.value,
            duration_seconds=self.duration(phase),
        )
        if self._on_transition is not None:
            self._on_transition(previous, phase)
        if phase is not SessionPhase.COMPLETED:
            self._arm(self.duration(phase))

    def _arm(self, delay: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        self.advance()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
