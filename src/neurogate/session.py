"""Neurofeedback session: wires the closed loop onto one event loop.

Architecture
~~~~~~~~~~~~
Samples from any :class:`PushSource` (or the HTTP ingest routes) are
published onto the :class:`StreamPipeline`, whose single consumer calls
:meth:`NeurofeedbackSession.handle_telemetry` /
:meth:`NeurofeedbackSession.handle_orientation`.  Those handlers are plain
synchronous methods, so every update is applied atomically:

1. Band power → :class:`EngagementScorer` (moving average per band).
2. A fresh score is either observed by the :class:`BaselineCalibrator`
   (during the calibration window) or compared with the decision threshold
   owned by the :class:`AdaptiveThresholdController`.
3. The :class:`RewardArbiter` fuses the score with the
   :class:`OrientationClassifier` state and emits :class:`RewardEvent`\\ s,
   which are handed to the :class:`RewardDispatcher` as background tasks.

Two :class:`PeriodicTask`\\ s run beside the pipeline: the threshold control
step (every ``controller_period_seconds`` once calibrated) and the recorder
tick (``record_hz``), which republishes the latest known values even when no
new sample arrived.

A :class:`PhaseRunner` walks the timed sequence (baseline for the
calibration window, then training, then cool-down).  Phase changes land in
the recorder's event column and, once cool-down ends, the session stops
itself unless ``stop_on_complete`` is off.

Integration::

    session = NeurofeedbackSession(settings)
    await session.start()
    session.attach_source(SimulatedBandSource())
    ...
    await session.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import math
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Union

import structlog

from neurogate.config import Settings, get_settings
from neurogate.effects.handlers import RewardDispatcher, create_dispatcher
from neurogate.engagement.calibration import BaselineCalibrator
from neurogate.engagement.scorer import SCORING_BANDS, EngagementScorer
from neurogate.engagement.threshold import AdaptiveThresholdController, Direction, ThresholdAdjustment
from neurogate.logger import bind_session, unbind_session
from neurogate.models import (
    Band,
    BaselineProfile,
    OrientationSample,
    RewardEvent,
    SessionPhase,
    SessionRecord,
    SignalStatus,
    TelemetrySample,
)
from neurogate.orientation.classifier import OrientationClassifier
from neurogate.recording.recorder import SessionRecorder, session_filename
from neurogate.reward.arbiter import RewardArbiter
from neurogate.scheduler.periodic import PeriodicTask
from neurogate.scheduler.phases import PHASE_ORDER, PhaseRunner
from neurogate.sources.base import PushSource, pump
from neurogate.streaming.pipeline import Sample, StreamPipeline
from neurogate.streaming.watchdog import SignalWatchdog

logger = structlog.get_logger(__name__)

RecordListener = Callable[[SessionRecord], Union[None, Awaitable[None]]]


class NeurofeedbackSession:
    """One single-subject training session.

    Parameters
    ----------
    settings : Settings | None
        Configuration; defaults to :func:`get_settings`.
    dispatcher : RewardDispatcher | None
        Effect-layer fan-out; defaults to :func:`create_dispatcher`.
    clock : callable
        Monotonic clock in seconds.  Tests inject a fake one.
    record_path : Path | None
        Session CSV path; defaults to a timestamped file in
        ``settings.record_dir``.
    record : bool
        Set ``False`` to run without writing a session file.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        dispatcher: RewardDispatcher | None = None,
        clock: Callable[[], float] = time.monotonic,
        record_path: str | Path | None = None,
        record: bool = True,
    ) -> None:
        self._settings = s = settings or get_settings()
        self._clock = clock

        self.scorer = EngagementScorer(
            window=s.smoothing_window,
            epsilon=s.epsilon,
            theta_norm=s.theta_norm,
            theta_penalty_weight=s.theta_penalty_weight,
            high_weight=s.high_weight,
        )
        self.calibrator = BaselineCalibrator(
            duration_seconds=s.calibration_duration_seconds,
            std_multiplier=s.threshold_std_multiplier,
        )
        self.controller = AdaptiveThresholdController(
            target_success_rate=s.target_success_rate,
            margin=s.success_rate_margin,
            easier_multiplier=s.easier_multiplier,
            harder_multiplier=s.harder_multiplier,
            min_ratio=s.threshold_min_ratio,
            max_ratio=s.threshold_max_ratio,
        )
        self.orientation = OrientationClassifier(
            yaw_threshold=s.yaw_threshold,
            pitch_tolerance=s.pitch_tolerance,
            alpha=s.orientation_smoothing,
        )
        self.arbiter = RewardArbiter(
            cooldown_seconds=s.cooldown_seconds,
            reward_duration_seconds=s.reward_duration_seconds,
        )
        self.telemetry_watchdog = SignalWatchdog("telemetry", s.telemetry_gap_seconds)
        self.orientation_watchdog = SignalWatchdog("orientation", s.orientation_gap_seconds)

        self._dispatcher = dispatcher or create_dispatcher(s)
        self.pipeline = StreamPipeline()
        self.pipeline.add_consumer(self._consume)

        self._recorder: SessionRecorder | None = None
        if record:
            path = Path(record_path) if record_path else s.record_dir / session_filename(datetime.now())
            self._recorder = SessionRecorder(path, flush_every=s.record_flush_every)

        self._controller_task = PeriodicTask(
            "threshold_controller", s.controller_period_seconds, self.run_control_step,
        )
        self._record_task = PeriodicTask("recorder", s.record_interval_seconds, self._record_tick_async)
        self.phases = PhaseRunner(
            {
                SessionPhase.BASELINE: s.calibration_duration_seconds,
                SessionPhase.TRAINING: s.training_duration_seconds,
                SessionPhase.COOLDOWN: s.cooldown_duration_seconds,
            },
            on_transition=self._on_phase,
            on_complete=self._on_phases_complete,
            clock=clock,
        )

        self._running = False
        self._started_at: float | None = None
        self._started_wall: datetime | None = None
        self._pipeline_task: asyncio.Task | None = None
        self._shutdown_task: asyncio.Task | None = None
        self._completed = asyncio.Event()
        self._source_tasks: list[asyncio.Task] = []
        self._effect_tasks: set[asyncio.Task] = set()
        self._reward_end_handles: dict[int, asyncio.TimerHandle] = {}
        self._record_listeners: list[RecordListener] = []

        self._latest_score: float | None = None
        self._baseline: BaselineProfile | None = None
        self._pending_events: list[str] = []
        self._reward_since_tick = False
        self._empty_window_warned = False
        self._records = 0
        self._rejected = 0

    # ── Properties ────────────────────────────────────────────

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def session_id(self) -> str:
        """Recorder file stem, or the start time when nothing is recorded."""
        if self._recorder is not None:
            return self._recorder.path.stem
        started = self._started_wall or datetime.now()
        return started.strftime("%Y%m%d_%H%M%S")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def baseline(self) -> BaselineProfile | None:
        return self._baseline

    @property
    def latest_score(self) -> float | None:
        return self._latest_score

    @property
    def threshold(self) -> float | None:
        return self.controller.threshold

    @property
    def recorder(self) -> SessionRecorder | None:
        return self._recorder

    @property
    def dispatcher(self) -> RewardDispatcher:
        return self._dispatcher

    def add_record_listener(self, fn: RecordListener) -> None:
        """Register a callback (plain or async) that receives every recorded row."""
        self._record_listeners.append(fn)

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Open the recorder, begin calibration and start the background tasks.

        A session runs once.  Raises :class:`RuntimeError` when called after
        :meth:`stop`; build a new session (and file) for the next run.
        """
        if self._running:
            return
        if self._shutdown_task is not None or self.phases.phase is not SessionPhase.NOT_STARTED:
            raise RuntimeError("session already finished; create a new session to record again")
        s = self._settings
        self._started_wall = datetime.now()
        self._started_at = self._clock()
        if self._recorder is not None:
            self._recorder.open({
                "session_started": self._started_wall.isoformat(timespec="seconds"),
                "record_hz": s.record_hz,
                "smoothing_window": s.smoothing_window,
                "calibration_seconds": s.calibration_duration_seconds,
                "training_seconds": s.training_duration_seconds,
                "cooldown_phase_seconds": s.cooldown_duration_seconds,
                "controller_period_seconds": s.controller_period_seconds,
                "target_success_rate": s.target_success_rate,
                "cooldown_seconds": s.cooldown_seconds,
                "yaw_threshold": s.yaw_threshold,
                "pitch_tolerance": s.pitch_tolerance,
            })

        self._running = True
        bind_session(self.session_id)
        self.begin_calibration()
        self._note_event("session_start")

        self._pipeline_task = asyncio.create_task(self.pipeline.start(), name="pipeline")
        self._record_task.start()
        self.phases.start()
        logger.info(
            "session.started",
            recorder=str(self._recorder.path) if self._recorder else None,
            calibration_seconds=s.calibration_duration_seconds,
            planned_seconds=self.phases.total_duration,
        )

    async def stop(self) -> None:
        """Stop every background task, flush effects and close the recorder.

        Safe to call repeatedly and concurrently: every caller waits for the
        same shutdown, which returns only after no timer or task started by
        the session is left.
        """
        if self._shutdown_task is None:
            if not self._running:
                return
            self._shutdown_task = asyncio.create_task(self._shutdown(), name="session:shutdown")
        await asyncio.shield(self._shutdown_task)
        unbind_session()

    async def _shutdown(self) -> None:
        self._running = False
        self.phases.cancel()

        for task in self._source_tasks:
            task.cancel()
        await asyncio.gather(*self._source_tasks, return_exceptions=True)
        self._source_tasks.clear()

        await self._record_task.stop()
        await self._controller_task.stop()

        await self.pipeline.stop()
        if self._pipeline_task:
            self._pipeline_task.cancel()
            try:
                await self._pipeline_task
            except asyncio.CancelledError:
                pass
            self._pipeline_task = None

        for handle in self._reward_end_handles.values():
            handle.cancel()
        self._reward_end_handles.clear()

        if self._effect_tasks:
            await asyncio.gather(*self._effect_tasks, return_exceptions=True)

        self._note_event("session_end")
        self.record_tick()
        if self._recorder is not None:
            self._recorder.close(self.summary())
        logger.info("session.stopped", **self.summary())

    async def run(
        self,
        duration: float | None = None,
        sources: Iterable[PushSource] = (),
    ) -> dict[str, Any]:
        """Start and pump *sources* until the phase sequence completes.

        *duration* caps the run in seconds; ``None`` runs every phase.  The
        session is stopped either way and its summary returned.
        """
        await self.start()
        for source in sources:
            self.attach_source(source)
        try:
            await asyncio.wait_for(self._completed.wait(), timeout=duration)
        except asyncio.TimeoutError:
            pass
        finally:
            await self.stop()
        return self.summary()

    def attach_source(self, source: PushSource) -> asyncio.Task:
        """Pump *source* into the pipeline until the session stops."""
        task = asyncio.create_task(pump(source, self.pipeline), name=f"source:{source.name}")
        self._source_tasks.append(task)
        return task

    async def publish(self, sample: Sample) -> None:
        await self.pipeline.publish(sample)

    # ── Calibration ───────────────────────────────────────────

    def begin_calibration(self) -> None:
        self._empty_window_warned = False
        self.calibrator.start(self._clock())

    def _complete_calibration(self) -> None:
        self._baseline = self.calibrator.finalize()
        self.controller.seed(self._baseline)
        self._note_event("calibration_complete")
        if self._running:
            self._controller_task.start()

    # ── Phases ────────────────────────────────────────────────

    @property
    def phase(self) -> SessionPhase:
        return self.phases.phase

    def _on_phase(self, previous: SessionPhase, current: SessionPhase) -> None:
        if previous in PHASE_ORDER:
            self._note_event(f"{previous.value}_end")
        if current in PHASE_ORDER:
            self._note_event(f"{current.value}_start")

    def _on_phases_complete(self) -> None:
        self._note_event("session_complete")
        self._completed.set()
        logger.info("session.completed", rewards=self.arbiter.total_rewards)
        if not (self._running and self._settings.stop_on_complete):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._shutdown_task is None:
            self._shutdown_task = loop.create_task(self._shutdown(), name="session:shutdown")

    # ── Sample handling ───────────────────────────────────────

    async def _consume(self, sample: Sample) -> None:
        if isinstance(sample, TelemetrySample):
            self.handle_telemetry(sample)
        else:
            self.handle_orientation(sample)

    def handle_telemetry(self, sample: TelemetrySample) -> RewardEvent | None:
        """Apply one band-power sample; return a reward if one fired."""
        if not math.isfinite(sample.power) or sample.power < 0:
            self._rejected += 1
            logger.warning("session.sample_rejected", band=sample.band.value, power=sample.power)
            return None
        now = self._clock()
        self._watch(self.telemetry_watchdog, self.telemetry_watchdog.feed(now))
        self.scorer.update(sample.band, sample.power)
        if sample.band not in SCORING_BANDS:
            return None

        score = self.scorer.current_score()
        if score is None:
            return None
        self._latest_score = score
        return self._process_score(score, now)

    def handle_orientation(self, sample: OrientationSample) -> RewardEvent | None:
        """Apply one orientation sample; return a reward if one fired."""
        now = self._clock()
        self._watch(self.orientation_watchdog, self.orientation_watchdog.feed(now))
        self.orientation.update(sample.yaw, sample.pitch)
        if self.orientation.entered_zone:
            self._note_event("zone_entered")
        elif self.orientation.left_zone:
            self._note_event("zone_left")
        if not self.controller.calibrated:
            return None
        return self._arbitrate(now)

    def _process_score(self, score: float, now: float) -> RewardEvent | None:
        if not self.controller.calibrated:
            if not self.calibrator.started:
                return None
            if not self.calibrator.window_elapsed(now):
                self.calibrator.observe(score)
                return None
            if self.calibrator.sample_count == 0:
                # Window closed empty: the first score afterwards becomes the baseline.
                if not self._empty_window_warned:
                    logger.warning("calibration.empty_window", duration=self.calibrator.duration)
                    self._empty_window_warned = True
                self.calibrator.observe(score)
            self._complete_calibration()

        self.controller.evaluate(score)
        return self._arbitrate(now)

    def _arbitrate(self, now: float) -> RewardEvent | None:
        self._watch(self.telemetry_watchdog, self.telemetry_watchdog.check(now))
        self._watch(self.orientation_watchdog, self.orientation_watchdog.check(now))
        if self.telemetry_watchdog.status is not SignalStatus.OK:
            return None
        if self.orientation_watchdog.status is not SignalStatus.OK:
            return None

        event = self.arbiter.evaluate(
            self._latest_score,
            self.controller.threshold,
            self.orientation.state.in_zone,
            now,
        )
        if event is not None:
            self._on_reward(event)
        return event

    # ── Rewards ───────────────────────────────────────────────

    def cooldown_remaining(self) -> float:
        """Seconds until the arbiter accepts another reward, on the session clock."""
        return self.arbiter.cooldown_remaining(self._clock())

    def trigger_manual_reward(self) -> RewardEvent | None:
        event = self.arbiter.trigger_manual(self._clock())
        if event is not None:
            self._on_reward(event)
        return event

    def _on_reward(self, event: RewardEvent) -> None:
        self._reward_since_tick = True
        self._note_event(f"reward_{event.sequence_number}")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous use: the caller owns effect delivery and end_reward.
            return

        task = loop.create_task(self._dispatcher.dispatch(event))
        self._effect_tasks.add(task)
        task.add_done_callback(self._effect_tasks.discard)

        self._reward_end_handles[event.sequence_number] = loop.call_later(
            self.arbiter.reward_duration, self._end_reward, event.sequence_number,
        )

    def _end_reward(self, sequence_number: int) -> None:
        self._reward_end_handles.pop(sequence_number, None)
        self.arbiter.end_reward(sequence_number)

    # ── Control step ──────────────────────────────────────────

    def run_control_step(self) -> ThresholdAdjustment:
        result = self.controller.step()
        if result.direction is Direction.LOWERED:
            self._note_event("threshold_lowered")
        elif result.direction is Direction.RAISED:
            self._note_event("threshold_raised")
        return result

    # ── Recording ─────────────────────────────────────────────

    def record_tick(self) -> SessionRecord:
        """Snapshot the latest values into one row (and append it when recording)."""
        now = self._clock()
        self._watch(self.telemetry_watchdog, self.telemetry_watchdog.check(now))
        self._watch(self.orientation_watchdog, self.orientation_watchdog.check(now))

        started = self._started_at if self._started_at is not None else now
        if self._started_at is None:
            self._started_at = now

        state = self.orientation.state
        record = SessionRecord(
            timestamp_ms=int(round((now - started) * 1000)),
            smoothed_low=self.scorer.smoothed(Band.LOW),
            smoothed_mid=self.scorer.smoothed(Band.MID),
            smoothed_high=self.scorer.smoothed(Band.HIGH),
            engagement_score=self._latest_score,
            decision_threshold=self.controller.threshold,
            yaw=state.yaw,
            pitch=state.pitch,
            in_zone=state.in_zone,
            reward_triggered=self._reward_since_tick,
            signal_status=self.telemetry_watchdog.status,
            event=";".join(self._pending_events),
        )
        self._pending_events.clear()
        self._reward_since_tick = False
        self._records += 1

        if self._recorder is not None and self._recorder.is_open:
            self._recorder.append(record)
        return record

    async def _record_tick_async(self) -> None:
        record = self.record_tick()
        for listener in self._record_listeners:
            try:
                result = listener(record)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("session.record_listener_error")

    # ── Status ────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        """Current state for status endpoints and dashboards."""
        now = self._clock()
        state = self.orientation.state
        baseline = self._baseline
        return {
            "running": self._running,
            "phase": {
                "name": self.phases.phase.value,
                "elapsed_seconds": round(self.phases.elapsed(), 3),
                "remaining_seconds": round(self.phases.remaining(), 3),
                "progress": round(self.phases.progress(), 3),
            },
            "controller_state": self.controller.state.value,
            "calibration": {
                "complete": baseline is not None,
                "samples": baseline.sample_count if baseline else self.calibrator.sample_count,
                "remaining_seconds": 0.0 if baseline else round(self.calibrator.remaining(now), 3),
                "mean": baseline.mean if baseline else None,
                "stddev": baseline.stddev if baseline else None,
            },
            "engagement_score": self._latest_score,
            "decision_threshold": self.controller.threshold,
            "success_rate": self.controller.success_rate,
            "controller_steps": self.controller.steps,
            "orientation": state.model_dump(),
            "reward": {
                "state": self.arbiter.state.value,
                "total": self.arbiter.total_rewards,
                "dropped_in_cooldown": self.arbiter.dropped,
                "cooldown_remaining": round(self.cooldown_remaining(), 3),
            },
            "signal": {
                "telemetry": self.telemetry_watchdog.status.value,
                "orientation": self.orientation_watchdog.status.value,
            },
            "pipeline_pending": self.pipeline.pending,
            "records": self._records,
        }

    def summary(self) -> dict[str, Any]:
        """Closing figures written to the session file's summary block."""
        duration = 0.0
        if self._started_at is not None:
            duration = self._clock() - self._started_at
        threshold = self.controller.threshold
        return {
            "duration_seconds": round(duration, 1),
            "phase": self.phases.phase.value,
            "records": self._records,
            "samples": self.pipeline.processed,
            "rejected_samples": self._rejected,
            "record_hz": self._settings.record_hz,
            "total_rewards": self.arbiter.total_rewards,
            "calibrated": self.controller.calibrated,
            "final_success_rate": self.controller.success_rate,
            "final_threshold": round(threshold, 4) if threshold is not None else None,
            "controller_steps": self.controller.steps,
            "telemetry_gaps": self.telemetry_watchdog.gap_count,
        }

    # ── Internals ─────────────────────────────────────────────

    def _note_event(self, name: str) -> None:
        self._pending_events.append(name)

    def _watch(self, watchdog: SignalWatchdog, change: SignalStatus | None) -> None:
        if change is None:
            return
        suffix = {
            SignalStatus.OK: "ok",
            SignalStatus.STALLED: "lost",
        }.get(change, change.value)
        self._note_event(f"{watchdog.stream}_{suffix}")
