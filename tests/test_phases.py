"""Tests for the timed baseline / training / cool-down sequence."""

import asyncio

import pytest

from neurogate.models import SessionPhase
from neurogate.scheduler import PhaseRunner

DURATIONS = {
    SessionPhase.BASELINE: 120.0,
    SessionPhase.TRAINING: 900.0,
    SessionPhase.COOLDOWN: 180.0,
}


def test_manual_walk_through_phases(clock):
    transitions = []
    done = []
    runner = PhaseRunner(
        DURATIONS,
        on_transition=lambda prev, cur: transitions.append((prev, cur)),
        on_complete=lambda: done.append(True),
        clock=clock,
    )
    assert runner.phase is SessionPhase.NOT_STARTED

    runner.start()
    assert runner.phase is SessionPhase.BASELINE
    assert runner.advance() is SessionPhase.TRAINING
    assert runner.advance() is SessionPhase.COOLDOWN
    assert runner.advance() is SessionPhase.COMPLETED
    assert runner.advance() is SessionPhase.COMPLETED

    assert transitions == [
        (SessionPhase.NOT_STARTED, SessionPhase.BASELINE),
        (SessionPhase.BASELINE, SessionPhase.TRAINING),
        (SessionPhase.TRAINING, SessionPhase.COOLDOWN),
        (SessionPhase.COOLDOWN, SessionPhase.COMPLETED),
    ]
    assert done == [True]
    assert runner.progress() == 1.0


def test_elapsed_remaining_progress(clock):
    runner = PhaseRunner(DURATIONS, clock=clock)
    runner.start()
    clock.advance(30.0)
    assert runner.elapsed() == 30.0
    assert runner.remaining() == 90.0
    assert runner.progress() == pytest.approx(0.25)

    clock.advance(200.0)
    assert runner.remaining() == 0.0
    assert runner.progress() == 1.0

    runner.advance()
    assert runner.elapsed() == 0.0
    assert runner.remaining() == 900.0
    assert runner.total_duration == 1200.0


def test_start_twice_raises(clock):
    runner = PhaseRunner(DURATIONS, clock=clock)
    runner.start()
    with pytest.raises(RuntimeError):
        runner.start()


def test_advance_before_start_is_noop(clock):
    runner = PhaseRunner(DURATIONS, clock=clock)
    assert runner.advance() is SessionPhase.NOT_STARTED
    assert runner.remaining() == 0.0


@pytest.mark.parametrize("phase", list(DURATIONS))
def test_non_positive_duration_rejected(phase):
    with pytest.raises(ValueError):
        PhaseRunner({**DURATIONS, phase: 0.0})


@pytest.mark.asyncio
async def test_timers_drive_the_sequence():
    done = asyncio.Event()
    seen = []
    runner = PhaseRunner(
        {SessionPhase.BASELINE: 0.02, SessionPhase.TRAINING: 0.02, SessionPhase.COOLDOWN: 0.02},
        on_transition=lambda prev, cur: seen.append(cur),
        on_complete=done.set,
    )
    runner.start()
    await asyncio.wait_for(done.wait(), timeout=2.0)
    assert seen == [
        SessionPhase.BASELINE,
        SessionPhase.TRAINING,
        SessionPhase.COOLDOWN,
        SessionPhase.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_cancel_stops_the_sequence():
    seen = []
    runner = PhaseRunner(
        {SessionPhase.BASELINE: 0.02, SessionPhase.TRAINING: 0.02, SessionPhase.COOLDOWN: 0.02},
        on_transition=lambda prev, cur: seen.append(cur),
    )
    runner.start()
    runner.cancel()
    await asyncio.sleep(0.08)
    assert runner.phase is SessionPhase.BASELINE
    assert seen == [SessionPhase.BASELINE]
