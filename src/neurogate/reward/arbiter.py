"""Reward arbitration: fuse engagement and orientation under a cooldown."""

from __future__ import annotations

import structlog

from neurogate.models import ArbiterState, RewardEvent

logger = structlog.get_logger(__name__)

DEFAULT_COOLDOWN_SECONDS = 1.0
DEFAULT_REWARD_DURATION_SECONDS = 2.0


class RewardArbiter:
    """Decide when a reward fires.

    A reward is emitted iff all of the following hold:

    1. a decision threshold exists (the session is calibrated),
    2. the engagement score is strictly above it,
    3. the orientation is in the target zone,
    4. at least ``cooldown_seconds`` have passed since the previous reward.

    A fused condition that arrives during the cooldown is dropped, not
    deferred.  After emitting, the arbiter is *active* until
    :meth:`end_reward` is called for that event (the session schedules this
    ``reward_duration`` later); the active state is bookkeeping for the
    effect layer and never blocks the next reward.
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        reward_duration_seconds: float = DEFAULT_REWARD_DURATION_SECONDS,
    ) -> None:
        if cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be >= 0, got {cooldown_seconds}")
        if reward_duration_seconds < 0:
            raise ValueError(f"reward_duration_seconds must be >= 0, got {reward_duration_seconds}")
        self._cooldown = cooldown_seconds
        self._duration = reward_duration_seconds
        self._sequence = 0
        self._last_reward_at: float | None = None
        self._state = ArbiterState.IDLE
        self._dropped = 0

    # ── Properties ────────────────────────────────────────────

    @property
    def state(self) -> ArbiterState:
        return self._state

    @property
    def reward_duration(self) -> float:
        return self._duration

    @property
    def total_rewards(self) -> int:
        return self._sequence

    @property
    def dropped(self) -> int:
        """Fused conditions that fell inside a cooldown."""
        return self._dropped

    @property
    def last_reward_at(self) -> float | None:
        return self._last_reward_at

    def cooldown_elapsed(self, now: float) -> bool:
        return self._last_reward_at is None or now - self._last_reward_at >= self._cooldown

    def cooldown_remaining(self, now: float) -> float:
        if self._last_reward_at is None:
            return 0.0
        return max(0.0, self._cooldown - (now - self._last_reward_at))

    # ── Decision ──────────────────────────────────────────────

    def evaluate(
        self,
        score: float | None,
        threshold: float | None,
        in_zone: bool,
        now: float,
    ) -> RewardEvent | None:
        """Return a new :class:`RewardEvent` if the fused condition fires at *now*."""
        if threshold is None or score is None:
            return None
        if not (score > threshold and in_zone):
            return None
        if not self.cooldown_elapsed(now):
            self._dropped += 1
            return None
        return self._emit(now)

    def trigger_manual(self, now: float) -> RewardEvent | None:
        """Fire a reward regardless of the fused condition; the cooldown still applies."""
        if not self.cooldown_elapsed(now):
            logger.info("reward.manual_in_cooldown", remaining=round(self.cooldown_remaining(now), 3))
            return None
        return self._emit(now, manual=True)

    def end_reward(self, sequence_number: int) -> bool:
        """Return to *idle* if *sequence_number* is the most recent reward."""
        if sequence_number != self._sequence or self._state is ArbiterState.IDLE:
            return False
        self._state = ArbiterState.IDLE
        logger.debug("reward.ended", sequence=sequence_number)
        return True

    def _emit(self, now: float, *, manual: bool = False) -> RewardEvent:
        self._sequence += 1
        self._last_reward_at = now
        self._state = ArbiterState.ACTIVE
        event = RewardEvent(sequence_number=self._sequence, timestamp=now)
        logger.info("reward.triggered", sequence=self._sequence, manual=manual)
        return event
