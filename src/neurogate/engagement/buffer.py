"""Fixed-capacity rolling window over one telemetry channel."""

from __future__ import annotations

from collections import deque


class SampleBuffer:
    """Keep the last *window* values and expose their arithmetic mean.

    The mean of an empty buffer is ``0.0``; callers that must distinguish
    "no data" from a real zero check :func:`len` first.
    """

    def __init__(self, window: int = 10) -> None:
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self._values: deque[float] = deque(maxlen=window)

    def push(self, value: float) -> float:
        """Append *value* (evicting the oldest when full) and return the new mean."""
        self._values.append(value)
        return self.mean

    @property
    def mean(self) -> float:
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    @property
    def latest(self) -> float | None:
        return self._values[-1] if self._values else None

    @property
    def capacity(self) -> int:
        return self._values.maxlen or 0

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
