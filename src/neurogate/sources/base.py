"""Abstract base class for push-style sample sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncIterator

import structlog

from neurogate.models import OrientationSample, TelemetrySample

if TYPE_CHECKING:
    from neurogate.streaming.pipeline import StreamPipeline

logger = structlog.get_logger(__name__)


class PushSource(ABC):
    """Contract for anything that produces telemetry or orientation samples.

    A source yields samples as they arrive.  Decoding the physical transport
    (Bluetooth, OSC, serial) is the job of a concrete source; the session
    only sees the typed samples.
    """

    name: str = "source"

    @abstractmethod
    def stream(self) -> AsyncIterator[TelemetrySample | OrientationSample]:
        """Yield samples until the source is exhausted or closed."""

    async def close(self) -> None:
        """Release any resources held by the source."""


async def pump(source: PushSource, pipeline: StreamPipeline) -> int:
    """Forward every sample of *source* into *pipeline*.

    Returns the number of samples forwarded once the source ends.  Run as a
    task and cancel it to stop early; the source is closed either way.
    """
    count = 0
    logger.info("source.started", source=source.name)
    try:
        async for sample in source.stream():
            await pipeline.publish(sample)
            count += 1
    finally:
        await source.close()
        logger.info("source.stopped", source=source.name, samples=count)
    return count
