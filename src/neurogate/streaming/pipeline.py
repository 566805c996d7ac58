"""Async sample pipeline: the single writer in front of the session core."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, Union

import structlog

from neurogate.models import OrientationSample, TelemetrySample

logger = structlog.get_logger(__name__)

Sample = Union[TelemetrySample, OrientationSample]
Consumer = Callable[[Sample], Awaitable[None]]


class StreamPipeline:
    """Serialise samples from any number of producers onto one consumer loop.

    Producers (sensor adapters, simulators, the HTTP ingest routes) call
    :meth:`publish`.  :meth:`start` runs the only consumer loop, handing each
    sample to every registered consumer in arrival order, so the session
    state is never updated by two samples at once.
    """

    def __init__(self, maxsize: int = 10_000, poll_interval: float = 0.25) -> None:
        self._queue: asyncio.Queue[Sample] = asyncio.Queue(maxsize=maxsize)
        self._consumers: list[Consumer] = []
        self._poll_interval = poll_interval
        self._running = False
        self._processed = 0
        self._errors = 0

    def add_consumer(self, fn: Consumer) -> None:
        self._consumers.append(fn)

    # ── Producers ─────────────────────────────────────────────

    async def publish(self, sample: Sample) -> None:
        await self._queue.put(sample)

    async def publish_batch(self, samples: Iterable[Sample]) -> None:
        for sample in samples:
            await self._queue.put(sample)

    # ── Consumer loop ─────────────────────────────────────────

    async def start(self) -> None:
        """Consume until :meth:`stop` is called.  Run as a background task."""
        self._running = True
        logger.info("stream_pipeline.started", consumers=len(self._consumers))
        while self._running:
            try:
                sample = await asyncio.wait_for(self._queue.get(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue
            try:
                await self._deliver(sample)
            finally:
                self._processed += 1
                self._queue.task_done()

    async def _deliver(self, sample: Sample) -> None:
        for consumer in self._consumers:
            try:
                await consumer(sample)
            except Exception as exc:
                self._errors += 1
                logger.error(
                    "stream_pipeline.consumer_error",
                    consumer=getattr(consumer, "__qualname__", repr(consumer)),
                    sample=type(sample).__name__,
                    error=str(exc),
                )

    async def stop(self) -> None:
        self._running = False
        logger.info("stream_pipeline.stopped", processed=self._processed, errors=self._errors)

    async def join(self) -> None:
        """Wait until every published sample has been consumed."""
        await self._queue.join()

    # ── Stats ─────────────────────────────────────────────────

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def is_running(self) -> bool:
        return self._running
