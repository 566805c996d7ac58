"""FastAPI application: sample ingest, session status, and the effect feed.

This module wires one :class:`NeurofeedbackSession` into an HTTP surface:
- Telemetry / orientation ingest for an external sensor transport
- Session status for dashboards
- Manual reward trigger for testing the effect chain
- Real-time WebSocket broadcasting of rewards and session rows
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect

from neurogate.api.schemas import (
    OrientationRequest,
    QueuedResponse,
    RewardResponse,
    TelemetryRequest,
)
from neurogate.api.websocket import CHANNELS, WebSocketRewardHandler, ws_manager
from neurogate.config import get_settings
from neurogate.models import OrientationSample, TelemetrySample
from neurogate.session import NeurofeedbackSession
from neurogate.sources.simulator import SimulatedBandSource, SimulatedHeadSource

logger = structlog.get_logger(__name__)

# ── Shared state (initialised in lifespan) ────────────────────

_session: NeurofeedbackSession | None = None


def get_session() -> NeurofeedbackSession:
    if _session is None or not _session.is_running:
        raise HTTPException(503, "Session not running.")
    return _session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    global _session

    settings = get_settings()

    # 1. Session with the WebSocket effect channel next to the defaults
    _session = NeurofeedbackSession(settings)
    _session.dispatcher.add_handler(WebSocketRewardHandler(ws_manager))
    _session.add_record_listener(ws_manager.broadcast_record)

    # 2. Start the closed loop
    await _session.start()
    await ws_manager.broadcast_system("session_started")

    # 3. Optional simulated inputs
    if settings.simulate:
        _session.attach_source(SimulatedBandSource())
        _session.attach_source(SimulatedHeadSource())
        logger.info("server.simulation_enabled")

    logger.info("server.started", port=settings.api_port)

    yield  # ← application runs

    # Shutdown
    summary = _session.summary()
    await _session.stop()
    await ws_manager.broadcast_system("session_stopped", summary)
    _session = None
    logger.info("server.stopped")


app = FastAPI(
    title="neurogate",
    description="Closed-loop band-power and head-orientation gated reward controller.",
    version="0.1.0",
    lifespan=lifespan,
)


# ── Health ────────────────────────────────────────────────────

@app.get("/health", tags=["system"])
async def health():
    return {
        "status": "ok",
        "session_running": _session is not None and _session.is_running,
        "pipeline_pending": _session.pipeline.pending if _session else 0,
    }


@app.get("/session/status", tags=["session"])
async def session_status():
    """Calibration, threshold, orientation, reward and signal state."""
    session = get_session()
    status = session.snapshot()
    status["websocket"] = {
        "connected_clients": ws_manager.active_count,
        "channels": ws_manager.channel_breakdown(),
        "messages_sent": ws_manager.messages_sent(),
        "recent_rewards": ws_manager.recent_rewards(),
    }
    return status


# ── Ingest ────────────────────────────────────────────────────

@app.post("/telemetry", status_code=201, response_model=QueuedResponse, tags=["ingest"])
async def ingest_telemetry(req: TelemetryRequest):
    """Queue one band-power sample."""
    session = get_session()
    await session.publish(TelemetrySample(
        band=req.band,
        power=req.power,
        timestamp=req.timestamp if req.timestamp is not None else time.monotonic(),
    ))
    return QueuedResponse()


@app.post("/telemetry/batch", status_code=201, response_model=QueuedResponse, tags=["ingest"])
async def ingest_telemetry_batch(samples: list[TelemetryRequest]):
    """Queue several band-power samples in order."""
    session = get_session()
    now = time.monotonic()
    objs = [
        TelemetrySample(
            band=r.band,
            power=r.power,
            timestamp=r.timestamp if r.timestamp is not None else now,
        )
        for r in samples
    ]
    await session.pipeline.publish_batch(objs)
    return QueuedResponse(count=len(objs))


@app.post("/orientation", status_code=201, response_model=QueuedResponse, tags=["ingest"])
async def ingest_orientation(req: OrientationRequest):
    """Queue one head-orientation sample."""
    session = get_session()
    await session.publish(OrientationSample(
        yaw=req.yaw,
        pitch=req.pitch,
        timestamp=req.timestamp if req.timestamp is not None else time.monotonic(),
    ))
    return QueuedResponse()


# ── Rewards ───────────────────────────────────────────────────

@app.post("/session/reward", response_model=RewardResponse, tags=["session"])
async def manual_reward():
    """Fire a reward now, bypassing the fused condition but not the cooldown."""
    session = get_session()
    event = session.trigger_manual_reward()
    if event is None:
        return RewardResponse(
            triggered=False,
            cooldown_remaining=session.cooldown_remaining(),
        )
    return RewardResponse(triggered=True, sequence_number=event.sequence_number)


# ── WebSocket (real-time effect feed) ────────────────────────

@app.websocket("/ws/stream")
async def ws_stream(
    ws: WebSocket,
    channel: str = Query("all"),
):
    """Real-time WebSocket feed with channel subscription.

    Connect to ``/ws/stream?channel=rewards`` to receive only reward
    events, ``channel=records`` for session rows, ``channel=system`` for
    lifecycle events, or ``channel=all`` (default) for everything.
    """
    if channel != "all" and channel not in CHANNELS:
        await ws.close(code=1008)
        return
    await ws_manager.connect(ws, channel)
    try:
        while True:
            # Keep alive; clients are read-only consumers.
            await ws.receive_text()
    except WebSocketDisconnect:
        await ws_manager.disconnect(ws)
