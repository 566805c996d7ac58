"""Tests for the FastAPI server endpoints and the WebSocket manager."""

import json
import math

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError

from neurogate.api.schemas import TelemetryRequest
from neurogate.api.server import app
from neurogate.api.websocket import ConnectionManager
from neurogate.config import get_settings
from neurogate.models import RewardEvent


@pytest.fixture
async def client(tmp_path, monkeypatch):
    """Async test client with lifespan (startup / shutdown) fully executed."""
    monkeypatch.setenv("NEUROGATE_RECORD_DIR", str(tmp_path))
    monkeypatch.setenv("NEUROGATE_SIMULATE", "false")
    get_settings.cache_clear()
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["session_running"] is True


@pytest.mark.asyncio
async def test_status_before_calibration(client: AsyncClient):
    resp = await client.get("/session/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["controller_state"] == "uncalibrated"
    assert body["calibration"]["complete"] is False
    assert body["decision_threshold"] is None
    assert body["signal"]["telemetry"] == "waiting"
    assert body["phase"]["name"] == "baseline"
    assert 0.0 <= body["phase"]["progress"] < 1.0


@pytest.mark.asyncio
async def test_ingest_telemetry(client: AsyncClient):
    resp = await client.post("/telemetry", json={"band": "high", "power": 0.8})
    assert resp.status_code == 201
    assert resp.json() == {"count": 1, "queued": True}


@pytest.mark.asyncio
async def test_ingest_batch(client: AsyncClient):
    batch = [
        {"band": "low", "power": 0.5},
        {"band": "mid", "power": 0.2},
        {"band": "high", "power": 0.6},
    ]
    resp = await client.post("/telemetry/batch", json=batch)
    assert resp.status_code == 201
    assert resp.json()["count"] == 3


@pytest.mark.asyncio
async def test_ingest_orientation(client: AsyncClient):
    resp = await client.post("/orientation", json={"yaw": 30.0, "pitch": -5.0})
    assert resp.status_code == 201


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"band": "gamma", "power": 1.0},
    {"band": "low", "power": -1.0},
    {"band": "low"},
])
async def test_invalid_telemetry_rejected(client: AsyncClient, payload):
    resp = await client.post("/telemetry", json=payload)
    assert resp.status_code == 422


@pytest.mark.parametrize("power", [math.inf, -math.inf, math.nan])
def test_non_finite_power_request_rejected(power):
    with pytest.raises(ValidationError):
        TelemetryRequest(band="high", power=power)


@pytest.mark.asyncio
async def test_manual_reward_and_cooldown(client: AsyncClient):
    first = await client.post("/session/reward")
    assert first.status_code == 200
    assert first.json()["triggered"] is True
    assert first.json()["sequence_number"] == 1

    second = await client.post("/session/reward")
    assert second.json()["triggered"] is False
    assert second.json()["cooldown_remaining"] > 0

    status = (await client.get("/session/status")).json()
    assert status["reward"]["total"] == 1


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[str] = []
        self._fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        if self._fail:
            raise RuntimeError("closed")
        self.sent.append(text)


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_channel_routing(self):
        manager = ConnectionManager()
        rewards, records, everything = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.connect(rewards, "rewards")
        await manager.connect(records, "records")
        await manager.connect(everything)
        assert manager.active_count == 3

        await manager.broadcast_reward(RewardEvent(sequence_number=1, timestamp=2.0))

        assert rewards.accepted
        assert len(rewards.sent) == 1
        assert records.sent == []
        assert len(everything.sent) == 1
        message = json.loads(rewards.sent[0])
        assert message == {"type": "reward", "data": {"sequence_number": 1, "timestamp": 2.0}}
        assert manager.recent_rewards()[0]["sequence_number"] == 1

    @pytest.mark.asyncio
    async def test_dead_socket_removed(self):
        manager = ConnectionManager()
        await manager.connect(FakeWebSocket(fail=True), "system")
        await manager.broadcast_system("session_started")
        assert manager.active_count == 0
