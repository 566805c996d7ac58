"""WebSocket fan-out for the rendering layer and live dashboards.

The VR scene or audio engine connects to ``/ws/stream?channel=rewards`` and
reacts to ``reward`` messages; a dashboard subscribes to ``records`` for the
recorder rows.  Every message is a JSON object with a ``type`` key.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter, deque
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import WebSocket

from neurogate.effects.handlers import RewardHandler
from neurogate.models import RewardEvent, SessionRecord

logger = structlog.get_logger(__name__)

CHANNELS = ("rewards", "records", "system")


class ConnectionManager:
    """Track subscribers per channel and broadcast session messages.

    A client subscribes to exactly one of :data:`CHANNELS` or to ``all``;
    ``all`` subscribers receive every broadcast.  A socket that fails on send
    is dropped.
    """

    def __init__(self, reward_history: int = 50) -> None:
        self._subscribers: dict[str, list[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._sent: Counter[str] = Counter()
        self._recent_rewards: deque[dict[str, Any]] = deque(maxlen=reward_history)

    # ── Subscriptions ─────────────────────────────────────────

    async def connect(self, ws: WebSocket, channel: str = "all") -> None:
        await ws.accept()
        async with self._lock:
            self._subscribers.setdefault(channel, []).append(ws)
        logger.info("ws.connected", channel=channel, total=self.active_count)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            for subs in self._subscribers.values():
                if ws in subs:
                    subs.remove(ws)
        logger.info("ws.disconnected", total=self.active_count)

    @property
    def active_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    def channel_breakdown(self) -> dict[str, int]:
        return {ch: len(subs) for ch, subs in self._subscribers.items() if subs}

    def messages_sent(self) -> dict[str, int]:
        return dict(self._sent)

    # ── Broadcasting ──────────────────────────────────────────

    async def broadcast(self, message: dict[str, Any], channel: str) -> None:
        """Send *message* to the subscribers of *channel* and of ``all``."""
        targets = self._subscribers.get(channel, []) + self._subscribers.get("all", [])
        if not targets:
            return

        payload = json.dumps(message)
        stale: list[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_text(payload)
            except Exception as exc:
                logger.debug("ws.send_failed", channel=channel, error=str(exc))
                stale.append(ws)
        self._sent[channel] += 1

        for ws in stale:
            await self.disconnect(ws)

    async def broadcast_reward(self, event: RewardEvent) -> None:
        data = event.model_dump(mode="json")
        self._recent_rewards.appendleft(data)
        await self.broadcast({"type": "reward", "data": data}, "rewards")

    async def broadcast_record(self, record: SessionRecord) -> None:
        await self.broadcast({"type": "record", "data": record.model_dump(mode="json")}, "records")

    async def broadcast_system(self, event: str, details: dict[str, Any] | None = None) -> None:
        await self.broadcast(
            {
                "type": "system",
                "event": event,
                "timestamp": datetime.now(UTC).isoformat(),
                "data": details or {},
            },
            "system",
        )

    def recent_rewards(self, limit: int = 20) -> list[dict[str, Any]]:
        return list(self._recent_rewards)[:limit]


class WebSocketRewardHandler(RewardHandler):
    """Effect channel that forwards reward events to WebSocket clients."""

    name = "websocket"

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    async def send(self, event: RewardEvent) -> bool:
        await self._manager.broadcast_reward(event)
        return True


ws_manager = ConnectionManager()
