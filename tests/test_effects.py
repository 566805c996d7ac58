"""Tests for the reward effect layer."""

import json

import httpx
import pytest

from neurogate.config import Settings
from neurogate.effects import (
    LogHandler,
    RewardDispatcher,
    RewardHandler,
    WebhookHandler,
    create_dispatcher,
)
from neurogate.models import RewardEvent


class FailingHandler(RewardHandler):
    name = "failing"

    async def send(self, event: RewardEvent) -> bool:
        raise RuntimeError("renderer offline")


class CollectingHandler(RewardHandler):
    name = "collect"

    def __init__(self) -> None:
        self.events: list[RewardEvent] = []

    async def send(self, event: RewardEvent) -> bool:
        self.events.append(event)
        return True


@pytest.fixture
def event() -> RewardEvent:
    return RewardEvent(sequence_number=3, timestamp=12.5)


class TestRewardDispatcher:
    def test_defaults_to_log_handler(self):
        assert RewardDispatcher().handler_names == ["log"]

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, event):
        collector = CollectingHandler()
        dispatcher = RewardDispatcher(handlers=[FailingHandler(), collector])
        result = await dispatcher.dispatch(event)
        assert result.sent == ["collect"]
        assert result.failed == ["failing"]
        assert not result.all_ok
        assert collector.events == [event]

    @pytest.mark.asyncio
    async def test_add_and_remove(self, event):
        dispatcher = RewardDispatcher(handlers=[LogHandler()])
        dispatcher.add_handler(CollectingHandler())
        assert dispatcher.handler_names == ["log", "collect"]
        assert dispatcher.remove_handler("collect") is True
        assert dispatcher.remove_handler("collect") is False
        result = await dispatcher.dispatch(event)
        assert result.all_ok
        assert result.sequence_number == 3

    def test_factory_adds_webhook(self, tmp_path):
        settings = Settings(_env_file=None, record_dir=tmp_path, webhook_url="http://renderer.local/reward")
        assert create_dispatcher(settings).handler_names == ["log", "webhook"]
        plain = Settings(_env_file=None, record_dir=tmp_path)
        assert create_dispatcher(plain).handler_names == ["log"]


class TestWebhookHandler:
    @pytest.mark.asyncio
    async def test_posts_event_json(self, event):
        seen: list[httpx.Request] = []

        def respond(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        handler = WebhookHandler("http://renderer.local/reward", transport=httpx.MockTransport(respond))
        assert await handler.send(event) is True
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"sequence_number": 3, "timestamp": 12.5}

    @pytest.mark.asyncio
    async def test_server_error_is_failure(self, event):
        handler = WebhookHandler(
            "http://renderer.local/reward",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert await handler.send(event) is False
