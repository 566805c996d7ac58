"""Tests for structlog configuration and session-bound log context."""

import io
import json
import logging

import pytest
import structlog

from neurogate.logger import bind_session, setup_logging, unbind_session


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_lines_carry_session(restore_logging):
    out = io.StringIO()
    setup_logging("INFO", stream=out)
    log = structlog.get_logger("neurogate.test_logger")

    bind_session("session_2026-10-19_10-00-00")
    log.info("reward.triggered", sequence=1)
    log.debug("threshold.held")
    unbind_session()
    log.info("session.stopped")

    lines = [json.loads(line) for line in out.getvalue().splitlines()]
    assert [line["event"] for line in lines] == ["reward.triggered", "session.stopped"]
    assert lines[0]["session"] == "session_2026-10-19_10-00-00"
    assert lines[0]["level"] == "info"
    assert lines[0]["sequence"] == 1
    assert "timestamp" in lines[0]
    assert "session" not in lines[1]


def test_console_renderer_on_request(restore_logging):
    out = io.StringIO()
    setup_logging("DEBUG", json=False, stream=out)
    structlog.get_logger("neurogate.test_logger.console").debug("phase.entered", phase="training")
    text = out.getvalue()
    assert "phase.entered" in text
    assert "training" in text
