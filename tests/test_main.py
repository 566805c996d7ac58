"""Tests for the command-line entrypoint."""

import json

import pytest
import structlog

from neurogate import main as cli
from neurogate.models import SessionRecord
from neurogate.recording.recorder import write_session


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep stdout for the JSON the commands print."""
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


def test_summarize(tmp_path, capsys):
    path = write_session(tmp_path / "s.csv", [
        SessionRecord(timestamp_ms=0, smoothed_low=1.0, smoothed_mid=0.0, smoothed_high=1.0),
        SessionRecord(
            timestamp_ms=1000,
            smoothed_low=1.0,
            smoothed_mid=0.0,
            smoothed_high=2.0,
            engagement_score=2.0,
            decision_threshold=1.0,
            in_zone=True,
            reward_triggered=True,
        ),
    ])
    cli.main(["summarize", str(path)])
    summary = json.loads(capsys.readouterr().out)
    assert summary["rows"] == 2
    assert summary["rewards"] == 1
    assert summary["duration_seconds"] == 1.0


def test_summarize_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["summarize", str(tmp_path / "missing.csv")])


def test_no_command_exits(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 1


def test_run_simulated_session(tmp_path, capsys):
    output = tmp_path / "run.csv"
    cli.main(["run", "--duration", "0.3", "--calibration", "0.05", "--output", str(output), "--seed", "1"])
    summary = json.loads(capsys.readouterr().out)
    assert summary["records"] >= 1
    assert summary["session_file"] == str(output)
    assert output.exists()


def test_run_every_phase_without_duration(tmp_path, capsys):
    output = tmp_path / "phased.csv"
    cli.main([
        "run", "--calibration", "0.05", "--training", "0.1", "--cool-down", "0.05",
        "--output", str(output), "--seed", "2",
    ])
    summary = json.loads(capsys.readouterr().out)
    assert summary["phase"] == "completed"
    assert summary["session_file"] == str(output)


@pytest.mark.parametrize("flag", ["--calibration", "--training", "--cool-down"])
def test_run_rejects_non_positive_phase(flag):
    with pytest.raises(SystemExit):
        cli.main(["run", flag, "0"])
