"""Application entrypoint: serve the session API or run one-off commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import uvicorn

from neurogate.config import Settings, get_settings
from neurogate.logger import setup_logging


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="neurogate",
        description="Closed-loop band-power and head-orientation gated reward controller.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the session API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── run ───────────────────────────────────────────────────
    run_parser = sub.add_parser("run", help="Run a headless session on simulated inputs.")
    run_parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop after this many seconds (default: run every phase).",
    )
    run_parser.add_argument("--output", type=Path, default=None, help="Session CSV path.")
    run_parser.add_argument("--calibration", type=float, default=None, help="Calibration window in seconds.")
    run_parser.add_argument("--training", type=float, default=None, help="Training phase in seconds.")
    run_parser.add_argument("--cool-down", type=float, default=None, help="Cool-down phase in seconds.")
    run_parser.add_argument("--seed", type=int, default=None)

    # ── summarize ─────────────────────────────────────────────
    sum_parser = sub.add_parser("summarize", help="Summarise a recorded session CSV.")
    sum_parser.add_argument("path", type=Path)

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "neurogate.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "run":
        phases = {
            "calibration_duration_seconds": ("--calibration", args.calibration),
            "training_duration_seconds": ("--training", args.training),
            "cooldown_duration_seconds": ("--cool-down", args.cool_down),
        }
        updates = {}
        for field, (flag, value) in phases.items():
            if value is None:
                continue
            if value <= 0:
                parser.error(f"{flag} must be > 0")
            updates[field] = value
        if updates:
            settings = settings.model_copy(update=updates)
        summary = asyncio.run(_run_simulated(settings, args.duration, args.output, args.seed))
        print(json.dumps(summary, indent=2))
    elif args.command == "summarize":
        from neurogate.recording.analysis import load_session, summarize_session

        if not args.path.exists():
            parser.error(f"no such file: {args.path}")
        print(json.dumps(summarize_session(load_session(args.path)), indent=2))
    else:
        parser.print_help()
        sys.exit(1)


async def _run_simulated(settings: Settings, duration: float | None, output: Path | None, seed: int | None) -> dict:
    from neurogate.session import NeurofeedbackSession
    from neurogate.sources.simulator import SimulatedBandSource, SimulatedHeadSource

    session = NeurofeedbackSession(settings, record_path=output)
    summary = await session.run(
        duration,
        sources=[SimulatedBandSource(seed=seed), SimulatedHeadSource(seed=seed)],
    )
    if session.recorder is not None:
        summary["session_file"] = str(session.recorder.path)
    return summary


if __name__ == "__main__":
    main()
