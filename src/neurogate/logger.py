"""Structured logging for neurogate sessions using *structlog*.

Every module logs through ``structlog.get_logger(__name__)`` with dotted event
names (``reward.triggered``, ``phase.entered``).  A running session binds its
identity with :func:`bind_session` so each line it produces, including those
from the pipeline and timer tasks it spawns, carries ``session=<id>``.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog


def setup_logging(level: str = "INFO", *, json: bool | None = None, stream: IO[str] | None = None) -> None:
    """Configure the structlog processor chain and route stdlib logging alongside it.

    Output goes to *stream* (stderr by default) so that ``neurogate summarize``
    keeps stdout for JSON.  *json* forces the renderer; by default a terminal
    gets the console renderer and anything else gets JSON lines.
    """
    stream = stream or sys.stderr
    if json is None:
        json = not stream.isatty()
    numeric_level = getattr(logging, level, logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
    # uvicorn and httpx log through the stdlib
    logging.basicConfig(format="%(levelname)s %(name)s %(message)s", stream=stream, level=numeric_level)


def bind_session(session_id: str, **fields: Any) -> None:
    """Attach *session_id* (and any extra *fields*) to every following log line."""
    structlog.contextvars.bind_contextvars(session=session_id, **fields)


def unbind_session(*extra: str) -> None:
    structlog.contextvars.unbind_contextvars("session", *extra)
