"""Session recorder: append-only CSV log of every recorded tick.

File layout::

    # session_started: 2026-10-19T10:04:00
    # record_hz: 10.0
    timestamp_ms,smoothed_low,smoothed_mid,...,signal_status,event
    0,0.52,0.31,0.48,,,0.0,0.0,0,0,waiting,session_start
    ...
    # SESSION SUMMARY
    # total_rows: 1200

Comment lines (``#``) carry metadata and the closing summary and are ignored
by :func:`read_session`.  Undefined values are empty cells.  Floats are
written with ``repr`` precision so a written file reads back to the same
values and re-writes to the same bytes.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Iterable, Iterator

import structlog

from neurogate.models import SessionRecord, SignalStatus

logger = structlog.get_logger(__name__)

COLUMNS = [
    "timestamp_ms",
    "smoothed_low",
    "smoothed_mid",
    "smoothed_high",
    "engagement_score",
    "decision_threshold",
    "yaw",
    "pitch",
    "in_zone",
    "reward_triggered",
    "signal_status",
    "event",
]

_OPTIONAL_FLOATS = ("engagement_score", "decision_threshold")


def session_filename(started: datetime) -> str:
    return f"session_{started.strftime('%Y-%m-%d_%H-%M-%S')}.csv"


# ── Row codec ─────────────────────────────────────────────────


def _fmt_float(value: float | None) -> str:
    return "" if value is None else repr(float(value))


def format_row(record: SessionRecord) -> list[str]:
    """Render *record* as CSV cells in :data:`COLUMNS` order."""
    return [
        str(record.timestamp_ms),
        _fmt_float(record.smoothed_low),
        _fmt_float(record.smoothed_mid),
        _fmt_float(record.smoothed_high),
        _fmt_float(record.engagement_score),
        _fmt_float(record.decision_threshold),
        _fmt_float(record.yaw),
        _fmt_float(record.pitch),
        "1" if record.in_zone else "0",
        "1" if record.reward_triggered else "0",
        record.signal_status.value,
        record.event,
    ]


def parse_row(row: dict[str, str]) -> SessionRecord:
    """Inverse of :func:`format_row` for a :class:`csv.DictReader` row."""
    values: dict[str, Any] = {
        "timestamp_ms": int(row["timestamp_ms"]),
        "smoothed_low": float(row["smoothed_low"]),
        "smoothed_mid": float(row["smoothed_mid"]),
        "smoothed_high": float(row["smoothed_high"]),
        "yaw": float(row["yaw"]),
        "pitch": float(row["pitch"]),
        "in_zone": row["in_zone"] == "1",
        "reward_triggered": row["reward_triggered"] == "1",
        "signal_status": SignalStatus(row.get("signal_status") or SignalStatus.WAITING.value),
        "event": row.get("event") or "",
    }
    for name in _OPTIONAL_FLOATS:
        cell = row[name]
        values[name] = float(cell) if cell != "" else None
    return SessionRecord(**values)


def _data_lines(f: IO[str]) -> Iterator[str]:
    for line in f:
        if not line.startswith("#"):
            yield line


def read_session(path: str | Path) -> list[SessionRecord]:
    """Load every data row of a recorded session."""
    with Path(path).open("r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(_data_lines(f))
        return [parse_row(row) for row in reader]


def read_metadata(path: str | Path) -> dict[str, str]:
    """Return the ``# key: value`` comment lines of a session file (header and summary)."""
    meta: dict[str, str] = {}
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            if not line.startswith("#"):
                continue
            key, sep, value = line[1:].strip().partition(":")
            if sep:
                meta[key.strip()] = value.strip()
    return meta


def write_session(path: str | Path, records: Iterable[SessionRecord]) -> Path:
    """Write *records* to a bare session file (header and rows, no comments)."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(COLUMNS)
        for record in records:
            writer.writerow(format_row(record))
    return output


# ── Recorder ──────────────────────────────────────────────────


class SessionRecorder:
    """Buffered, append-only writer for one session file.

    Rows are held in memory and written every ``flush_every`` rows and on
    :meth:`close`.

    Usage::

        recorder = SessionRecorder(path)
        recorder.open({"record_hz": 10})
        recorder.append(record)
        ...
        recorder.close({"total_rewards": 12})
    """

    def __init__(self, path: str | Path, *, flush_every: int = 100) -> None:
        if flush_every < 1:
            raise ValueError(f"flush_every must be >= 1, got {flush_every}")
        self._path = Path(path)
        self._flush_every = flush_every
        self._file: IO[str] | None = None
        self._writer: Any = None
        self._pending: list[list[str]] = []
        self._rows_written = 0
        self._rows_appended = 0
        self._closed = False

    # ── Lifecycle ─────────────────────────────────────────────

    def open(self, metadata: dict[str, Any] | None = None) -> None:
        if self._file is not None:
            raise RuntimeError(f"recorder already open: {self._path}")
        if self._closed:
            raise RuntimeError(f"recorder already closed, refusing to overwrite: {self._path}")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file, lineterminator="\n")
        for key, value in (metadata or {}).items():
            self._file.write(f"# {key}: {value}\n")
        self._writer.writerow(COLUMNS)
        self._file.flush()
        logger.info("recorder.opened", path=str(self._path))

    def close(self, summary: dict[str, Any] | None = None) -> None:
        """Flush pending rows, append the summary block and close the file."""
        if self._file is None:
            return
        try:
            self.flush()
            if summary:
                self._file.write("# SESSION SUMMARY\n")
                for key, value in summary.items():
                    self._file.write(f"# {key}: {value}\n")
            self._file.flush()
        finally:
            self._file.close()
            self._file = None
            self._writer = None
            self._closed = True
        logger.info("recorder.closed", path=str(self._path), rows=self._rows_written)

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def rows_written(self) -> int:
        """Rows already handed to the file (excludes the pending buffer)."""
        return self._rows_written

    @property
    def rows_appended(self) -> int:
        return self._rows_appended

    @property
    def pending(self) -> int:
        return len(self._pending)

    # ── Writing ───────────────────────────────────────────────

    def append(self, record: SessionRecord) -> None:
        if self._file is None:
            raise RuntimeError("recorder is not open")
        self._pending.append(format_row(record))
        self._rows_appended += 1
        if len(self._pending) >= self._flush_every:
            self.flush()

    def flush(self) -> None:
        if self._file is None or not self._pending:
            return
        self._writer.writerows(self._pending)
        self._file.flush()
        self._rows_written += len(self._pending)
        logger.debug("recorder.flushed", rows=len(self._pending), total=self._rows_written)
        self._pending.clear()


def records_to_csv(records: Iterable[SessionRecord]) -> str:
    """Render records (with header) to a CSV string."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(COLUMNS)
    for record in records:
        writer.writerow(format_row(record))
    return buf.getvalue()
