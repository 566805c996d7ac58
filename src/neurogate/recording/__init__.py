"""Recording sub-package: session CSV files and their analysis."""

from neurogate.recording.recorder import SessionRecorder, read_session, write_session

__all__ = ["SessionRecorder", "read_session", "write_session"]
