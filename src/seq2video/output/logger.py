"""
Simple logging system for seq2video.

Console lines look like ``[12:00:01] [INFO] message``; errors go to stderr.
"""

from __future__ import annotations

import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

SESSION_RULE = "=" * 60


def write_session_header(path: Path) -> None:
    """Append a session banner to a log file, creating its directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'a', encoding='utf-8') as f:
        f.write(f"\n{SESSION_RULE}\nSession started: {datetime.now().isoformat()}\n{SESSION_RULE}\n")


def append_line(path: Path, line: str) -> None:
    """Append one line to a log file; write failures are ignored."""
    try:
        with open(path, 'a', encoding='utf-8') as f:
            f.write(line + '\n')
    except OSError:
        pass


class SimpleLogger:
    """Timestamped console logger with an optional log file.

    Safe to call from the supervisor's background threads.

    Args:
        log_file: Optional path that receives every message, appended
        stream: Console stream for regular messages (defaults to stdout)
        error_stream: Console stream for errors (defaults to stderr)
        console: When False, messages only go to the log file
    """

    def __init__(
        self,
        log_file: Optional[Path] = None,
        stream: Optional[TextIO] = None,
        error_stream: Optional[TextIO] = None,
        console: bool = True,
    ):
        self.log_file = log_file
        self.stream = stream
        self.error_stream = error_stream
        self.console = console
        self._lock = threading.Lock()

        if self.log_file:
            write_session_header(self.log_file)

    def log(self, message: str, level: str = "INFO", error: bool = False) -> None:
        """Write one line tagged with ``level`` to the console and log file."""
        line = f"[{datetime.now():%H:%M:%S}] [{level}] {message}"
        with self._lock:
            if self.console:
                # resolved per call so pytest's capsys sees the output
                target = (self.error_stream or sys.stderr) if error else (self.stream or sys.stdout)
                print(line, file=target, flush=True)
            if self.log_file:
                append_line(self.log_file, line)

    def info(self, message: str) -> None:
        self.log(message)

    def warning(self, message: str) -> None:
        self.log(message, "WARNING")

    def success(self, message: str) -> None:
        self.log(message, "SUCCESS")

    def error(self, message: str) -> None:
        self.log(message, "ERROR", error=True)
