"""
Core data types for seq2video.

This module contains the value objects shared by the filename parser,
the sequence scanner and the process supervisor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class ParsedFilename:
    """A filename split into a printf-style pattern and its frame number."""

    filename: str
    pattern: str
    number: Optional[int]
    width: int = 0

    @property
    def valid(self) -> bool:
        return self.number is not None

    def filename_for(self, number: int) -> str:
        """Substitute a frame number into the pattern."""
        if not self.valid:
            raise ValueError(f"{self.filename!r} has no numeric run")
        return self.pattern % number


class ScanStatus(Enum):
    """Outcome of inspecting an image directory."""

    FOUND = "found"
    NONE_FOUND = "none_found"
    NOT_FOUND = "not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class SequenceSummary:
    """Result of scanning a directory for a numbered image sequence."""

    directory: Path
    status: ScanStatus
    diagnostic: str
    dominant_pattern: Optional[str] = None
    first_number: Optional[int] = None
    usable_count: int = 0
    group_size: int = 0
    numbers: Tuple[int, ...] = ()
    candidates: Tuple[Tuple[str, int], ...] = ()

    @property
    def found(self) -> bool:
        return self.status is ScanStatus.FOUND

    @property
    def last_number(self) -> Optional[int]:
        if self.first_number is None or self.usable_count == 0:
            return None
        return self.first_number + self.usable_count - 1


class RunState(Enum):
    """Lifecycle of a supervised process run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    DRAINING = "draining"
    FINISHED = "finished"


class StreamName(Enum):
    """Output stream a line was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass
class RunResult:
    """Completion report for one supervised process run."""

    argv: Tuple[str, ...]
    exit_code: Optional[int] = None
    error: Optional[str] = None
    cancelled: bool = False
    stdout_lines: int = 0
    stderr_lines: int = 0
    duration: float = 0.0
    stream_errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled and self.exit_code == 0

    @property
    def line_count(self) -> int:
        return self.stdout_lines + self.stderr_lines
