from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterable

import pytest


@pytest.fixture
def touch_files(tmp_path: Path) -> Callable[[Iterable[str]], Path]:
    """Create empty files with the given names in tmp_path and return the directory."""

    def _touch(names: Iterable[str]) -> Path:
        for name in names:
            (tmp_path / name).write_bytes(b"")
        return tmp_path

    return _touch


@pytest.fixture
def python_cmd() -> Callable[[str], list[str]]:
    """Build an argv that runs a snippet in an unbuffered child interpreter."""

    def _cmd(script: str) -> list[str]:
        return [sys.executable, "-u", "-c", script]

    return _cmd
