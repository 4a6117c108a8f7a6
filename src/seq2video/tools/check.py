"""
External tool validation utilities for seq2video.

This module checks that the encoder the video is built with is installed.
"""

from __future__ import annotations

from shutil import which
from typing import List, Optional, Tuple

from ..utils.subprocess import run_subprocess


def check_tools(ffmpeg: str = "ffmpeg", probe: bool = False) -> Tuple[bool, List[str]]:
    """Check availability of required external tools.

    Args:
        ffmpeg (str): Encoder executable name or path.
        probe (bool): Also run ``ffmpeg -version`` to confirm the binary starts.

    Returns:
        Tuple[bool, List[str]]: (all_ok, problems). If `all_ok` is False, problems lists the issues.
    """
    problems: List[str] = []
    location: Optional[str] = which(ffmpeg)
    if location is None:
        problems.append(f"{ffmpeg} not found in PATH")
    elif probe:
        code, output = run_subprocess([location, "-version"], timeout=30)
        if code != 0:
            first = output.strip().splitlines()[0] if output.strip() else f"exit code {code}"
            problems.append(f"{ffmpeg} -version failed: {first}")
    return (len(problems) == 0, problems)
