"""
FFmpeg command building module for seq2video.

This module turns encode settings into the argument list that builds a video
from a numbered image sequence, separating command construction from running it.
"""

from __future__ import annotations

import re
from typing import Annotated, Dict, List, Optional, Tuple

from pydantic import Field, field_validator

from ..config import FrozenModel, app_config
from ..core.types import SequenceSummary

RESOLUTION_PATTERN = re.compile(r"([0-9]+)x([0-9]+)")

RESOLUTION_PRESETS: Dict[str, Tuple[int, int]] = {
    "Full HD": (1920, 1080),
    "HD": (1366, 768),
    "Quad HD": (2560, 1440),
    "4K Ultra HD": (3840, 2160),
    "WXGA": (1280, 720),
    "XGA": (1024, 768),
    "SVGA": (800, 600),
    "VGA": (640, 480),
}

_defaults = app_config.encode


def parse_resolution(text: str) -> Tuple[int, int]:
    """Parse a preset name ("Full HD", "4k ultra hd") or "WIDTHxHEIGHT" text.

    Raises:
        ValueError: For unknown presets or zero-sized resolutions.
    """
    cleaned = text.strip()
    for name, size in RESOLUTION_PRESETS.items():
        if cleaned.lower() == name.lower():
            return size
    match = RESOLUTION_PATTERN.search(cleaned)
    if not match:
        choices = ", ".join(RESOLUTION_PRESETS)
        raise ValueError(f"Unknown resolution {text!r}; use WIDTHxHEIGHT or one of: {choices}")
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise ValueError(f"Resolution must be positive: {text!r}")
    return width, height


class EncodeSettings(FrozenModel):
    """Everything needed to turn an image sequence into a video."""

    pattern: str
    start_number: Annotated[int, Field(ge=0)] = 0
    frame_count: Optional[Annotated[int, Field(ge=1)]] = None
    frame_rate: Annotated[int, Field(ge=1)] = _defaults.frame_rate
    interpolate: bool = _defaults.interpolate
    interpolated_frame_rate: Annotated[int, Field(ge=1)] = _defaults.interpolated_frame_rate
    width: Annotated[int, Field(gt=0)] = _defaults.width
    height: Annotated[int, Field(gt=0)] = _defaults.height
    output: str = _defaults.output
    overwrite: bool = True
    codec: str = _defaults.codec
    quality: Annotated[int, Field(ge=1, le=31)] = _defaults.quality

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, v):
        """Ensure the pattern carries exactly one integer placeholder."""
        placeholders = re.findall(r"%(?:0\d+)?d", v.replace("%%", ""))
        if len(placeholders) != 1:
            raise ValueError(f"Image pattern needs exactly one %0Nd placeholder, got: {v!r}")
        return v

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def from_summary(cls, summary: SequenceSummary, **overrides) -> "EncodeSettings":
        """Create settings from a scan result; non-None keyword arguments win over inferred values.

        The inferred frame count only describes the inferred pattern and start,
        so it is dropped when either of those is overridden.
        """
        given = {k: v for k, v in overrides.items() if v is not None}
        values: Dict[str, object] = {}
        if summary.found:
            values["pattern"] = summary.dominant_pattern
            values["start_number"] = summary.first_number
            moved = any(
                k in given and given[k] != values[k] for k in ("pattern", "start_number")
            )
            if not moved:
                values["frame_count"] = summary.usable_count
        values.update(given)
        return cls(**values)


class FFmpegCommandBuilder:
    """Builder class for constructing FFmpeg commands."""

    @staticmethod
    def interpolation_filter(fps: int) -> str:
        """Motion-blending filter that resamples the input to ``fps``."""
        return f"framerate=fps={fps}:interp_start=0:interp_end=255:scene=100"

    @staticmethod
    def build_encode_cmd(settings: EncodeSettings, ffmpeg: str = "ffmpeg") -> List[str]:
        """Create the ffmpeg command that encodes the image sequence into a video.

        The command is meant to run inside the image directory, so the pattern
        and output are used as given.
        """
        cmd = [ffmpeg]
        if settings.overwrite:
            cmd.append("-y")
        cmd += ["-r", str(settings.frame_rate), "-start_number", str(settings.start_number)]
        if settings.frame_count is not None:
            # input-side limit: stop reading after the usable run
            cmd += ["-t", FFmpegCommandBuilder.input_duration(settings.frame_count, settings.frame_rate)]
        cmd += ["-i", settings.pattern]
        cmd += ["-s", settings.resolution]
        if settings.interpolate:
            cmd += ["-vf", FFmpegCommandBuilder.interpolation_filter(settings.interpolated_frame_rate)]
        cmd += [
            "-vcodec", settings.codec,
            "-q:v", str(settings.quality),
            settings.output,
        ]
        return cmd

    @staticmethod
    def input_duration(frame_count: int, frame_rate: int) -> str:
        """Seconds covered by ``frame_count`` input frames, rounded down to microseconds."""
        micros = frame_count * 1_000_000 // frame_rate
        seconds, rest = divmod(micros, 1_000_000)
        if rest == 0:
            return str(seconds)
        return f"{seconds}.{rest:06d}".rstrip("0")
