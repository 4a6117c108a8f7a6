"""
Consolidated configuration system for seq2video.

This module provides a centralized Pydantic-based configuration system that collects
the scanner, process and encoder settings into a single structure with environment
variable support and validation.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE_EXTENSIONS: tuple[str, ...] = (".jpg", ".JPG", ".jpeg", ".png", ".PNG")

TieBreak = Literal["listing", "lexicographic"]


# =============================================================================
# SCAN SETTINGS
# =============================================================================

class ScanSettings(BaseModel):
    """Directory scanning configuration."""

    image_extensions: Annotated[tuple[str, ...], Field(
        description="Filename suffixes treated as images (matched case-sensitively)"
    )] = DEFAULT_IMAGE_EXTENSIONS

    tie_break: Annotated[TieBreak, Field(
        description="How to pick between equally large patterns: directory listing order or lexicographic"
    )] = "listing"

    @field_validator('image_extensions')
    @classmethod
    def validate_extensions(cls, v):
        """Ensure every extension starts with a dot."""
        if not v:
            raise ValueError("At least one image extension is required")
        for ext in v:
            if not ext.startswith('.') or len(ext) < 2:
                raise ValueError(f"Extension must start with dot, got: {ext!r}")
        return tuple(v)


# =============================================================================
# PROCESS SETTINGS
# =============================================================================

class ProcessSettings(BaseModel):
    """Child process supervision settings."""

    terminate_grace_sec: Annotated[float, Field(
        gt=0.0,
        description="Seconds to wait after terminate() before killing a cancelled child"
    )] = 5.0

    post_exit_drain_sec: Annotated[float, Field(
        gt=0.0,
        description="Seconds to keep reading output after the child exited, for pipes held open by its own children"
    )] = 2.0

    encoding: Annotated[str, Field(
        description="Text encoding used to decode child output"
    )] = "utf-8"


# =============================================================================
# ENCODE SETTINGS
# =============================================================================

class EncodeDefaults(BaseModel):
    """Defaults for the encoder command."""

    frame_rate: Annotated[int, Field(ge=1, le=240, description="Input image frame rate (fps)")] = 1
    interpolate: bool = True
    interpolated_frame_rate: Annotated[int, Field(
        ge=1, le=240, description="Output frame rate of the interpolation filter (fps)"
    )] = 30
    width: Annotated[int, Field(gt=0)] = 1920
    height: Annotated[int, Field(gt=0)] = 1080
    output: str = "output.mp4"
    codec: str = "mpeg4"
    quality: Annotated[int, Field(ge=1, le=31)] = 1


# =============================================================================
# VIEWER SETTINGS
# =============================================================================

class ViewerSettings(BaseModel):
    """Command output viewer settings."""

    max_visible_lines: Annotated[int, Field(ge=1)] = 20
    max_history: Annotated[int, Field(ge=1)] = 10000


# =============================================================================
# MAIN APPLICATION CONFIGURATION
# =============================================================================

class AppConfig(BaseSettings):
    """
    Main application configuration with environment variable support.

    All settings can be overridden via environment variables with SEQ2VIDEO_ prefix.
    Example: SEQ2VIDEO_SCAN__TIE_BREAK=lexicographic
    """

    model_config = SettingsConfigDict(
        env_prefix="SEQ2VIDEO_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    scan: ScanSettings = ScanSettings()
    process: ProcessSettings = ProcessSettings()
    encode: EncodeDefaults = EncodeDefaults()
    viewer: ViewerSettings = ViewerSettings()


class FrozenModel(BaseModel):
    """Base for immutable value objects."""

    model_config = ConfigDict(frozen=True)


# =============================================================================
# DEFAULT INSTANCE
# =============================================================================

app_config = AppConfig()

IMAGE_EXTENSIONS = app_config.scan.image_extensions
TIE_BREAK = app_config.scan.tie_break
TERMINATE_GRACE_SEC = app_config.process.terminate_grace_sec
POST_EXIT_DRAIN_SEC = app_config.process.post_exit_drain_sec
OUTPUT_ENCODING = app_config.process.encoding


def create_config_from_env() -> AppConfig:
    """Create a new configuration instance from environment variables."""
    return AppConfig()
