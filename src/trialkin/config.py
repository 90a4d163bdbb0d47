"""Settings for the trialkin pipeline.

Load and validate TOML configuration with Pydantic models and environment
overrides. Only the video latency stage takes parameters; the force plate
stage works from fixed constants.

Example config.toml:

    [video_latency]
    display_latency_s = 0.010
    num_buffered_frames = 1

    [force_plate]
    enabled = true

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python >= 3.11
except ImportError:
    import tomli as tomllib  # Python < 3.11

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

__all__ = [
    "Settings",
    "VideoLatencyConfig",
    "ForcePlateConfig",
    "LoggingConfig",
    "load_settings",
    "ENV_PREFIX",
]

ENV_PREFIX = "TRIALKIN_"


# ============================================================================
# Configuration Models
# ============================================================================


class VideoLatencyConfig(BaseModel):
    """Video latency stage configuration."""

    model_config = {"extra": "forbid"}

    enabled: bool = Field(default=True)
    display_latency_s: Optional[float] = Field(default=None, description="Display latency excluding buffering (s)")
    num_buffered_frames: float = Field(default=1, ge=0, description="Frames buffered by the display, 0 for CRT-like")


class ForcePlateConfig(BaseModel):
    """Force plate stage configuration."""

    model_config = {"extra": "forbid"}

    enabled: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"extra": "forbid"}

    level: str = Field(default="INFO")
    structured: bool = Field(default=False)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got '{v}'")
        return v_upper


class Settings(BaseModel):
    """Complete pipeline settings."""

    video_latency: VideoLatencyConfig = Field(default_factory=VideoLatencyConfig)
    force_plate: ForcePlateConfig = Field(default_factory=ForcePlateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}  # Reject unknown keys


# ============================================================================
# Loading Functions
# ============================================================================


def load_settings(
    toml_path: Path | str | None = None,
    env_prefix: str = ENV_PREFIX,
) -> Settings:
    """Load and validate settings from TOML and environment.

    Args:
        toml_path: Path to TOML configuration file (optional)
        env_prefix: Environment variable prefix (default: TRIALKIN_)

    Returns:
        Validated Settings object

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_dict: dict[str, Any] = {}

    if toml_path is not None:
        toml_path = Path(toml_path)
        if not toml_path.exists():
            raise ConfigurationError(f"Configuration file not found: {toml_path}")

        try:
            with open(toml_path, "rb") as f:
                config_dict = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {toml_path}: {e}") from e

    config_dict = _apply_env_overrides(config_dict, env_prefix)

    try:
        return Settings(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config: dict[str, Any], prefix: str) -> dict[str, Any]:
    """Apply environment variable overrides to config dict.

    Supports nested keys with double underscore notation:
    TRIALKIN_VIDEO_LATENCY__DISPLAY_LATENCY_S=0.008
    TRIALKIN_LOGGING__LEVEL=DEBUG
    """
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :].lower()
        parts = config_key.split("__")

        current = config
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = _parse_env_value(value)

    return config


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to bool, int, float, or str."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    try:
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    except ValueError:
        pass

    return value
