"""Trial record models.

This module defines the Pydantic models that both stages consume and produce.

Model Hierarchy:
---------------
- Trial
  ├── VideoSettings
  ├── VideoLatency (optional: absent when the trial has no telemetry)
  ├── Accessories
  │   └── PlateCalibration (keyed by 1-based plate index)
  └── ForcePlate (keyed by 1-based plate index)
      ├── PlateChannels (raw FX, FY, FZ, MX, MY, timestamp)
      └── PlateKinematics (derived COP and COP velocity, optional)

Key Features:
-------------
- **Immutable**: frozen=True, and every array is a read-only float64 copy
- **Strict Schema**: extra="forbid" rejects unknown fields
- **Explicit plates**: per-plate data lives in dicts keyed by plate index

Derived fields are added by building new models (``model_copy(update=...)``),
never by mutating inputs.

Example:
--------
>>> from trialkin.models import Trial, VideoLatency, VideoSettings
>>> trial = Trial(
...     video_settings=VideoSettings(refresh_rate=60.0),
...     video_latency=VideoLatency(send_times=[0.0, 0.016], ack_times=[0.004, 0.021]),
... )
>>> trial.video_latency.n_frames
2
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

__all__ = [
    "VideoSettings",
    "VideoLatency",
    "PlateCalibration",
    "Accessories",
    "PlateChannels",
    "PlateKinematics",
    "ForcePlate",
    "Trial",
]


def _as_signal(value: Any) -> np.ndarray:
    """Coerce a sequence to a read-only 1-D float64 array (always a copy)."""
    arr = np.array(value, dtype=float)
    if arr.ndim == 0:
        raise ValueError("expected a sequence of samples, got a scalar")
    if arr.ndim > 1:
        # Accept row/column vectors as exported by MATLAB-style tools
        if arr.size != max(arr.shape):
            raise ValueError(f"expected a 1-D sequence, got shape {arr.shape}")
        arr = arr.reshape(-1)
    arr.setflags(write=False)
    return arr


class VideoSettings(BaseModel):
    """Display settings recorded with the trial."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    refresh_rate: float = Field(..., gt=0, description="Reported display refresh rate (Hz)")


class VideoLatency(BaseModel):
    """Per-frame video telemetry and its derived display-time bounds.

    Attributes:
        send_times: Time each frame was sent (s), one per frame
        ack_times: Time each frame was acknowledged (s), one per frame
        display_min_times: Earliest possible display time (derived)
        display_max_times: Latest possible display time (derived)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    send_times: np.ndarray
    ack_times: np.ndarray
    display_min_times: Optional[np.ndarray] = None
    display_max_times: Optional[np.ndarray] = None

    @field_validator("send_times", "ack_times", "display_min_times", "display_max_times", mode="before")
    @classmethod
    def coerce_signal(cls, v: Any) -> Any:
        if v is None:
            return v
        return _as_signal(v)

    @model_validator(mode="after")
    def check_lengths(self) -> "VideoLatency":
        n = len(self.send_times)
        if len(self.ack_times) != n:
            raise ValueError(f"send_times ({n}) and ack_times ({len(self.ack_times)}) must have equal length")
        for name in ("display_min_times", "display_max_times"):
            derived = getattr(self, name)
            if derived is not None and len(derived) != n:
                raise ValueError(f"{name} ({len(derived)}) must match send_times ({n})")
        return self

    @property
    def n_frames(self) -> int:
        return len(self.send_times)

    @property
    def has_bounds(self) -> bool:
        return self.display_min_times is not None and self.display_max_times is not None


class PlateCalibration(BaseModel):
    """Calibration parameters for one force plate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    center_x: Optional[float] = Field(None, description="Plate center X in the global workspace (m)")
    center_y: Optional[float] = Field(None, description="Plate center Y in the global workspace (m)")
    plate_type: Optional[str] = Field(None, description="Plate manufacturer/type string, e.g. 'NDI'")

    @property
    def has_center(self) -> bool:
        return self.center_x is not None and self.center_y is not None


class Accessories(BaseModel):
    """Accessory hardware recorded with the trial."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    force_plate_count: int = Field(0, ge=0)
    plates: Dict[int, PlateCalibration] = Field(default_factory=dict)

    def calibration(self, plate_index: int) -> PlateCalibration:
        """Calibration for a plate, empty when none was recorded."""
        return self.plates.get(plate_index, PlateCalibration())


class PlateChannels(BaseModel):
    """Raw force/moment channels of one plate, one sample per acquisition tick."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    fx: np.ndarray
    fy: np.ndarray
    fz: np.ndarray
    mx: np.ndarray
    my: np.ndarray
    timestamp: np.ndarray

    @field_validator("fx", "fy", "fz", "mx", "my", "timestamp", mode="before")
    @classmethod
    def coerce_signal(cls, v: Any) -> np.ndarray:
        return _as_signal(v)

    @model_validator(mode="after")
    def check_lengths(self) -> "PlateChannels":
        lengths = {name: len(getattr(self, name)) for name in ("fx", "fy", "fz", "mx", "my", "timestamp")}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"Plate channels must have equal length, got {lengths}")
        return self

    @property
    def n_samples(self) -> int:
        return len(self.fz)


class PlateKinematics(BaseModel):
    """Derived center of pressure and its velocity."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    cop_x: np.ndarray
    cop_y: np.ndarray
    cop_velocity_x: np.ndarray
    cop_velocity_y: np.ndarray

    @field_validator("cop_x", "cop_y", "cop_velocity_x", "cop_velocity_y", mode="before")
    @classmethod
    def coerce_signal(cls, v: Any) -> np.ndarray:
        return _as_signal(v)


class ForcePlate(BaseModel):
    """One plate's raw channels plus, once computed, its kinematics."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    channels: PlateChannels
    kinematics: Optional[PlateKinematics] = None


class Trial(BaseModel):
    """One experimental recording.

    Attributes:
        name: Trial label used in log messages
        video_settings: Display settings (required when video_latency is present)
        video_latency: Video telemetry, None when the trial has none
        accessories: Plate count and calibration
        force_plates: Plate data keyed by 1-based plate index
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = ""
    video_settings: Optional[VideoSettings] = None
    video_latency: Optional[VideoLatency] = None
    accessories: Accessories = Field(default_factory=Accessories)
    force_plates: Dict[int, ForcePlate] = Field(default_factory=dict)
