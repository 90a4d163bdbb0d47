"""Pytest configuration and shared fixtures for trialkin tests.

Provides:
- Trial builders for video telemetry and force plate channels
- Ready-made trial collections
- Temporary JSON/TOML files for pipeline and CLI tests
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from trialkin.models import Accessories, ForcePlate, PlateCalibration, PlateChannels, Trial, VideoLatency, VideoSettings

# Test Constants
STANDARD_REFRESH_RATE = 60.0  # Hz, floor period 0.015 s
STANDARD_DISPLAY_LATENCY = 0.010  # s
LOADED_FZ = -400.0  # N, well below the low-force threshold
UNLOADED_FZ = 0.0


# ============================================================================
# Builders
# ============================================================================


def make_video_trial(
    send_times: List[float],
    ack_times: List[float],
    refresh_rate: float = STANDARD_REFRESH_RATE,
    name: str = "video",
) -> Trial:
    """Trial with video telemetry and no force plates."""
    return Trial(
        name=name,
        video_settings=VideoSettings(refresh_rate=refresh_rate),
        video_latency=VideoLatency(send_times=send_times, ack_times=ack_times),
    )


def make_channels(
    fz: List[float],
    fx: Optional[List[float]] = None,
    fy: Optional[List[float]] = None,
    mx: Optional[List[float]] = None,
    my: Optional[List[float]] = None,
    timestamp: Optional[List[float]] = None,
) -> PlateChannels:
    """Plate channels; unspecified channels are zero, timestamps 1 ms apart."""
    n = len(fz)
    zeros = [0.0] * n
    return PlateChannels(
        fx=zeros if fx is None else fx,
        fy=zeros if fy is None else fy,
        fz=fz,
        mx=zeros if mx is None else mx,
        my=zeros if my is None else my,
        timestamp=[i * 0.001 for i in range(n)] if timestamp is None else timestamp,
    )


def make_plate_trial(
    plates: Dict[int, PlateChannels],
    calibrations: Optional[Dict[int, PlateCalibration]] = None,
    plate_count: Optional[int] = None,
    name: str = "plates",
) -> Trial:
    """Trial with force plates and no video telemetry."""
    return Trial(
        name=name,
        accessories=Accessories(
            force_plate_count=len(plates) if plate_count is None else plate_count,
            plates=calibrations or {},
        ),
        force_plates={idx: ForcePlate(channels=channels) for idx, channels in plates.items()},
    )


def trial_record(n_samples: int = 6, with_video: bool = True) -> Dict[str, Any]:
    """JSON-ready trial record with two calibrated plates."""
    fz = [LOADED_FZ] * (n_samples - 2) + [UNLOADED_FZ] * 2
    channels = {
        "fx": [1.0] * n_samples,
        "fy": [2.0] * n_samples,
        "fz": fz,
        "mx": [10.0 + i for i in range(n_samples)],
        "my": [-5.0 - i for i in range(n_samples)],
        "timestamp": [i * 0.001 for i in range(n_samples)],
    }
    record: Dict[str, Any] = {
        "name": "exam-trial",
        "video_settings": {"refresh_rate": STANDARD_REFRESH_RATE},
        "accessories": {
            "force_plate_count": 2,
            "plates": {
                "1": {"center_x": 0.1, "center_y": 0.2, "plate_type": "NDI"},
                "2": {"center_x": 0.1, "center_y": 0.2, "plate_type": "NDI"},
            },
        },
        "force_plates": {"1": {"channels": channels}, "2": {"channels": channels}},
    }
    if with_video:
        record["video_latency"] = {
            "send_times": [0.000, 0.016, 0.033],
            "ack_times": [0.004, 0.015, 0.037],
        }
    return record


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def video_trial() -> Trial:
    """Trial whose acknowledgements need correction."""
    return make_video_trial(send_times=[0.000, 0.010, 0.020], ack_times=[0.000, 0.015, 0.014])


@pytest.fixture
def trial_without_video() -> Trial:
    """Trial with no video telemetry at all."""
    return Trial(name="no-video", video_settings=VideoSettings(refresh_rate=STANDARD_REFRESH_RATE))


@pytest.fixture
def two_plate_trial() -> Trial:
    """Two loaded NDI plates with distinct calibrated centers."""
    n = 5
    channels = make_channels(
        fz=[LOADED_FZ] * n,
        fx=[10.0] * n,
        fy=[-20.0] * n,
        mx=[40.0, 44.0, 48.0, 52.0, 56.0],
        my=[-8.0] * n,
    )
    return make_plate_trial(
        plates={1: channels, 2: channels},
        calibrations={
            1: PlateCalibration(center_x=-0.2, center_y=0.3, plate_type="NDI"),
            2: PlateCalibration(center_x=0.25, center_y=0.3, plate_type="AMTI"),
        },
    )


@pytest.fixture
def trial_records() -> List[Dict[str, Any]]:
    """Two JSON trial records, the second without video telemetry."""
    return [trial_record(with_video=True), trial_record(with_video=False)]


@pytest.fixture
def trials_json(tmp_path: Path, trial_records: List[Dict[str, Any]]) -> Path:
    """Trial collection written to a temporary JSON file."""
    path = tmp_path / "trials.json"
    path.write_text(json.dumps({"trials": trial_records}), encoding="utf-8")
    return path


@pytest.fixture
def settings_toml(tmp_path: Path) -> Path:
    """Settings file enabling both stages."""
    path = tmp_path / "config.toml"
    path.write_text(
        """
[video_latency]
display_latency_s = 0.010
num_buffered_frames = 1

[force_plate]
enabled = true

[logging]
level = "debug"
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove TRIALKIN_ overrides that would leak into settings tests."""
    for key in list(os.environ):
        if key.startswith("TRIALKIN_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo configure_logging calls so handlers don't outlive CliRunner streams."""
    import logging

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def assert_arrays_close(actual: Any, expected: Any) -> None:
    np.testing.assert_allclose(np.asarray(actual, dtype=float), np.asarray(expected, dtype=float), rtol=0, atol=1e-12)
