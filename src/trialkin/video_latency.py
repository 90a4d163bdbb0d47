"""Video latency bounds: when was a frame actually visible to the subject.

For every frame the recording computer logs a send time and an acknowledgement
time. This module turns them into a minimum and maximum bound on the display
time of the frame, accounting for:

1. Acknowledgement quantization. Two displayed frames cannot be closer together
   than one frame period, so acknowledgements that are too close are pulled
   backwards until they respect a tolerant lower bound on that period.
2. Display buffering. Most modern displays buffer one whole frame before
   showing it; CRT-like displays buffer none.
3. Display latency. Response time, backlight PWM and internal processing of
   the display, supplied by the caller in seconds.

Display timing across different parts of the screen (scanline order) is not
modelled; the whole frame is treated as a single instant within the bounds.

Example:
    >>> from trialkin.video_latency import estimate_video_latency
    >>> trials = estimate_video_latency(trials, display_latency_s=0.010)
    >>> trials[0].video_latency.display_max_times
"""

import logging
import math
import numbers
from typing import Any, List, Sequence

import numpy as np

from .exceptions import ConfigurationError, TrialDataError
from .models import Trial, VideoLatency

__all__ = [
    "FLOOR_PERIOD_FRACTION",
    "frame_period_floor",
    "correct_ack_times",
    "compute_display_bounds",
    "estimate_video_latency",
]

logger = logging.getLogger(__name__)

# Reported refresh rates are rounded to the nearest ms and the display and
# recording clocks may disagree by a few percent.
FLOOR_PERIOD_FRACTION = 0.95


def _require_numeric(name: str, value: Any) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} was not specified or is not numeric (got {value!r})")
    return float(value)


def frame_period_floor(frame_period: float) -> float:
    """Lower bound on the inter-frame interval seen by the recording clock.

    Args:
        frame_period: Nominal frame period in seconds (1 / refresh rate)

    Returns:
        Floor period in seconds, truncated to whole milliseconds

    Example:
        >>> frame_period_floor(1 / 60)
        0.015
    """
    return math.floor(FLOOR_PERIOD_FRACTION * frame_period * 1000) / 1000


def correct_ack_times(ack_times: Sequence[float], floor_period: float) -> np.ndarray:
    """Pull acknowledgements backwards so adjacent ones are >= floor_period apart.

    A single sweep from the last sample to the second. The latest
    acknowledgement is never changed; each correction moves the earlier sample
    of a pair relative to the already-corrected later one.

    Args:
        ack_times: Acknowledgement times in temporal order (s)
        floor_period: Minimum physically possible frame interval (s)

    Returns:
        Corrected copy of ack_times
    """
    corrected = np.array(ack_times, dtype=float)
    for j in range(len(corrected) - 1, 0, -1):
        if corrected[j] - corrected[j - 1] < floor_period:
            corrected[j - 1] = corrected[j] - floor_period
    return corrected


def compute_display_bounds(
    video_latency: VideoLatency,
    refresh_rate: float,
    display_latency_s: float,
    num_buffered_frames: float = 1,
) -> VideoLatency:
    """Compute display-time bounds for one trial's telemetry.

    Args:
        video_latency: Send/ack telemetry of the trial
        refresh_rate: Reported display refresh rate (Hz)
        display_latency_s: Display latency excluding buffering (s)
        num_buffered_frames: Frames buffered by the display

    Returns:
        New VideoLatency with display_min_times and display_max_times set
    """
    frame_period = 1.0 / refresh_rate
    buffer_delay = num_buffered_frames * frame_period
    floor_period = frame_period_floor(frame_period)

    corrected_ack = correct_ack_times(video_latency.ack_times, floor_period)

    return VideoLatency(
        send_times=video_latency.send_times,
        ack_times=video_latency.ack_times,
        display_min_times=video_latency.send_times + buffer_delay + display_latency_s,
        display_max_times=corrected_ack + buffer_delay + display_latency_s,
    )


def estimate_video_latency(
    trials: Sequence[Trial],
    display_latency_s: Any = None,
    num_buffered_frames: Any = 1,
) -> List[Trial]:
    """Add minimum and maximum display times to every trial with telemetry.

    Under normal conditions the maximum bound is the actual display time: the
    acknowledgement typically arrives within ~1 ms of the vsync pulse.

    Args:
        trials: Trials in recording order
        display_latency_s: All display delays except buffering (s). Typical
            contributions are response time (5-10 ms), asynchronous backlight
            PWM (0, or 4 ms at 120 Hz) and internal processing (0-5 ms).
        num_buffered_frames: Frames buffered by the display; 1 for most modern
            displays, 0 for CRT-like displays

    Returns:
        New list of trials; trials without telemetry are returned unchanged

    Raises:
        ConfigurationError: display_latency_s missing or non-numeric, or
            num_buffered_frames non-numeric
        TrialDataError: A trial has telemetry but no refresh rate
    """
    display_latency_s = _require_numeric("display_latency_s", display_latency_s)
    num_buffered_frames = _require_numeric("num_buffered_frames", num_buffered_frames)

    logger.info(f"Estimating video latency bounds for {len(trials)} trials (display latency {display_latency_s:.4f}s, {num_buffered_frames:g} buffered frames)")

    trials_out = []
    n_bounded = 0
    for i, trial in enumerate(trials):
        if trial.video_latency is None:
            logger.debug(f"Trial {i + 1} ({trial.name or 'unnamed'}): no video latency telemetry, skipping")
            trials_out.append(trial)
            continue

        if trial.video_settings is None:
            raise TrialDataError(f"Trial {i + 1} ({trial.name or 'unnamed'}) has video latency telemetry but no video settings")

        bounds = compute_display_bounds(
            trial.video_latency,
            refresh_rate=trial.video_settings.refresh_rate,
            display_latency_s=display_latency_s,
            num_buffered_frames=num_buffered_frames,
        )
        trials_out.append(trial.model_copy(update={"video_latency": bounds}))
        n_bounded += 1
        logger.debug(f"Trial {i + 1} ({trial.name or 'unnamed'}): bounded {bounds.n_frames} frames")

    logger.info(f"Added video latency bounds to {n_bounded}/{len(trials)} trials")
    return trials_out
