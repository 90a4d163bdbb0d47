"""Pipeline orchestration for trialkin.

Owns Settings and coordinates the two stages. The stages accept primitives and
trial lists only; this module is the one place where Settings flows in.

Stages run in a fixed order (video latency, then force plate). They are
independent, so either can be disabled in the settings.

Example:
--------
>>> from trialkin.config import load_settings
>>> from trialkin.pipeline import run_file
>>> settings = load_settings("config.toml")
>>> result = run_file("exam.json", "exam_derived.json", settings)
>>> print(result["summary"])
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, TypedDict, Union

from .config import Settings
from .force_plate import compute_force_plate_kinematics
from .io import load_trials, save_trials
from .models import Trial
from .utils import time_block
from .video_latency import estimate_video_latency

__all__ = ["RunResult", "run_pipeline", "run_file", "summarize_trials"]

logger = logging.getLogger(__name__)


class RunResult(TypedDict, total=False):
    """Result of a pipeline run.

    Attributes:
        trials: Augmented trials, same order as the input
        stages: Names of the stages that ran
        summary: Counts describing the derived fields
        output_path: Where the trials were written (run_file only)
    """

    trials: List[Trial]
    stages: List[str]
    summary: Dict[str, Any]
    output_path: Optional[Path]


def summarize_trials(trials: List[Trial]) -> Dict[str, Any]:
    """Count trials and plates carrying derived fields."""
    return {
        "n_trials": len(trials),
        "n_trials_with_latency_bounds": sum(1 for t in trials if t.video_latency is not None and t.video_latency.has_bounds),
        "n_plates_with_cop": sum(1 for t in trials for plate in t.force_plates.values() if plate.kinematics is not None),
    }


def run_pipeline(trials: List[Trial], settings: Settings) -> RunResult:
    """Run the enabled stages over a trial collection.

    Args:
        trials: Trials in recording order
        settings: Validated settings

    Returns:
        RunResult with augmented trials and a summary

    Raises:
        ConfigurationError: Video latency enabled without a valid display latency
        TrialDataError: A trial violates a stage precondition
    """
    stages = []

    if settings.video_latency.enabled:
        with time_block("Video latency bounds", logger):
            trials = estimate_video_latency(
                trials,
                display_latency_s=settings.video_latency.display_latency_s,
                num_buffered_frames=settings.video_latency.num_buffered_frames,
            )
        stages.append("video_latency")

    if settings.force_plate.enabled:
        with time_block("Force plate COP", logger):
            trials = compute_force_plate_kinematics(trials)
        stages.append("force_plate")

    if not stages:
        logger.warning("All stages disabled, trials returned unchanged")

    summary = summarize_trials(trials)
    logger.info(f"Pipeline finished: {summary}")

    return RunResult(trials=trials, stages=stages, summary=summary)


def run_file(input_path: Union[str, Path], output_path: Union[str, Path], settings: Settings) -> RunResult:
    """Load trials from JSON, run the pipeline, and write the result."""
    trials = load_trials(input_path)
    result = run_pipeline(trials, settings)

    output_path = Path(output_path)
    save_trials(output_path, result["trials"])
    result["output_path"] = output_path
    return result
