"""Load and save trial collections as JSON.

A trial collection is either a JSON list of trial objects or an object with a
``"trials"`` list. Trial objects follow the field names of
``trialkin.models.Trial``; sample arrays are plain JSON lists and plate dicts
are keyed by the plate index as a string.

Example:
    >>> from trialkin.io import load_trials, save_trials
    >>> trials = load_trials("exam.json")
    >>> save_trials("exam_derived.json", trials)
"""

import logging
from pathlib import Path
from typing import Any, List, Sequence, Union

from pydantic import ValidationError

from .exceptions import TrialLoadError
from .models import Trial
from .utils import read_json, write_json

__all__ = ["parse_trials", "load_trials", "save_trials", "dump_trials"]

logger = logging.getLogger(__name__)


def parse_trials(document: Any) -> List[Trial]:
    """Validate an already-parsed JSON document into Trial models.

    Raises:
        TrialLoadError: Document shape or a trial record is invalid
    """
    if isinstance(document, dict):
        if "trials" not in document:
            raise TrialLoadError("Trial document must be a list or contain a 'trials' list")
        document = document["trials"]

    if not isinstance(document, list):
        raise TrialLoadError(f"Expected a list of trials, got {type(document).__name__}")

    trials = []
    for i, record in enumerate(document):
        try:
            trials.append(Trial.model_validate(record))
        except ValidationError as e:
            raise TrialLoadError(f"Invalid trial record {i + 1}: {e}") from e

    return trials


def load_trials(path: Union[str, Path]) -> List[Trial]:
    """Load a trial collection from a JSON file.

    Raises:
        TrialLoadError: File missing, not JSON, or records invalid
    """
    path = Path(path)
    try:
        document = read_json(path)
    except FileNotFoundError as e:
        raise TrialLoadError(str(e)) from e
    except ValueError as e:
        raise TrialLoadError(f"Failed to parse {path}: {e}") from e

    trials = parse_trials(document)
    logger.info(f"Loaded {len(trials)} trials from {path.name}")
    return trials


def dump_trials(trials: Sequence[Trial]) -> List[dict]:
    """Trials as plain dicts, arrays kept as numpy arrays and unset fields dropped."""
    return [trial.model_dump(exclude_none=True) for trial in trials]


def save_trials(path: Union[str, Path], trials: Sequence[Trial]) -> None:
    """Write a trial collection, including derived fields, to a JSON file."""
    write_json(path, {"trials": dump_trials(trials)})
    logger.info(f"Wrote {len(trials)} trials to {Path(path).name}")
