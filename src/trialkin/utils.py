"""Foundation utilities for trialkin.

Provides JSON I/O, timing and logging primitives. As a foundation module it
must not import any other project module.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
from pathlib import Path
import time
from typing import Any, Iterator

import numpy as np

__all__ = [
    "read_json",
    "write_json",
    "to_jsonable",
    "time_block",
    "configure_logging",
]


# ============================================================================
# JSON I/O
# ============================================================================


def read_json(path: Path | str) -> Any:
    """Read JSON file and return the parsed document.

    Args:
        path: Absolute or relative path to JSON file

    Returns:
        Parsed JSON (dict or list)

    Raises:
        FileNotFoundError: If file does not exist
        JSONDecodeError: If file contains invalid JSON
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def to_jsonable(obj: Any) -> Any:
    """Recursively convert numpy arrays/scalars and Paths to JSON types."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj


def write_json(path: Path | str, obj: Any, indent: int = 2) -> None:
    """Write a document to JSON with pretty formatting.

    Numpy arrays are written as lists.

    Args:
        path: Target file path
        obj: Document to serialize
        indent: Indentation level (default: 2)

    Raises:
        OSError: If write operation fails
    """
    path = Path(path)

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_jsonable(obj), f, indent=indent, ensure_ascii=False)


# ============================================================================
# Timing Utilities
# ============================================================================


@contextmanager
def time_block(label: str, logger: logging.Logger | None = None) -> Iterator[None]:
    """Context manager for timing code blocks with optional logging.

    Args:
        label: Descriptive label for timed block
        logger: Optional logger instance (if None, prints to stdout)

    Example:
        with time_block("COP computation"):
            compute_force_plate_kinematics(trials)
        # Output: "COP computation completed in 0.12s"
    """
    start_time = time.time()

    try:
        yield
    finally:
        elapsed = time.time() - start_time
        message = f"{label} completed in {elapsed:.2f}s"

        if logger is not None:
            logger.info(message)
        else:
            print(message)


# ============================================================================
# Logging Configuration
# ============================================================================


def configure_logging(level: str = "INFO", structured: bool = False) -> None:
    """Configure root logger with standardized format.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        structured: Enable JSON structured logging (default: False)
    """
    numeric_level = getattr(logging, level.upper(), None)

    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(numeric_level)

    if structured:
        formatter = logging.Formatter('{"timestamp": "%(asctime)s", "level": "%(levelname)s", ' '"name": "%(name)s", "message": "%(message)s"}')
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
