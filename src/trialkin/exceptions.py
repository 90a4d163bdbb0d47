"""Exception hierarchy for trialkin.

All package errors derive from TrialKinError so callers can catch one type at
the CLI or pipeline boundary.

Numerical edge cases (near-zero Fz, duplicate timestamps) are resolved inside
the stages and never raised. A trial without video-latency telemetry is not an
error either.
"""

__all__ = [
    "TrialKinError",
    "ConfigurationError",
    "TrialDataError",
    "TrialLoadError",
]


class TrialKinError(Exception):
    """Base exception for trialkin errors."""

    pass


class ConfigurationError(TrialKinError):
    """Stage parameters or settings are missing or invalid.

    Raised before any trial is processed; no partial result is produced.
    """

    pass


class TrialDataError(TrialKinError):
    """A trial record violates a precondition of a stage."""

    pass


class TrialLoadError(TrialKinError):
    """A trial collection could not be read or parsed."""

    pass
