"""Derived-signal post-processing for motion-lab trial records.

Provides two independent stages over an ordered collection of trials:

- Video latency bounds: earliest and latest time each video frame was visible
- Force plate kinematics: center of pressure (COP) and COP velocity per plate

Example:
    >>> from trialkin import compute_force_plate_kinematics, estimate_video_latency, load_trials
    >>> trials = load_trials("exam.json")
    >>> trials = estimate_video_latency(trials, display_latency_s=0.010)
    >>> trials = compute_force_plate_kinematics(trials)
"""

# Exceptions
from .exceptions import ConfigurationError, TrialDataError, TrialKinError, TrialLoadError

# Force plate kinematics
from .force_plate import calc_velocity, compute_force_plate_kinematics

# Trial collection I/O
from .io import load_trials, save_trials

# Models
from .models import Accessories, ForcePlate, PlateCalibration, PlateChannels, PlateKinematics, Trial, VideoLatency, VideoSettings

# Video latency bounds
from .video_latency import estimate_video_latency

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "TrialKinError",
    "ConfigurationError",
    "TrialDataError",
    "TrialLoadError",
    # Models
    "Trial",
    "VideoSettings",
    "VideoLatency",
    "Accessories",
    "PlateCalibration",
    "PlateChannels",
    "PlateKinematics",
    "ForcePlate",
    # Stages
    "estimate_video_latency",
    "compute_force_plate_kinematics",
    "calc_velocity",
    # I/O
    "load_trials",
    "save_trials",
]
