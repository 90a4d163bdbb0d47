"""Center of pressure (COP) and COP velocity under each force plate.

For every plate of every trial the raw force (FX, FY, FZ) and moment (MX, MY)
channels are turned into:

- COPx, COPy: the point on the plate surface where the vertical force acts,
  moved into the global workspace by the plate's calibrated center.
- COP velocity X/Y: finite differences of the COP over distinct timestamps,
  with contact/no-contact transitions removed and gaps held at the last rate.

Sign convention: plate-normal force is negative when loaded. Samples with
``Fz > SMALL_FZ_THRESHOLD`` carry too little load for a meaningful COP and are
pinned to the plate center.

Example:
    >>> from trialkin.force_plate import compute_force_plate_kinematics
    >>> trials = compute_force_plate_kinematics(trials)
    >>> trials[0].force_plates[1].kinematics.cop_x
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict

from .exceptions import TrialDataError
from .models import Accessories, ForcePlate, PlateChannels, PlateKinematics, Trial

__all__ = [
    "SMALL_FZ_THRESHOLD",
    "FORCE_PLATE_SEPARATION",
    "NDI_Z_OFFSET",
    "PlateContext",
    "resolve_plate_offset",
    "resolve_z_offset",
    "low_force_mask",
    "compute_cop",
    "calc_velocity",
    "compute_plate_kinematics",
    "compute_force_plate_kinematics",
]

logger = logging.getLogger(__name__)

# Constants
SMALL_FZ_THRESHOLD = -40.0  # N, Fz above this is weak or no load
FORCE_PLATE_SEPARATION = 0.47  # m between the two plate centers
NDI_Z_OFFSET = 0.0471  # m from the NDI moment sensors to the plate top surface


class PlateContext(BaseModel):
    """Resolved per-plate parameters passed explicitly to the COP helpers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    trial_index: int
    plate_index: int
    offset_x: float = 0.0
    offset_y: float = 0.0
    z_offset: float = 0.0


# =============================================================================
# Calibration
# =============================================================================


def resolve_plate_offset(accessories: Accessories, plate_index: int) -> Tuple[float, float]:
    """Resolve the plate center used to move the COP into the global workspace.

    Some recordings store plate 1's center for plate 2 as well. Two plates
    cannot share a center, so in that case plate 2 is moved by the plate
    separation along X, towards the other side of the workspace.

    Args:
        accessories: Trial accessories holding plate calibrations
        plate_index: 1-based plate index

    Returns:
        (offset_x, offset_y) in meters, (0, 0) when the plate is uncalibrated
    """
    calibration = accessories.calibration(plate_index)
    if not calibration.has_center:
        return 0.0, 0.0

    offset_x, offset_y = calibration.center_x, calibration.center_y

    if plate_index == 2:
        first = accessories.calibration(1)
        if first.has_center and first.center_x == calibration.center_x and first.center_y == calibration.center_y:
            if offset_x < 0:
                offset_x += FORCE_PLATE_SEPARATION
            else:
                offset_x -= FORCE_PLATE_SEPARATION
            logger.debug(f"Plate 2 shares plate 1's calibrated center, moved X offset to {offset_x:.4f}")

    return offset_x, offset_y


def resolve_z_offset(plate_type: Optional[str]) -> float:
    """Height of the moment sensors below the plate surface for this plate type."""
    if plate_type and plate_type[:3].lower() == "ndi":
        return NDI_Z_OFFSET
    return 0.0


# =============================================================================
# COP
# =============================================================================


def low_force_mask(fz: np.ndarray) -> np.ndarray:
    """Boolean mask of samples too weakly loaded for a stable COP."""
    return np.asarray(fz) > SMALL_FZ_THRESHOLD


def compute_cop(channels: PlateChannels, context: PlateContext) -> Tuple[np.ndarray, np.ndarray]:
    """Compute the COP of one plate.

    Args:
        channels: Raw plate channels
        context: Resolved offsets for the plate

    Returns:
        (cop_x, cop_y) arrays with one value per sample
    """
    z = context.z_offset
    m_x = channels.mx - channels.fy * z
    m_y = channels.my + channels.fx * z

    # Low-force samples are overwritten below, including Fz == 0
    with np.errstate(divide="ignore", invalid="ignore"):
        cop_x = context.offset_x - m_y / channels.fz
        cop_y = -context.offset_y + m_x / channels.fz

    low = low_force_mask(channels.fz)
    cop_x[low] = context.offset_x
    cop_y[low] = -context.offset_y

    return cop_x, cop_y


# =============================================================================
# Velocity
# =============================================================================


def _contact_boundaries(low_force: np.ndarray) -> np.ndarray:
    """Sample indices where load crosses the low-force threshold.

    Boundaries come from gaps in the run of low-force indices: the first
    loaded sample after a low-force run and the first low-force sample after a
    loaded run. The sample after the last low-force one closes the final run.
    """
    low_idx = np.flatnonzero(low_force)
    if low_idx.size == 0:
        return low_idx

    gaps = np.flatnonzero(np.diff(low_idx) > 1)
    boundaries = np.concatenate([low_idx[gaps] + 1, low_idx[gaps + 1], low_idx[-1:] + 1])
    return boundaries[boundaries < len(low_force)]


def calc_velocity(position: np.ndarray, timestamp: np.ndarray, low_force: np.ndarray) -> np.ndarray:
    """Velocity of a COP coordinate over time.

    Three passes:

    1. Differentiate only between samples with distinct timestamps (first
       occurrence of each value, kept in recording order).
    2. Zero the velocity where the plate enters or leaves contact; the COP
       jumps to or from the plate center there, which is not real motion.
    3. Forward-fill zeros with the last non-zero rate, starting from the first
       differentiated sample.

    Args:
        position: COP coordinate per sample
        timestamp: Sample timestamps, possibly repeated
        low_force: Low-force mask of the plate (see low_force_mask)

    Returns:
        Velocity per sample, same length as position
    """
    position = np.asarray(position, dtype=float)
    timestamp = np.asarray(timestamp, dtype=float)
    velocity = np.zeros(len(position))

    _, first_idx = np.unique(timestamp, return_index=True)
    unique_idxs = np.sort(first_idx)
    if len(unique_idxs) < 2:
        return velocity

    cur_idxs = unique_idxs[1:]
    prev_idxs = unique_idxs[:-1]
    velocity[cur_idxs] = (position[cur_idxs] - position[prev_idxs]) / (timestamp[cur_idxs] - timestamp[prev_idxs])

    velocity[_contact_boundaries(low_force)] = 0.0

    start = cur_idxs[0]
    held = velocity[start]
    for j in range(start, len(velocity)):
        if velocity[j] != 0:
            held = velocity[j]
        else:
            velocity[j] = held

    return velocity


# =============================================================================
# Stage
# =============================================================================


def compute_plate_kinematics(channels: PlateChannels, context: PlateContext) -> PlateKinematics:
    """COP and COP velocity for one plate of one trial."""
    cop_x, cop_y = compute_cop(channels, context)
    low = low_force_mask(channels.fz)

    return PlateKinematics(
        cop_x=cop_x,
        cop_y=cop_y,
        cop_velocity_x=calc_velocity(cop_x, channels.timestamp, low),
        cop_velocity_y=calc_velocity(cop_y, channels.timestamp, low),
    )


def _plate_context(trial: Trial, trial_index: int, plate_index: int) -> PlateContext:
    offset_x, offset_y = resolve_plate_offset(trial.accessories, plate_index)
    return PlateContext(
        trial_index=trial_index,
        plate_index=plate_index,
        offset_x=offset_x,
        offset_y=offset_y,
        z_offset=resolve_z_offset(trial.accessories.calibration(plate_index).plate_type),
    )


def compute_force_plate_kinematics(trials: Sequence[Trial]) -> List[Trial]:
    """Add COP and COP velocity to every force plate of every trial.

    Args:
        trials: Trials in recording order

    Returns:
        New list of trials whose plates carry kinematics

    Raises:
        TrialDataError: A plate within the trial's plate count has no channels
    """
    logger.info(f"Computing force plate COP for {len(trials)} trials")

    trials_out = []
    n_plates = 0
    for i, trial in enumerate(trials):
        plate_count = trial.accessories.force_plate_count
        plates = dict(trial.force_plates)

        for plate_index in range(1, plate_count + 1):
            if plate_index not in trial.force_plates:
                raise TrialDataError(f"Trial {i + 1} ({trial.name or 'unnamed'}) declares {plate_count} force plates but has no channels for plate {plate_index}")

            plate: ForcePlate = trial.force_plates[plate_index]
            context = _plate_context(trial, i, plate_index)
            kinematics = compute_plate_kinematics(plate.channels, context)
            plates[plate_index] = plate.model_copy(update={"kinematics": kinematics})
            n_plates += 1

        logger.debug(f"Trial {i + 1} ({trial.name or 'unnamed'}): {plate_count} force plates processed")
        trials_out.append(trial.model_copy(update={"force_plates": plates}))

    logger.info(f"Added COP channels to {n_plates} force plates")
    return trials_out
