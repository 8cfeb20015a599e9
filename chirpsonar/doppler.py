"""
Doppler motion classification.

Each analysis tick is classified on its own: there is no smoothing or
hysteresis between ticks.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .calibration import CalibrationState
from .config import ThresholdConfig
from .dsp import PeakEstimate


class Motion(Enum):
    """Motion classification labels."""
    NONE = "none"
    APPROACHING = "approaching"
    RECEDING = "receding"
    INSUFFICIENT_SIGNAL = "insufficient_signal"


@dataclass(frozen=True)
class MotionVerdict:
    """Classification of a single analysis tick."""
    motion: Motion
    shift_hz: Optional[float] = None
    peak: Optional[PeakEstimate] = None

    @property
    def is_motion(self) -> bool:
        return self.motion in (Motion.APPROACHING, Motion.RECEDING)


def classify(peak: PeakEstimate, calibration: CalibrationState,
             thresholds: ThresholdConfig) -> MotionVerdict:
    """
    Compare an echo peak against the calibrated baseline.

    Both gates must pass to report motion: the echo has to be louder than
    the magnitude threshold, and the shift larger than the motion
    threshold. Weak echoes give NONE whatever their apparent shift.

    Args:
        peak: Echo peak for this tick
        calibration: Current baseline
        thresholds: Motion and magnitude thresholds

    Returns:
        MotionVerdict (positive shift = approaching)
    """
    if not calibration.is_calibrated or calibration.baseline_hz is None:
        return MotionVerdict(Motion.INSUFFICIENT_SIGNAL, peak=peak)

    shift = peak.frequency_hz - calibration.baseline_hz

    if peak.magnitude_db <= thresholds.peak_magnitude_threshold_db:
        return MotionVerdict(Motion.NONE, shift_hz=shift, peak=peak)

    if abs(shift) > thresholds.motion_threshold_hz:
        motion = Motion.APPROACHING if shift > 0 else Motion.RECEDING
        return MotionVerdict(motion, shift_hz=shift, peak=peak)

    return MotionVerdict(Motion.NONE, shift_hz=shift, peak=peak)
