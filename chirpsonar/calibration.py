"""
Baseline calibration for chirpsonar.

Plays a series of chirps with nothing moving in front of the device and
averages the echo peak frequency. Readings below the magnitude gate are
discarded; if too few survive, calibration fails instead of producing a
baseline from silence or feedback.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from .config import ThresholdConfig
from .dsp import PeakEstimate, find_peak
from .errors import CalibrationCancelled, CalibrationFailed


@dataclass(frozen=True)
class CalibrationState:
    """Echo baseline shared between calibration and classification."""
    baseline_hz: Optional[float] = None
    is_calibrated: bool = False

    @classmethod
    def calibrated(cls, baseline_hz: float) -> "CalibrationState":
        return cls(baseline_hz=baseline_hz, is_calibrated=True)


UNCALIBRATED = CalibrationState()


@dataclass(frozen=True)
class CalibrationReading:
    """One chirp/listen round."""
    cycle: int
    peak: PeakEstimate
    valid: bool


def required_valid_readings(cycles: int, min_valid: int = 3) -> int:
    """Strict majority of cycles, and never fewer than min_valid."""
    return max(cycles // 2 + 1, min_valid)


def _sleep(seconds: float) -> bool:
    time.sleep(seconds)
    return False


def calibrate(trigger, source, band: Tuple[float, float],
              thresholds: ThresholdConfig, cycles: int = 10,
              settle_sec: float = 0.15, min_valid: int = 3,
              wait: Callable[[float], bool] = _sleep,
              readings: Optional[List[CalibrationReading]] = None) -> float:
    """
    Run the blocking chirp/listen protocol and return the baseline.

    Cycles run strictly one after another: each chirp must be heard
    before the next one is emitted.

    Args:
        trigger: Object with play() that emits one chirp
        source: Object with read_frame() -> SpectralFrame
        band: (start_hz, end_hz) searched for the echo peak
        thresholds: Magnitude gate for valid readings
        cycles: Number of chirp/listen rounds
        settle_sec: Delay between chirp and reading the spectrum
        min_valid: Absolute minimum of valid readings
        wait: Sleeps for the given seconds; returns True to cancel
        readings: Optional list that receives every reading

    Returns:
        Mean echo frequency of the valid readings in Hz

    Raises:
        CalibrationFailed: too few valid readings
        CalibrationCancelled: wait() requested cancellation
    """
    if cycles < 1:
        raise ValueError(f"cycles must be >= 1, got {cycles}")

    required = required_valid_readings(cycles, min_valid)
    band_start, band_end = band
    gate = thresholds.peak_magnitude_threshold_db

    print(f"[CAL] Calibrating: {cycles} cycles, band {band_start:.0f}-{band_end:.0f} Hz, "
          f"settle {settle_sec * 1000:.0f} ms")

    valid_freqs = []
    for cycle in range(cycles):
        trigger.play()
        if wait(settle_sec):
            raise CalibrationCancelled("Calibration cancelled")

        peak = find_peak(source.read_frame(), band_start, band_end)
        valid = peak.magnitude_db > gate
        if valid:
            valid_freqs.append(peak.frequency_hz)
        if readings is not None:
            readings.append(CalibrationReading(cycle=cycle, peak=peak, valid=valid))

        print(f"[CAL] Cycle {cycle + 1}/{cycles}: {peak.frequency_hz:.1f} Hz "
              f"@ {peak.magnitude_db:.1f} dB {'ok' if valid else 'rejected'}")

    if len(valid_freqs) < required:
        raise CalibrationFailed(len(valid_freqs), required, cycles)

    baseline = float(np.mean(valid_freqs))
    print(f"[CAL] Calibration complete. Baseline frequency: {baseline:.2f} Hz "
          f"({len(valid_freqs)}/{cycles} valid)")
    return baseline
