"""
Digital Signal Processing module for chirpsonar.

Turns raw microphone samples into smoothed dB spectra and locates the
strongest echo bin inside the chirp band.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import signal
from scipy.fft import rfft

from .config import Config


@dataclass(frozen=True)
class SpectralFrame:
    """Magnitude spectrum in dB, one value per frequency bin."""
    magnitudes_db: np.ndarray
    bin_width_hz: float

    @classmethod
    def from_sample_rate(cls, magnitudes_db: np.ndarray, sample_rate: int,
                         fft_size: int) -> "SpectralFrame":
        return cls(np.asarray(magnitudes_db), sample_rate / fft_size)

    @property
    def num_bins(self) -> int:
        return len(self.magnitudes_db)

    def frequency_of(self, index: int) -> float:
        """Frequency of a bin index in Hz."""
        return index * self.bin_width_hz


@dataclass(frozen=True)
class PeakEstimate:
    """Strongest bin within a frequency band."""
    frequency_hz: float
    magnitude_db: float

    @property
    def is_valid(self) -> bool:
        """False for the empty-band sentinel."""
        return math.isfinite(self.magnitude_db)


NO_PEAK = PeakEstimate(frequency_hz=0.0, magnitude_db=float('-inf'))


def find_peak(frame: SpectralFrame, band_start_hz: float,
              band_end_hz: float) -> PeakEstimate:
    """
    Locate the loudest bin between two frequencies.

    Band edges map to bins with floor/ceil and both ends are inclusive.
    Bins outside the band are ignored, however loud. An empty band returns
    NO_PEAK, whose -inf magnitude fails every threshold check.

    Args:
        frame: Spectrum to search (not modified)
        band_start_hz: Lower band edge
        band_end_hz: Upper band edge

    Returns:
        PeakEstimate of the first maximum in the band
    """
    if frame.bin_width_hz <= 0 or frame.num_bins == 0:
        return NO_PEAK
    if not (math.isfinite(band_start_hz) and math.isfinite(band_end_hz)):
        return NO_PEAK

    start_idx = max(0, math.floor(band_start_hz / frame.bin_width_hz))
    end_idx = min(frame.num_bins - 1, math.ceil(band_end_hz / frame.bin_width_hz))
    if start_idx > end_idx:
        return NO_PEAK

    band = np.asarray(frame.magnitudes_db[start_idx:end_idx + 1], dtype=np.float64)
    band = np.where(np.isnan(band), -np.inf, band)

    offset = int(np.argmax(band))
    magnitude = float(band[offset])
    if magnitude == float('-inf'):
        return NO_PEAK

    peak_idx = start_idx + offset
    return PeakEstimate(
        frequency_hz=frame.frequency_of(peak_idx),
        magnitude_db=magnitude,
    )


class SpectralAnalyser:
    """
    Smoothed dB spectrum of the most recent fft_size samples.

    Mirrors a browser AnalyserNode: Blackman window, magnitude normalised
    by the transform size, exponential smoothing across calls, then dB.
    """

    def __init__(self, config: Config):
        self.config = config

        # Pre-compute window function
        self._window = signal.windows.get_window(
            config.window_type, config.fft_size, fftbins=False
        )

        self._smoothed: Optional[np.ndarray] = None

    def process(self, audio: np.ndarray) -> SpectralFrame:
        """
        Compute the next smoothed spectrum.

        Args:
            audio: Recent samples; the last fft_size are used and shorter
                   input is zero-padded at the front

        Returns:
            SpectralFrame with fft_size / 2 bins
        """
        n = self.config.fft_size
        segment = np.asarray(audio, dtype=np.float64)[-n:]
        if len(segment) < n:
            segment = np.concatenate([np.zeros(n - len(segment)), segment])

        spectrum = np.abs(rfft(segment * self._window))[:n // 2] / n

        tau = self.config.smoothing_time_constant
        if self._smoothed is None:
            self._smoothed = (1 - tau) * spectrum
        else:
            self._smoothed = tau * self._smoothed + (1 - tau) * spectrum

        with np.errstate(divide='ignore'):
            log_spec = 20 * np.log10(self._smoothed)
        log_spec = np.maximum(log_spec, self.config.floor_db)

        return SpectralFrame.from_sample_rate(
            log_spec, self.config.sample_rate, n
        )

    def reset(self):
        """Forget the smoothing history."""
        self._smoothed = None
