"""
Configuration module for chirpsonar.

All tunable parameters in one place for easy experimentation. The chirp
band and the thresholds vary a lot between rooms and hardware, so the
values below are starting points, not contracts.
"""

from dataclasses import dataclass, replace
from typing import Dict, Tuple


MIN_CALIBRATION_CYCLES = 5


@dataclass(frozen=True)
class ChirpSpec:
    """Parameters that fully determine one synthesized chirp."""
    start_hz: float
    end_hz: float
    duration_sec: float
    gain: float
    sample_rate: int
    ramp_fraction: float = 0.01   # envelope ramp, fraction of duration

    def __post_init__(self):
        if not 0 < self.start_hz < self.end_hz:
            raise ValueError(
                f"Chirp band must satisfy 0 < start < end, "
                f"got {self.start_hz}..{self.end_hz} Hz"
            )
        if self.duration_sec <= 0:
            raise ValueError(f"Chirp duration must be positive, got {self.duration_sec}")
        if not 0.0 <= self.gain <= 1.0:
            raise ValueError(f"Chirp gain must be within [0, 1], got {self.gain}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if not 0.0 <= self.ramp_fraction <= 0.5:
            raise ValueError(f"Ramp fraction must be within [0, 0.5], got {self.ramp_fraction}")

    @property
    def num_samples(self) -> int:
        """Buffer length in samples."""
        return int(round(self.duration_sec * self.sample_rate))

    @property
    def band(self) -> Tuple[float, float]:
        return (self.start_hz, self.end_hz)


@dataclass(frozen=True)
class ThresholdConfig:
    """Detection thresholds and scheduling intervals, fixed for a session."""
    motion_threshold_hz: float
    peak_magnitude_threshold_db: float
    ping_interval_ms: int
    analysis_interval_ms: int

    def __post_init__(self):
        if self.motion_threshold_hz < 0:
            raise ValueError(f"Motion threshold must be >= 0, got {self.motion_threshold_hz}")
        if self.ping_interval_ms <= 0 or self.analysis_interval_ms <= 0:
            raise ValueError("Ping and analysis intervals must be positive")


# Tuning presets: same pipeline, different band and gates.
PRESETS: Dict[str, Dict[str, float]] = {
    "audible": {
        "chirp_start_hz": 15000.0,
        "chirp_end_hz": 18000.0,
        "motion_threshold_hz": 25.0,
        "peak_magnitude_threshold_db": -60.0,
    },
    "near_ultrasonic": {
        "chirp_start_hz": 18000.0,
        "chirp_end_hz": 20000.0,
        "motion_threshold_hz": 20.0,
        "peak_magnitude_threshold_db": -70.0,
    },
}


@dataclass
class Config:
    """chirpsonar configuration parameters."""

    # ==========================================================================
    # Audio Settings
    # ==========================================================================
    sample_rate: int = 48000              # Hz - device rate for capture and playback
    fft_size: int = 8192                  # N - analyser transform size
    smoothing_time_constant: float = 0.1  # 0-1, spectral smoothing between frames
    window_type: str = "blackman"         # Window function for the analyser
    floor_db: float = -160.0              # dB - floor for silent bins
    buffer_duration_sec: float = 1.0      # Seconds of microphone history kept

    # Derived: bin width = sample_rate / fft_size ≈ 5.9 Hz at 48kHz

    # ==========================================================================
    # Chirp Settings
    # ==========================================================================
    chirp_start_hz: float = 15000.0       # Hz - sweep start
    chirp_end_hz: float = 18000.0         # Hz - sweep end
    chirp_duration_sec: float = 0.05      # Seconds per chirp
    chirp_gain: float = 1.0               # 0-1, output amplitude
    ramp_fraction: float = 0.01           # Fade in/out as fraction of duration

    # ==========================================================================
    # Timing
    # ==========================================================================
    ping_interval_ms: int = 400           # Chirp emission period
    analysis_interval_ms: int = 100       # Analysis period (10x per second)
    start_delay_ms: int = 500             # Warm-up before calibration starts
    settle_factor: float = 3.0            # Settle delay = factor * chirp duration
    settle_min_sec: float = 0.15          # ...but never shorter than this

    # ==========================================================================
    # Detection
    # ==========================================================================
    motion_threshold_hz: float = 25.0     # |shift| must exceed this
    peak_magnitude_threshold_db: float = -60.0  # echo must be louder than this
    calibration_cycles: int = 10          # chirp/listen rounds during calibration
    min_valid_readings: int = 3           # absolute floor on valid readings

    # ==========================================================================
    # Console UI
    # ==========================================================================
    ui_update_interval_ms: int = 100
    debug: bool = False                   # Per-tick peak/shift trace

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def bin_width_hz(self) -> float:
        """Frequency resolution in Hz."""
        return self.sample_rate / self.fft_size

    @property
    def ping_interval_sec(self) -> float:
        return self.ping_interval_ms / 1000.0

    @property
    def analysis_interval_sec(self) -> float:
        return self.analysis_interval_ms / 1000.0

    @property
    def start_delay_sec(self) -> float:
        return self.start_delay_ms / 1000.0

    @property
    def settle_sec(self) -> float:
        """Wait between a calibration chirp and reading its echo."""
        return max(self.settle_min_sec, self.settle_factor * self.chirp_duration_sec)

    @property
    def chirp_band(self) -> Tuple[float, float]:
        return (self.chirp_start_hz, self.chirp_end_hz)

    def chirp_spec(self) -> ChirpSpec:
        """Build the immutable chirp description."""
        return ChirpSpec(
            start_hz=self.chirp_start_hz,
            end_hz=self.chirp_end_hz,
            duration_sec=self.chirp_duration_sec,
            gain=self.chirp_gain,
            sample_rate=self.sample_rate,
            ramp_fraction=self.ramp_fraction,
        )

    def thresholds(self) -> ThresholdConfig:
        """Build the immutable threshold set."""
        return ThresholdConfig(
            motion_threshold_hz=self.motion_threshold_hz,
            peak_magnitude_threshold_db=self.peak_magnitude_threshold_db,
            ping_interval_ms=self.ping_interval_ms,
            analysis_interval_ms=self.analysis_interval_ms,
        )

    def validate(self) -> "Config":
        """
        Check the configuration as a whole.

        Raises:
            ValueError: on the first violated constraint
        """
        self.chirp_spec()
        self.thresholds()

        if self.fft_size <= 0 or self.fft_size & (self.fft_size - 1):
            raise ValueError(f"FFT size must be a power of two, got {self.fft_size}")
        if not 0.0 <= self.smoothing_time_constant < 1.0:
            raise ValueError(
                f"Smoothing time constant must be within [0, 1), "
                f"got {self.smoothing_time_constant}"
            )
        if self.floor_db >= 0:
            raise ValueError(f"Floor must be below 0 dB, got {self.floor_db}")
        if self.chirp_end_hz > self.sample_rate / 2:
            raise ValueError(
                f"Chirp end {self.chirp_end_hz:.0f} Hz is above Nyquist "
                f"({self.sample_rate / 2:.0f} Hz)"
            )
        if self.calibration_cycles < MIN_CALIBRATION_CYCLES:
            raise ValueError(
                f"Need at least {MIN_CALIBRATION_CYCLES} calibration cycles, "
                f"got {self.calibration_cycles}"
            )
        if self.min_valid_readings < 1:
            raise ValueError(f"min_valid_readings must be >= 1, got {self.min_valid_readings}")
        if self.buffer_duration_sec * self.sample_rate < self.fft_size:
            raise ValueError("Capture buffer is shorter than one FFT window")
        return self

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "Config":
        """Create a config from a named tuning preset plus overrides."""
        if name not in PRESETS:
            raise ValueError(f"Unknown preset: {name}. Choose from: {', '.join(PRESETS)}")
        values = dict(PRESETS[name])
        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **overrides) -> "Config":
        """Copy with some fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
