"""
Exceptions raised by the sonar pipeline.

A weak echo is not an error: it is reported as Motion.NONE.
"""


class SonarError(Exception):
    """Base class for chirpsonar errors."""


class CaptureUnavailable(SonarError):
    """The microphone could not be opened (missing device, permission denied)."""


class CalibrationFailed(SonarError):
    """Too few calibration cycles produced an echo above the magnitude gate."""

    def __init__(self, valid: int, required: int, cycles: int):
        self.valid = valid
        self.required = required
        self.cycles = cycles
        super().__init__(
            f"Calibration failed: {valid}/{cycles} valid echo readings, "
            f"need at least {required}"
        )


class CalibrationCancelled(SonarError):
    """The session was stopped while calibration was still running."""
