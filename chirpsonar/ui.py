"""
Console status display for chirpsonar.

Renders a single status line from the session's latest verdict. Runs on
its own refresh interval, independent of the analysis timer.
"""

import math
from typing import Optional

from .config import Config
from .doppler import Motion, MotionVerdict
from .session import SessionState


def format_status(state: SessionState, verdict: Optional[MotionVerdict] = None) -> str:
    """Human-readable status text."""
    if state == SessionState.IDLE:
        return "Status: Idle"
    if state == SessionState.CALIBRATING:
        return "Status: Calibrating..."
    if verdict is not None and verdict.is_motion:
        direction = "Approaching" if verdict.motion == Motion.APPROACHING else "Receding"
        return f"Status: Motion Detected - {direction}!"
    return "Status: Active"


class ConsoleUI:
    """
    Simple console-based UI for terminal display.

    Shows the echo level against the magnitude gate and the motion status.
    """

    BAR_WIDTH = 30

    def __init__(self, config: Config):
        self.config = config
        self._frame_count = 0

    def level_bar(self, magnitude_db: float) -> str:
        """Echo level bar spanning floor_db..0 dB, gate marked with '|'."""
        span = -self.config.floor_db
        if not math.isfinite(magnitude_db):
            fill = 0.0
        else:
            fill = min(max((magnitude_db - self.config.floor_db) / span, 0.0), 1.0)
        gate = (self.config.peak_magnitude_threshold_db - self.config.floor_db) / span
        gate_pos = min(max(int(gate * self.BAR_WIDTH), 0), self.BAR_WIDTH - 1)

        cells = ["█" if i < int(fill * self.BAR_WIDTH) else "░" for i in range(self.BAR_WIDTH)]
        cells[gate_pos] = "|"
        return "".join(cells)

    def render(self, state: SessionState, verdict: Optional[MotionVerdict] = None) -> str:
        """Build the status line."""
        line = format_status(state, verdict)
        if verdict is not None and verdict.peak is not None:
            peak = verdict.peak
            line = f"[{self.level_bar(peak.magnitude_db)}] {peak.magnitude_db:6.1f} dB  " + line
            if verdict.shift_hz is not None:
                line += f"  shift={verdict.shift_hz:+.1f} Hz"
        return line

    def update(self, state: SessionState, verdict: Optional[MotionVerdict] = None):
        """Update console display."""
        self._frame_count += 1
        print("\r" + self.render(state, verdict) + " " * 10, end="", flush=True)

    def print_failure(self, error: Exception):
        """Print a session failure on its own line."""
        print(f"\n✗ {error}")
