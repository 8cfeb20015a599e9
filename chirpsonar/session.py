"""
Sonar session: calibration followed by periodic chirp and analysis timers.

State machine:
- IDLE: nothing running
- CALIBRATING: blocking calibration protocol on a worker thread
- ACTIVE: chirp timer and analysis timer running independently

Only calibration writes the baseline and only start/stop change the
state, so every tick just reads them.
"""

import threading
from enum import Enum
from typing import Callable, List, Optional

from .calibration import UNCALIBRATED, CalibrationState, calibrate
from .config import Config
from .doppler import MotionVerdict, classify
from .dsp import find_peak
from .errors import CalibrationCancelled, CaptureUnavailable


class SessionState(Enum):
    """Session lifecycle states."""
    IDLE = "idle"
    CALIBRATING = "calibrating"
    ACTIVE = "active"


class SonarSession:
    """
    Owns one sonar run from start to stop.

    The capture object must provide start(), stop() and read_frame();
    the player must provide play() and stop(). Every start() recalibrates.
    """

    def __init__(self, config: Config, capture, player):
        self.config = config.validate()
        self._capture = capture
        self._player = player

        self._band = config.chirp_band
        self._thresholds = config.thresholds()

        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._calibration: CalibrationState = UNCALIBRATED
        self._latest_verdict: Optional[MotionVerdict] = None
        self._last_error: Optional[Exception] = None

        # Bumped on every start/stop so stale workers can tell they are stale
        self._generation = 0
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

        # Callbacks
        self._on_verdict: Optional[Callable[[MotionVerdict], None]] = None
        self._on_state: Optional[Callable] = None
        self._on_calibration: Optional[Callable[[CalibrationState], None]] = None

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def set_verdict_callback(self, callback):
        """
        Register callback for per-tick classifications.

        Args:
            callback: Function(MotionVerdict) -> None
        """
        self._on_verdict = callback

    def set_state_callback(self, callback):
        """
        Register callback for session state changes.

        Args:
            callback: Function(SessionState, Optional[Exception]) -> None
                      The exception is set when the change is a failure.
        """
        self._on_state = callback

    def set_calibration_callback(self, callback):
        """
        Register callback for baseline changes.

        Args:
            callback: Function(CalibrationState) -> None
        """
        self._on_calibration = callback

    def _notify_state(self, state: SessionState, error: Optional[Exception] = None):
        if self._on_state is not None:
            self._on_state(state, error)

    def _notify_calibration(self, calibration: CalibrationState):
        if self._on_calibration is not None:
            self._on_calibration(calibration)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self):
        """
        Open the microphone and begin calibrating.

        Returns immediately; calibration continues on a worker thread and
        the timers start once it succeeds.

        Raises:
            CaptureUnavailable: the microphone could not be opened; the
                                session stays IDLE
        """
        with self._lock:
            if self._state != SessionState.IDLE:
                return
            # Claim the transition before opening the microphone
            self._generation += 1
            generation = self._generation
            self._stop_event = threading.Event()
            stop_event = self._stop_event
            self._calibration = UNCALIBRATED
            self._latest_verdict = None
            self._last_error = None
            self._state = SessionState.CALIBRATING

        try:
            self._capture.start()
        except CaptureUnavailable as e:
            print(f"[SONAR] Microphone unavailable: {e}")
            with self._lock:
                if generation == self._generation:
                    self._state = SessionState.IDLE
                    self._last_error = e
            self._notify_state(SessionState.IDLE, e)
            raise

        with self._lock:
            if generation != self._generation:
                # stop() ran while the microphone was opening
                self._capture.stop()
                return
            thread = threading.Thread(
                target=self._run_calibration,
                args=(generation, stop_event),
                name="sonar-calibration",
                daemon=True,
            )
            self._threads = [thread]

        print("[SONAR] Calibrating...")
        self._notify_state(SessionState.CALIBRATING)
        thread.start()

    def stop(self):
        """
        Stop all timers and release audio devices.

        Blocks until the worker threads have exited (unless called from
        one of them), so no tick is delivered after this returns.
        """
        with self._lock:
            previous = self._state
            had_baseline = self._calibration.is_calibrated
            self._generation += 1
            self._stop_event.set()
            threads, self._threads = self._threads, []
            self._state = SessionState.IDLE
            self._calibration = UNCALIBRATED
            self._latest_verdict = None

        current = threading.current_thread()
        for thread in threads:
            if thread is not current and thread.ident is not None:
                thread.join()

        if previous == SessionState.IDLE:
            return

        self._release_devices()
        print("[SONAR] Stopped")
        if had_baseline:
            self._notify_calibration(UNCALIBRATED)
        self._notify_state(SessionState.IDLE)

    def _release_devices(self):
        self._player.stop()
        self._capture.stop()

    def _fail(self, generation: int, error: Exception):
        """Return to IDLE and report error, unless the session moved on."""
        with self._lock:
            if generation != self._generation or self._state == SessionState.IDLE:
                return
            had_baseline = self._calibration.is_calibrated
            self._stop_event.set()
            self._state = SessionState.IDLE
            self._calibration = UNCALIBRATED
            self._last_error = error

        print(f"[SONAR] {error}")
        self._release_devices()
        if had_baseline:
            self._notify_calibration(UNCALIBRATED)
        self._notify_state(SessionState.IDLE, error)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    def _run_calibration(self, generation: int, stop_event: threading.Event):
        if stop_event.wait(self.config.start_delay_sec):
            return

        try:
            baseline = calibrate(
                self._player,
                self._capture,
                self._band,
                self._thresholds,
                cycles=self.config.calibration_cycles,
                settle_sec=self.config.settle_sec,
                min_valid=self.config.min_valid_readings,
                wait=stop_event.wait,
            )
        except CalibrationCancelled:
            return
        except Exception as e:
            self._fail(generation, e)
            return

        with self._lock:
            # Stopped (or restarted) while the last cycle was in flight
            if generation != self._generation or stop_event.is_set():
                return

            calibration = CalibrationState.calibrated(baseline)
            self._calibration = calibration
            self._state = SessionState.ACTIVE

            workers = [
                threading.Thread(target=self._chirp_loop, args=(generation, stop_event),
                                 name="sonar-chirp", daemon=True),
                threading.Thread(target=self._analysis_loop, args=(generation, stop_event),
                                 name="sonar-analysis", daemon=True),
            ]
            self._threads.extend(workers)
            for worker in workers:
                worker.start()

        print(f"[SONAR] Active (baseline {baseline:.1f} Hz)")
        self._notify_calibration(calibration)
        self._notify_state(SessionState.ACTIVE)

    def _chirp_loop(self, generation: int, stop_event: threading.Event):
        while not stop_event.wait(self.config.ping_interval_sec):
            try:
                self._player.play()
            except Exception as e:
                self._fail(generation, e)
                return

    def _analysis_loop(self, generation: int, stop_event: threading.Event):
        while not stop_event.wait(self.config.analysis_interval_sec):
            try:
                verdict = self.analyse_once()
            except Exception as e:
                self._fail(generation, e)
                return

            with self._lock:
                if generation != self._generation or stop_event.is_set():
                    return
                self._latest_verdict = verdict

            if self.config.debug and verdict.peak is not None and verdict.shift_hz is not None:
                print(f"[SONAR] Peak Mag: {verdict.peak.magnitude_db:.1f} dB, "
                      f"Freq: {verdict.peak.frequency_hz:.1f} Hz, "
                      f"Shift: {verdict.shift_hz:.1f} Hz")

            if self._on_verdict is not None:
                self._on_verdict(verdict)

    def analyse_once(self) -> MotionVerdict:
        """Classify the current spectrum against the baseline."""
        frame = self._capture.read_frame()
        peak = find_peak(frame, *self._band)
        return classify(peak, self._calibration, self._thresholds)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def calibration(self) -> CalibrationState:
        return self._calibration

    @property
    def latest_verdict(self) -> Optional[MotionVerdict]:
        """Most recent tick result, None before the first tick."""
        return self._latest_verdict

    @property
    def last_error(self) -> Optional[Exception]:
        """Failure that last returned the session to IDLE."""
        return self._last_error

    @property
    def is_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
