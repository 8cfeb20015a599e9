import threading

import numpy as np
import pytest

from chirpsonar.dsp import SpectralFrame


def make_frame(peaks, num_bins=2400, bin_width=10.0, floor_db=-100.0):
    """Flat spectrum with {bin_index: magnitude_db} injected."""
    mags = np.full(num_bins, floor_db)
    for index, magnitude in peaks.items():
        mags[index] = magnitude
    return SpectralFrame(mags, bin_width)


@pytest.fixture
def frame_factory():
    return make_frame


class FakeTrigger:
    """Records chirp triggers."""

    def __init__(self, events=None):
        self.plays = 0
        self.stopped = False
        self.events = events if events is not None else []

    def play(self):
        self.plays += 1
        self.events.append("play")

    def stop(self):
        self.stopped = True


class FakeSource:
    """Serves frames from a callable taking the read count."""

    def __init__(self, frame_fn, events=None):
        self.frame_fn = frame_fn
        self.reads = 0
        self.started = False
        self.stopped = False
        self.start_error = None
        self.events = events if events is not None else []
        self._lock = threading.Lock()

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self):
        self.stopped = True

    def read_frame(self):
        with self._lock:
            self.reads += 1
            count = self.reads
        self.events.append("read")
        return self.frame_fn(count)


@pytest.fixture
def fake_trigger():
    return FakeTrigger()


@pytest.fixture
def fake_source_factory():
    return FakeSource


@pytest.fixture
def fake_trigger_factory():
    return FakeTrigger
