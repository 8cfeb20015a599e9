import numpy as np
import pytest

from chirpsonar.calibration import (
    UNCALIBRATED,
    CalibrationState,
    calibrate,
    required_valid_readings,
)
from chirpsonar.config import ThresholdConfig
from chirpsonar.errors import CalibrationCancelled, CalibrationFailed

THRESHOLDS = ThresholdConfig(
    motion_threshold_hz=25.0,
    peak_magnitude_threshold_db=-60.0,
    ping_interval_ms=400,
    analysis_interval_ms=100,
)
BAND = (15000.0, 18000.0)


def no_wait(seconds):
    return False


def frames_at(frame_factory, readings):
    """Frame source function yielding (freq_hz, magnitude_db) per read, 1 Hz bins."""
    def frame_fn(count):
        freq, magnitude = readings[count - 1]
        return frame_factory({int(freq): magnitude}, num_bins=20000, bin_width=1.0)
    return frame_fn


@pytest.mark.parametrize("cycles, min_valid, expected", [
    (10, 3, 6),
    (5, 3, 3),
    (6, 3, 4),
    (4, 3, 3),
    (2, 3, 3),
    (10, 8, 8),
])
def test_required_valid_readings(cycles, min_valid, expected):
    assert required_valid_readings(cycles, min_valid) == expected


def test_clustered_readings_average_to_baseline(frame_factory, fake_trigger, fake_source_factory):
    freqs = [16995, 17000, 17005, 16998, 17002, 17001, 16999, 17004, 16996, 17000]
    source = fake_source_factory(frames_at(frame_factory, [(f, -40.0) for f in freqs]))

    baseline = calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=10, wait=no_wait)

    assert baseline == pytest.approx(np.mean(freqs))
    assert 16995 <= baseline <= 17005
    assert fake_trigger.plays == 10
    assert source.reads == 10


def test_too_few_valid_readings_fail(frame_factory, fake_trigger, fake_source_factory):
    readings = [(17000, -40.0)] * 2 + [(17000, -80.0)] * 8
    source = fake_source_factory(frames_at(frame_factory, readings))

    with pytest.raises(CalibrationFailed) as excinfo:
        calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=10, wait=no_wait)

    assert excinfo.value.valid == 2
    assert excinfo.value.required == 6
    assert excinfo.value.cycles == 10


def test_only_valid_readings_are_averaged(frame_factory, fake_trigger, fake_source_factory):
    readings = [(17000, -40.0), (17010, -50.0), (15500, -90.0), (17020, -30.0),
                (16000, -60.0), (17030, -55.0), (17040, -45.0), (15200, -75.0),
                (15300, -100.0), (17050, -20.0)]
    source = fake_source_factory(frames_at(frame_factory, readings))

    baseline = calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=10, wait=no_wait)

    # -60 dB sits on the gate and is rejected
    assert baseline == pytest.approx(np.mean([17000, 17010, 17020, 17030, 17040, 17050]))


def test_absolute_floor_applies_to_short_runs(frame_factory, fake_trigger, fake_source_factory):
    readings = [(17000, -40.0)] * 2 + [(17000, -80.0)] * 2
    source = fake_source_factory(frames_at(frame_factory, readings))

    with pytest.raises(CalibrationFailed) as excinfo:
        calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=4, wait=no_wait)
    assert excinfo.value.required == 3


def test_each_cycle_plays_then_waits_then_reads(frame_factory, fake_trigger_factory,
                                               fake_source_factory):
    events = []
    trigger = fake_trigger_factory(events)
    source = fake_source_factory(frames_at(frame_factory, [(17000, -40.0)] * 5), events)

    def recording_wait(seconds):
        events.append(("wait", seconds))
        return False

    calibrate(trigger, source, BAND, THRESHOLDS, cycles=5, settle_sec=0.2, wait=recording_wait)

    assert events == ["play", ("wait", 0.2), "read"] * 5


def test_peak_search_is_restricted_to_band(frame_factory, fake_trigger, fake_source_factory):
    def frame_fn(count):
        return frame_factory({12000: 0.0, 17000: -40.0}, num_bins=20000, bin_width=1.0)

    baseline = calibrate(fake_trigger, fake_source_factory(frame_fn), BAND, THRESHOLDS,
                         cycles=5, wait=no_wait)
    assert baseline == 17000.0


def test_cancelled_wait_stops_before_reading(frame_factory, fake_trigger, fake_source_factory):
    source = fake_source_factory(frames_at(frame_factory, [(17000, -40.0)] * 5))

    with pytest.raises(CalibrationCancelled):
        calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=5, wait=lambda s: True)

    assert fake_trigger.plays == 1
    assert source.reads == 0


def test_readings_are_reported(frame_factory, fake_trigger, fake_source_factory):
    values = [(17000, -40.0), (17000, -80.0), (17002, -40.0), (17004, -40.0), (17006, -40.0)]
    source = fake_source_factory(frames_at(frame_factory, values))
    readings = []

    calibrate(fake_trigger, source, BAND, THRESHOLDS, cycles=5, wait=no_wait, readings=readings)

    assert [r.cycle for r in readings] == [0, 1, 2, 3, 4]
    assert [r.valid for r in readings] == [True, False, True, True, True]
    assert readings[2].peak.frequency_hz == 17002.0


def test_zero_cycles_rejected(fake_trigger, fake_source_factory):
    with pytest.raises(ValueError):
        calibrate(fake_trigger, fake_source_factory(lambda n: None), BAND, THRESHOLDS,
                  cycles=0, wait=no_wait)


def test_calibration_state_constructors():
    assert UNCALIBRATED.baseline_hz is None
    assert not UNCALIBRATED.is_calibrated
    state = CalibrationState.calibrated(17000.0)
    assert state.is_calibrated
    assert state.baseline_hz == 17000.0
