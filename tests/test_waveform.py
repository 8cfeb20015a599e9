import io
import struct
import wave

import numpy as np
import pytest
from scipy import signal
from scipy.io import wavfile

from chirpsonar.config import ChirpSpec
from chirpsonar.waveform import (
    encode_wav,
    quantize_pcm16,
    synthesize_chirp,
    write_wav,
)


def make_spec(**overrides):
    values = dict(start_hz=15000.0, end_hz=18000.0, duration_sec=0.05,
                  gain=1.0, sample_rate=48000)
    values.update(overrides)
    return ChirpSpec(**values)


@pytest.mark.parametrize("duration, sample_rate, expected", [
    (0.05, 48000, 2400),
    (0.05, 44100, 2205),
    (0.0333, 44100, 1469),
    (0.1, 8000, 800),
])
def test_chirp_length_matches_rounded_duration(duration, sample_rate, expected):
    spec = make_spec(duration_sec=duration, sample_rate=sample_rate,
                     start_hz=1000.0, end_hz=3000.0)
    samples = synthesize_chirp(spec)
    assert len(samples) == expected == spec.num_samples


@pytest.mark.parametrize("gain", [0.0, 0.3, 1.0])
def test_chirp_samples_stay_in_range(gain):
    samples = synthesize_chirp(make_spec(gain=gain))
    assert np.all(samples >= -1.0)
    assert np.all(samples <= 1.0)
    assert np.max(np.abs(samples)) <= gain + 1e-6


def test_chirp_matches_closed_form_sweep_outside_ramps():
    spec = make_spec()
    samples = synthesize_chirp(spec)
    t = np.arange(spec.num_samples) / spec.sample_rate
    # phi=-90 turns scipy's cosine sweep into a sine sweep
    expected = signal.chirp(t, f0=spec.start_hz, t1=spec.duration_sec,
                            f1=spec.end_hz, method='linear', phi=-90)

    ramp = int(round(spec.ramp_fraction * spec.num_samples))
    middle = slice(ramp, spec.num_samples - ramp)
    np.testing.assert_allclose(samples[middle], expected[middle], atol=1e-5)


def test_chirp_envelope_fades_both_ends():
    spec = make_spec(duration_sec=0.1)
    samples = synthesize_chirp(spec)
    ramp = int(round(spec.ramp_fraction * spec.num_samples))
    assert ramp == 48
    assert samples[0] == 0.0
    assert samples[-1] == 0.0
    assert np.max(np.abs(samples[:ramp // 4])) < 0.3
    assert np.max(np.abs(samples[ramp:2 * ramp])) > 0.9


def test_chirp_is_deterministic():
    spec = make_spec()
    np.testing.assert_array_equal(synthesize_chirp(spec), synthesize_chirp(spec))


@pytest.mark.parametrize("overrides", [
    {"start_hz": 0.0},
    {"start_hz": 18000.0, "end_hz": 15000.0},
    {"end_hz": 15000.0},
    {"duration_sec": 0.0},
    {"gain": 1.5},
    {"gain": -0.1},
    {"sample_rate": 0},
    {"ramp_fraction": 0.6},
])
def test_chirp_spec_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        make_spec(**overrides)


def test_wav_header_is_bit_exact():
    samples = np.zeros(100, dtype=np.float32)
    data = encode_wav(samples, 48000)

    assert len(data) == 44 + 200
    fields = struct.unpack('<4sI4s4sIHHIIHH4sI', data[:44])
    assert fields == (
        b'RIFF', 36 + 200, b'WAVE', b'fmt ', 16, 1, 1,
        48000, 96000, 2, 16, b'data', 200,
    )


def test_wav_decodes_with_standard_readers():
    spec = make_spec(gain=0.8)
    samples = synthesize_chirp(spec)
    data = encode_wav(samples, spec.sample_rate)

    rate, decoded = wavfile.read(io.BytesIO(data))
    assert rate == spec.sample_rate
    assert decoded.dtype == np.int16
    assert decoded.ndim == 1
    assert len(decoded) == len(samples)

    s = samples.astype(np.float64)
    expected = np.where(s < 0, s * 32768, s * 32767)
    assert np.max(np.abs(decoded - expected)) < 1.0

    with wave.open(io.BytesIO(data)) as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == spec.sample_rate
        assert wav.getnframes() == len(samples)


def test_quantize_clamps_and_uses_asymmetric_scale():
    pcm = quantize_pcm16(np.array([2.0, -2.0, 0.0, 1.0, -1.0, 0.5, -0.5]))
    assert pcm.tolist() == [32767, -32768, 0, 32767, -32768, 16383, -16384]


def test_write_wav_creates_file(tmp_path):
    spec = make_spec()
    path = write_wav(tmp_path / "chirp.wav", synthesize_chirp(spec), spec.sample_rate)
    rate, decoded = wavfile.read(path)
    assert rate == 48000
    assert len(decoded) == spec.num_samples
