"""
Chirp waveform generation and WAV encoding.

The chirp is synthesized once per session and encoded into an in-memory
16-bit PCM WAV so the playback side can replay it without recomputing.
"""

import struct
from pathlib import Path
from typing import Union

import numpy as np

from .config import ChirpSpec


WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
NUM_CHANNELS = 1


def synthesize_chirp(spec: ChirpSpec) -> np.ndarray:
    """
    Generate a linear frequency sweep with a fade-in/fade-out envelope.

    Phase is the closed-form integral of the instantaneous frequency,
    so the sweep has no phase jumps between samples.

    Args:
        spec: Chirp parameters

    Returns:
        float32 samples in [-1, 1], length round(duration * sample_rate)
    """
    n = spec.num_samples
    if n == 0:
        return np.zeros(0, dtype=np.float32)

    t = np.arange(n) / spec.sample_rate
    sweep_rate = (spec.end_hz - spec.start_hz) / spec.duration_sec
    phase = 2 * np.pi * (spec.start_hz * t + sweep_rate * t * t / 2)
    samples = spec.gain * np.sin(phase)

    # Linear ramps at both ends to avoid clicks
    ramp_len = int(round(spec.ramp_fraction * n))
    if ramp_len > 0:
        ramp = np.arange(ramp_len) / ramp_len
        samples[:ramp_len] *= ramp
        samples[n - ramp_len:] *= ramp[::-1]

    return samples.astype(np.float32)


def quantize_pcm16(buffer: np.ndarray) -> np.ndarray:
    """
    Convert float samples to signed 16-bit integers.

    Negative samples scale by 32768 and non-negative by 32767 so both ends
    of the int16 range are reachable; the result is truncated toward zero.
    """
    clipped = np.clip(np.asarray(buffer, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype('<i2')


def encode_wav(buffer: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode a mono sample buffer as an uncompressed 16-bit PCM WAV file.

    Args:
        buffer: Float samples (values outside [-1, 1] are clamped)
        sample_rate: Sample rate written into the header

    Returns:
        Complete WAV file contents (44-byte header + sample data)
    """
    pcm = quantize_pcm16(buffer)
    data_size = pcm.size * NUM_CHANNELS * (BITS_PER_SAMPLE // 8)
    block_align = NUM_CHANNELS * (BITS_PER_SAMPLE // 8)
    byte_rate = sample_rate * block_align

    header = struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF',
        WAV_HEADER_SIZE - 8 + data_size,
        b'WAVE',
        b'fmt ',
        16,                 # fmt chunk size
        1,                  # PCM
        NUM_CHANNELS,
        sample_rate,
        byte_rate,
        block_align,
        BITS_PER_SAMPLE,
        b'data',
        data_size,
    )
    return header + pcm.tobytes()


def write_wav(path: Union[str, Path], buffer: np.ndarray, sample_rate: int) -> Path:
    """Encode and write a WAV file; returns the path written."""
    path = Path(path)
    path.write_bytes(encode_wav(buffer, sample_rate))
    return path
