"""
Audio transmission module - plays the encoded chirp on demand.

The WAV is decoded once; every play() replays the same samples.
"""

import io
import threading

import numpy as np
from scipy.io import wavfile

try:
    import sounddevice as sd
except ImportError:
    raise ImportError("sounddevice required: pip install sounddevice")

from .config import Config
from .waveform import encode_wav, synthesize_chirp


class ChirpPlayer:
    """
    Chirp transmitter.

    Holds a pre-encoded chirp and plays it through the default output
    device each time play() is called.
    """

    def __init__(self, wav_bytes: bytes, device=None):
        self.sample_rate, pcm = wavfile.read(io.BytesIO(wav_bytes))
        self._samples = (pcm.astype(np.float32) / 32768.0)
        self.device = device
        self._lock = threading.Lock()
        self._plays = 0

    @classmethod
    def from_config(cls, config: Config, device=None) -> "ChirpPlayer":
        """Synthesize and encode the configured chirp."""
        spec = config.chirp_spec()
        wav = encode_wav(synthesize_chirp(spec), spec.sample_rate)
        print(f"[TX] Chirp {spec.start_hz:.0f}-{spec.end_hz:.0f} Hz, "
              f"{spec.duration_sec * 1000:.0f} ms, gain {spec.gain:.2f}")
        return cls(wav, device=device)

    def play(self):
        """Start one chirp without blocking."""
        with self._lock:
            sd.play(self._samples, samplerate=self.sample_rate,
                    device=self.device, latency='low')
            self._plays += 1

    def stop(self):
        """Cut off any chirp still playing."""
        with self._lock:
            if self._plays:
                sd.stop()

    @property
    def samples(self) -> np.ndarray:
        """Decoded chirp samples."""
        return self._samples

    @property
    def play_count(self) -> int:
        return self._plays
