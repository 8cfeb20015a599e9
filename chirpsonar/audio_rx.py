"""
Audio reception module - captures microphone input.

Keeps a short history of samples and turns the most recent window into a
smoothed dB spectrum on demand.
"""

import numpy as np
import threading
from collections import deque
from typing import Optional

try:
    import sounddevice as sd
except ImportError:
    raise ImportError("sounddevice required: pip install sounddevice")

from .config import Config
from .dsp import SpectralAnalyser, SpectralFrame
from .errors import CaptureUnavailable


class AudioRx:
    """
    Microphone input receiver.

    Captures audio from the system microphone into a circular buffer and
    serves SpectralFrames computed from the latest fft_size samples.
    """

    def __init__(self, config: Config, device=None):
        """
        Initialize receiver.

        Args:
            config: chirpsonar configuration
            device: Optional sounddevice input device (index or name)
        """
        self.config = config
        self.device = device
        self._stream: Optional[sd.InputStream] = None
        self._running: bool = False

        # Circular buffer for audio samples
        buffer_size = int(config.buffer_duration_sec * config.sample_rate)
        self._buffer = deque(maxlen=buffer_size)
        self._lock = threading.Lock()

        self._analyser = SpectralAnalyser(config)

    def _input_callback(self, indata: np.ndarray, frames: int,
                        time_info, status):
        """Sounddevice input callback."""
        if status and 'overflow' not in str(status):
            print(f"[RX] Input status: {status}")

        samples = indata[:, 0].copy()
        with self._lock:
            self._buffer.extend(samples)

    def start(self):
        """
        Start recording from microphone.

        Raises:
            CaptureUnavailable: the input stream could not be opened
        """
        if self._running:
            return

        print(f"[RX] Starting microphone capture at {self.config.sample_rate} Hz")

        with self._lock:
            self._buffer.clear()
        self._analyser.reset()

        stream = None
        try:
            stream = sd.InputStream(
                samplerate=self.config.sample_rate,
                channels=1,
                dtype=np.float32,
                callback=self._input_callback,
                device=self.device,
            )
            stream.start()
        except (sd.PortAudioError, OSError, ValueError) as e:
            if stream is not None:
                stream.close()
            self._stream = None
            raise CaptureUnavailable(f"Cannot open microphone: {e}") from e

        self._stream = stream
        self._running = True
        print("[RX] Recording started")

    def stop(self):
        """Stop recording."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._running:
            print("[RX] Recording stopped")
        self._running = False

    def get_buffer(self, num_samples: int) -> np.ndarray:
        """
        Get the most recent audio samples.

        Zero-padded at the front when not enough audio has arrived yet.
        """
        with self._lock:
            buffer_list = list(self._buffer)

        if len(buffer_list) < num_samples:
            padding = np.zeros(num_samples - len(buffer_list), dtype=np.float32)
            return np.concatenate([padding, np.asarray(buffer_list, dtype=np.float32)])

        return np.array(buffer_list[-num_samples:], dtype=np.float32)

    def read_frame(self) -> SpectralFrame:
        """Smoothed dB spectrum of the latest fft_size samples."""
        return self._analyser.process(self.get_buffer(self.config.fft_size))

    @property
    def is_running(self) -> bool:
        """Check if receiver is active."""
        return self._running

    @property
    def buffer_level(self) -> float:
        """Current buffer fill level (0-1)."""
        with self._lock:
            return len(self._buffer) / self._buffer.maxlen

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
