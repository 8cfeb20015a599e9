"""
chirpsonar - Acoustic Chirp Sonar for laptops

Uses the speaker to emit a periodic frequency sweep and the microphone to
pick up its echo. Reports whether something in front of the device moves
toward or away from it from the Doppler shift of the echo peak.
"""

__version__ = "0.1.0"
__author__ = "chirpsonar Project"

from .config import Config
