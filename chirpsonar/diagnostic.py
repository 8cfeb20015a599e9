#!/usr/bin/env python3
"""
chirpsonar Diagnostic Tool

Quick checks to verify audio hardware and that the chirp echo is
audible to the microphone. Run this first to make sure everything works.
"""

import numpy as np

from .config import Config
from .dsp import SpectralAnalyser, find_peak
from .waveform import synthesize_chirp


def check_imports():
    """Check all required imports."""
    print("=" * 50)
    print("1. CHECKING IMPORTS")
    print("=" * 50)

    checks = []

    try:
        import sounddevice  # noqa: F401
        checks.append(("sounddevice", "✅"))
    except (ImportError, OSError) as e:
        checks.append(("sounddevice", f"❌ {e}"))

    try:
        import scipy  # noqa: F401
        checks.append(("scipy", "✅"))
    except ImportError as e:
        checks.append(("scipy", f"❌ {e}"))

    for name, status in checks:
        print(f"  {name}: {status}")

    return all("✅" in s for _, s in checks)


def check_audio_devices():
    """List available audio devices."""
    print("\n" + "=" * 50)
    print("2. AUDIO DEVICES")
    print("=" * 50)

    import sounddevice as sd

    defaults = sd.default.device
    print(f"\n  Default input:  {defaults[0]}")
    print(f"  Default output: {defaults[1]}")

    print("\nAll devices:")
    for i, d in enumerate(sd.query_devices()):
        marker = ""
        if i == defaults[0]:
            marker += " [DEFAULT INPUT]"
        if i == defaults[1]:
            marker += " [DEFAULT OUTPUT]"

        channels = f"in={d['max_input_channels']}, out={d['max_output_channels']}"
        print(f"  [{i}] {d['name'][:40]:<40} ({channels}){marker}")

    return True


def check_sample_rate(config: Config):
    """Check the configured sample rate on both directions."""
    print("\n" + "=" * 50)
    print("3. SAMPLE RATE SUPPORT")
    print("=" * 50)

    import sounddevice as sd

    try:
        sd.check_input_settings(samplerate=config.sample_rate)
        sd.check_output_settings(samplerate=config.sample_rate)
        print(f"  {config.sample_rate} Hz: ✅ Supported")
        return True
    except sd.PortAudioError as e:
        print(f"  {config.sample_rate} Hz: ❌ {e}")
        return False


def test_chirp_loopback(config: Config):
    """
    Play one chirp while recording and look for it in the chirp band.

    Returns:
        (ok, peak) where peak is the PeakEstimate seen in the recording
    """
    print("\n" + "=" * 50)
    print("4. CHIRP LOOPBACK (Play + Record)")
    print("=" * 50)

    import sounddevice as sd

    chirp = synthesize_chirp(config.chirp_spec())
    # Leave room for the echo after the chirp ends
    tail = np.zeros(int(config.settle_sec * config.sample_rate), dtype=np.float32)
    tx = np.concatenate([chirp, tail])

    band = config.chirp_band
    print(f"  Playing {band[0]:.0f}-{band[1]:.0f} Hz chirp while recording...")

    try:
        recording = sd.playrec(tx, samplerate=config.sample_rate,
                               channels=1, dtype=np.float32)
        sd.wait()
    except sd.PortAudioError as e:
        print(f"  ❌ Error: {e}")
        return False, None

    # Analyse the window where the chirp is loudest, unsmoothed
    analyser = SpectralAnalyser(config.with_overrides(smoothing_time_constant=0.0))
    end = min(len(recording), len(chirp) + config.fft_size // 2)
    frame = analyser.process(recording[:end, 0])
    peak = find_peak(frame, *band)

    gate = config.peak_magnitude_threshold_db
    print(f"  Band peak: {peak.frequency_hz:.0f} Hz @ {peak.magnitude_db:.1f} dB "
          f"(gate {gate:.0f} dB)")

    ok = peak.magnitude_db > gate
    if ok:
        print("  ✅ Echo above gate - ready for calibration")
    else:
        print("  ⚠️  Echo below gate - raise the gain or lower --peak-db")
    return ok, peak


def run_all_diagnostics(config: Config):
    """Run all diagnostic tests."""
    print("\n" + "🔊 " * 20)
    print("   CHIRPSONAR DIAGNOSTIC")
    print("🔊 " * 20)

    results = [("Imports", check_imports())]
    if results[0][1]:
        results.append(("Audio Devices", check_audio_devices()))
        results.append(("Sample Rate", check_sample_rate(config)))
        loopback_ok, _ = test_chirp_loopback(config)
        results.append(("Chirp Loopback", loopback_ok))

    print("\n" + "=" * 50)
    print("SUMMARY")
    print("=" * 50)

    for name, ok in results:
        print(f"  {name}: {'✅' if ok else '❌'}")

    all_ok = all(ok for _, ok in results)
    print("\n" + "-" * 50)
    if all_ok:
        print("🎉 All tests passed! Run: python main.py run")
    else:
        print("⚠️  Some tests failed. Check errors above.")

    return all_ok


if __name__ == "__main__":
    run_all_diagnostics(Config())
