#!/usr/bin/env python3
"""
chirpsonar - Acoustic Chirp Sonar

Detects motion toward or away from the laptop using a chirp echo and its
Doppler shift. Uses only the built-in speaker and microphone.

Usage:
    python main.py run             # Calibrate, then report motion
    python main.py chirp           # Write the chirp to a WAV file
    python main.py diagnose        # Check audio hardware and chirp echo

Author: chirpsonar Project
License: MIT
"""

import argparse
import sys
import time

from chirpsonar import Config
from chirpsonar.config import PRESETS
from chirpsonar.waveform import synthesize_chirp, write_wav


def build_config(args) -> Config:
    """Preset plus any explicit overrides from the command line."""
    config = Config.from_preset(args.preset).with_overrides(
        chirp_start_hz=args.start_hz,
        chirp_end_hz=args.end_hz,
        chirp_duration_sec=args.duration,
        chirp_gain=args.gain,
        sample_rate=args.sample_rate,
        ping_interval_ms=args.ping_ms,
        analysis_interval_ms=args.analysis_ms,
        motion_threshold_hz=args.motion_hz,
        peak_magnitude_threshold_db=args.peak_db,
        calibration_cycles=args.cycles,
        debug=args.debug or None,
    )
    return config.validate()


def cmd_run(args, config: Config):
    """Sonar mode."""
    from chirpsonar.audio_rx import AudioRx
    from chirpsonar.audio_tx import ChirpPlayer
    from chirpsonar.errors import CaptureUnavailable
    from chirpsonar.session import SessionState, SonarSession
    from chirpsonar.ui import ConsoleUI

    print("\n" + "=" * 60)
    print("  chirpsonar - Motion Detection")
    print("=" * 60)
    print(f"\nChirp: {config.chirp_start_hz:,.0f}-{config.chirp_end_hz:,.0f} Hz "
          f"every {config.ping_interval_ms} ms")
    print(f"Thresholds: {config.motion_threshold_hz:.0f} Hz shift, "
          f"{config.peak_magnitude_threshold_db:.0f} dB echo")
    print("\nKeep still during calibration.")
    print("Press Ctrl+C to exit.\n")

    ui = ConsoleUI(config)
    session = SonarSession(config, AudioRx(config), ChirpPlayer.from_config(config))

    try:
        session.start()
    except CaptureUnavailable:
        print("\nMicrophone access denied or unavailable. "
              "Allow microphone access and try again.")
        sys.exit(1)

    try:
        while True:
            time.sleep(config.ui_update_interval_ms / 1000.0)

            if session.state == SessionState.IDLE:
                if session.last_error is not None:
                    ui.print_failure(session.last_error)
                    sys.exit(1)
                break

            ui.update(session.state, session.latest_verdict)

    except KeyboardInterrupt:
        print("\n\nStopping...")
    finally:
        session.stop()


def cmd_chirp(args, config: Config):
    """Write the configured chirp to a WAV file."""
    spec = config.chirp_spec()
    path = write_wav(args.out, synthesize_chirp(spec), spec.sample_rate)
    print(f"✓ Wrote {spec.num_samples} samples "
          f"({spec.start_hz:.0f}-{spec.end_hz:.0f} Hz) to {path}")


def cmd_diagnose(args, config: Config):
    """Hardware diagnostic."""
    from chirpsonar.diagnostic import run_all_diagnostics

    ok = run_all_diagnostics(config)
    sys.exit(0 if ok else 1)


def main():
    parser = argparse.ArgumentParser(
        description="chirpsonar - Acoustic Chirp Sonar",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py run                          # Default (audible) preset
    python main.py run --preset near_ultrasonic # Quieter band
    python main.py run --motion-hz 15 --debug   # More sensitive, with trace
    python main.py chirp --out chirp.wav        # Export the chirp
    python main.py diagnose                     # Check hardware
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    # Common arguments
    def add_common_args(p):
        p.add_argument('--preset', choices=sorted(PRESETS), default='audible',
                       help='Tuning preset (default: audible)')
        p.add_argument('--start-hz', type=float, default=None,
                       help='Chirp start frequency in Hz')
        p.add_argument('--end-hz', type=float, default=None,
                       help='Chirp end frequency in Hz')
        p.add_argument('--duration', type=float, default=None,
                       help='Chirp duration in seconds (default: 0.05)')
        p.add_argument('--gain', type=float, default=None,
                       help='Chirp gain 0-1 (default: 1.0)')
        p.add_argument('--sample-rate', type=int, default=None,
                       help='Sample rate in Hz (default: 48000)')
        p.add_argument('--ping-ms', type=int, default=None,
                       help='Chirp interval in ms (default: 400)')
        p.add_argument('--analysis-ms', type=int, default=None,
                       help='Analysis interval in ms (default: 100)')
        p.add_argument('--motion-hz', type=float, default=None,
                       help='Minimum Doppler shift in Hz')
        p.add_argument('--peak-db', type=float, default=None,
                       help='Minimum echo magnitude in dB')
        p.add_argument('--cycles', type=int, default=None,
                       help='Calibration cycles (default: 10)')
        p.add_argument('--debug', action='store_true',
                       help='Print peak and shift on every analysis tick')

    # Run command
    p_run = subparsers.add_parser('run', help='Calibrate and detect motion')
    add_common_args(p_run)

    # Chirp command
    p_chirp = subparsers.add_parser('chirp', help='Write the chirp to a WAV file')
    add_common_args(p_chirp)
    p_chirp.add_argument('--out', type=str, default='chirp.wav',
                         help='Output path (default: chirp.wav)')

    # Diagnose command
    p_diag = subparsers.add_parser('diagnose', help='Check audio hardware')
    add_common_args(p_diag)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    # Dispatch
    commands = {
        'run': cmd_run,
        'chirp': cmd_chirp,
        'diagnose': cmd_diagnose,
    }

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(2)

    commands[args.command](args, config)


if __name__ == "__main__":
    main()
