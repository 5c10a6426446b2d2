#!/usr/bin/env python3
"""
Command-line runner for avatar position disturbance sessions.

Runs a position noise disturbance on a scripted stepping-foot tracker,
prints a summary of the injected offsets and optionally saves telemetry
(JSON) and plots (PNG).

Usage:
    python -m avatar_disturbance.runner --duration 20 --seed 7 --output run.json
    python -m avatar_disturbance.runner --config noise.json --plot offsets.png
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from avatar_disturbance.core.analysis.offset_analyzer import analyze_offset_trace
from avatar_disturbance.core.coordinate_frames.transforms import make_stepping_foot
from avatar_disturbance.core.disturbances.position_noise import PositionNoiseConfig
from avatar_disturbance.core.simulation.session_runner import (
    DisturbanceSessionRunner,
    SessionConfig
)


def load_noise_config(config_path: Optional[str]) -> Dict:
    """Load PositionNoiseConfig overrides from a JSON file."""
    if config_path is None:
        return {}

    path = Path(config_path)
    if not path.exists():
        print(f"Configuration Error: Config file not found at {path}")
        sys.exit(1)

    try:
        with open(path, 'r') as f:
            raw = json.load(f)
    except json.JSONDecodeError:
        print(f"Error: Failed to parse JSON config at {path}")
        sys.exit(1)

    known = PositionNoiseConfig.__dataclass_fields__
    unknown = sorted(set(raw) - set(known))
    if unknown:
        print(f"Warning: ignoring unknown config keys {unknown}")
    return {k: v for k, v in raw.items() if k in known}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Avatar Disturbance - multisine position noise on a tracked foot",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with position noise settings")
    parser.add_argument("--duration", type=float, default=10.0,
                        help="Session duration in seconds")
    parser.add_argument("--dt", type=float, default=0.02,
                        help="Fixed simulation step in seconds")
    parser.add_argument("--seed", type=int, default=None,
                        help="Top-level seed (time-derived if omitted)")
    parser.add_argument("--intensity", type=float, default=None,
                        help="Disturbance intensity in [0, 1]")
    parser.add_argument("--max-distance", type=float, default=None,
                        help="Maximum offset from the tracker in meters")
    parser.add_argument("--no-ground-pause", action="store_true",
                        help="Keep the noise running while the foot is grounded")
    parser.add_argument("--output", type=str, default=None,
                        help="Write session telemetry to this JSON file")
    parser.add_argument("--plot", type=str, default=None,
                        help="Save an offset timeline plot to this image file")
    parser.add_argument("--verbose", action="store_true",
                        help="Print INFO messages")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    print("=" * 60)
    print("Avatar Position Disturbance Session")
    print("=" * 60)

    noise_kwargs = load_noise_config(args.config)
    if args.seed is not None:
        noise_kwargs['seed'] = args.seed
    if args.intensity is not None:
        noise_kwargs['intensity'] = args.intensity
    if args.max_distance is not None:
        noise_kwargs['max_distance'] = args.max_distance
    if args.no_ground_pause:
        noise_kwargs['pause_noise_on_ground'] = False
    noise_kwargs['verbose'] = args.verbose

    try:
        noise_config = PositionNoiseConfig(**noise_kwargs)
        session_config = SessionConfig(dt=args.dt, duration=args.duration,
                                       verbose=args.verbose)

        with DisturbanceSessionRunner(make_stepping_foot(), session_config) as runner:
            controller = runner.add_position_noise(noise_config)
            log = runner.run()
            seed = controller.seed

        metrics = analyze_offset_trace(
            log.offsets[0], dt=args.dt,
            max_distance=noise_config.max_distance,
            intensity=noise_config.intensity,
            noise_scale=noise_config.noise_scale
        )

        print("\n" + "=" * 30)
        print(" DISTURBANCE SUMMARY")
        print("=" * 30)
        print(f"Seed:               {seed}")
        print(f"RMS offset (mm):    {', '.join(f'{v*1e3:.2f}' for v in metrics.rms_offset)}")
        print(f"Peak offset (mm):   {', '.join(f'{v*1e3:.2f}' for v in metrics.peak_offset)}")
        print(f"Inside envelope:    {metrics.envelope_fraction*100:.1f}%")
        print(f"Grounded samples:   {log.grounded[0].mean()*100:.1f}%")
        print("=" * 30 + "\n")

        if args.output:
            path = log.save_json(args.output)
            print(f"Telemetry written to {path}")

        if args.plot:
            import matplotlib
            matplotlib.use('Agg')
            from avatar_disturbance.core.visualization.offset_plots import OffsetPlotter

            fig, _ = OffsetPlotter().plot_offsets(log.to_dataframe())
            fig.savefig(args.plot, dpi=150)
            print(f"Plot written to {args.plot}")

    except KeyboardInterrupt:
        print("\nSession interrupted by user.")
        return 0
    except ValueError as e:
        print(f"\nConfiguration Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
