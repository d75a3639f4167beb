"""
Command-line entrypoint for SPH fluid simulations.

Workflow:
1. Load and validate the configuration file
2. Spawn particles uniformly inside the spawn volume
3. Step the fluid, writing HDF5 snapshots at a fixed step interval
4. Optionally render the final state to a PNG

Usage:
    sph-fluid examples/simConfig.json
    sph-fluid examples/simConfig.json --steps 500 --dt 0.005 --mode physics
    python -m sph_fluid --help
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from sph_fluid.config import ConfigurationError, load_config
from sph_fluid.core import ExecutionMode, FluidSimulation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sph-fluid",
        description="Run an SPH fluid simulation in a reflecting box",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("config", type=str,
                        help="Configuration file (.json, .yaml or .yml)")

    # Run parameters
    parser.add_argument("--steps", "-n", type=int, default=100,
                        help="Number of timesteps")
    parser.add_argument("--dt", type=float, default=0.01,
                        help="Timestep")
    parser.add_argument("--output-dir", "-o", type=str, default="output",
                        help="Output directory for snapshots")
    parser.add_argument("--snapshot-every", type=int, default=10,
                        help="Write a snapshot every N steps (0 disables snapshots)")

    # Overrides
    parser.add_argument("--mode", choices=[mode.value for mode in ExecutionMode], default=None,
                        help="Override the configured execution mode")
    parser.add_argument("--particles", type=int, default=None,
                        help="Override the configured particle count")
    parser.add_argument("--seed", type=int, default=None,
                        help="Override the configured random seed")

    # Misc
    parser.add_argument("--visualize", action="store_true",
                        help="Render the final state to <output-dir>/final_state.png")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress verbose output")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entrypoint."""
    args = build_parser().parse_args(argv)

    if args.steps < 0:
        print("Error: --steps must be non-negative", file=sys.stderr)
        return 2
    if args.snapshot_every < 0:
        print("Error: --snapshot-every must be non-negative", file=sys.stderr)
        return 2

    overrides = {'verbose': not args.quiet}
    if args.mode is not None:
        overrides['cuda_mode'] = args.mode
    if args.particles is not None:
        overrides['num_particles'] = args.particles
    if args.seed is not None:
        overrides['random_seed'] = args.seed

    try:
        constants = load_config(args.config, **overrides)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    output_dir = Path(args.output_dir)

    if not args.quiet:
        print("=" * 70)
        print("SPH fluid simulation")
        print("=" * 70)

    with FluidSimulation(constants) as sim:
        if not args.quiet:
            sim.log_configuration()
            print()

        sim.spawn_particles()

        def on_step(s: FluidSimulation) -> None:
            if args.snapshot_every and s.state.step % args.snapshot_every == 0:
                s.write_snapshot(output_dir)

        if args.snapshot_every:
            sim.write_snapshot(output_dir)
        sim.run(args.steps, args.dt, callback=on_step)

        if args.visualize:
            import matplotlib
            matplotlib.use("Agg")
            from sph_fluid.visualization import quick_plot

            output_dir.mkdir(parents=True, exist_ok=True)
            figure_path = output_dir / "final_state.png"
            with sim.particle_view() as particles:
                quick_plot(
                    particles.positions,
                    particles.density,
                    bounds=(constants.bounds_min, constants.bounds_max),
                    title=f"SPH fluid at t={sim.state.time:.2f} ({particles.n_particles} particles)",
                    save_path=str(figure_path),
                )
            if not args.quiet:
                print(f"Saved {figure_path}")

        if not args.quiet:
            print("\n" + "=" * 70)
            print("Simulation complete!")
            print(f"Steps: {sim.state.step}, t = {sim.state.time:.4f}")
            print(f"Output directory: {output_dir}")
            print(f"Snapshots: {sim.state.snapshot_count}")
            print("=" * 70)

    return 0


if __name__ == "__main__":
    sys.exit(main())
