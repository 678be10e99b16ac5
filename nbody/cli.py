"""
Command-line interface utilities for N-body simulations.
Provides shared argument parsing for run_simulation.py and the validation script.
"""

import argparse
from .constants import SimParams, TreeParams
from .particles import INITIALIZERS


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add simulation arguments shared across all CLI scripts.

    Arguments added:
    - --particles: Number of simulation particles
    - --g: Gravitational constant
    - --e: Softening term
    - --dt: Timestep
    - --theta: Barnes-Hut opening angle
    - --method: Force kernel (auto, naive, tree)
    - --init: Initial conditions (uniform, disc)
    - --steps: Number of timesteps
    - --save-interval: Snapshot interval
    - --seed: Random seed
    - --no-fold-dt: Store pure accelerations instead of dt-scaled forces
    """
    # Physics parameters
    parser.add_argument('--particles', type=int, default=40,
                        help='Number of simulation particles')
    parser.add_argument('--g', type=float, default=1e-6,
                        help='Gravitational constant')
    parser.add_argument('--e', type=float, default=1e-4,
                        help='Softening term added to r^3 (must be positive)')
    parser.add_argument('--dt', type=float, default=0.016,
                        help='Timestep')
    parser.add_argument('--no-fold-dt', action='store_true',
                        help='Store pure accelerations instead of force sums scaled by dt')

    # Kernel selection
    parser.add_argument('--method', type=str, default='auto', choices=['auto', 'naive', 'tree'],
                        help='Force kernel (auto uses the tree kernel for N >= 1000)')
    parser.add_argument('--theta', type=float, default=0.75,
                        help='Barnes-Hut opening angle (0 = exact)')

    # Run setup
    parser.add_argument('--init', type=str, default='uniform', choices=sorted(INITIALIZERS),
                        help='Initial particle distribution')
    parser.add_argument('--steps', type=int, default=10,
                        help='Number of simulation timesteps')
    parser.add_argument('--save-interval', type=int, default=1,
                        help='Save a snapshot every N steps')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for reproducibility')


def parse_arguments(description: str = 'Run N-Body Simulation',
                    add_output_dir: bool = True, argv=None) -> argparse.Namespace:
    """
    Create parser with common arguments and parse command line.

    Args:
        description: Help text description for the parser
        add_output_dir: If True, adds --output-dir argument
        argv: Arguments to parse (default: sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    if add_output_dir:
        parser.add_argument('--output-dir', type=str, default='./results',
                            help='Output directory for simulation results')

    add_common_arguments(parser)

    return parser.parse_args(argv)


def args_to_sim_params(args: argparse.Namespace) -> SimParams:
    """Convert parsed arguments to SimParams."""
    return SimParams(
        particle_count=args.particles,
        g=args.g,
        e=args.e,
        dt=args.dt,
        fold_dt=not args.no_fold_dt
    )


def args_to_tree_params(args: argparse.Namespace) -> TreeParams:
    """Convert parsed arguments to TreeParams (root extent is set by each tree build)."""
    return TreeParams(theta=args.theta)
