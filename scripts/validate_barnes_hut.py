"""
Validation script to compare naive and Barnes-Hut force kernels.

Generates detailed comparison including:
- Per-particle acceleration errors for several opening angles
- Timing of one kernel step for growing particle counts
"""

import sys
import os
import time
import numpy as np

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from nbody.constants import SimParams, TreeParams
from nbody.particles import uniform_init
from nbody.numba_direct import NaiveSolver
from nbody.barnes_hut_numba import BarnesHutSolver
from nbody.integrator import LeapfrogIntegrator
from nbody.analysis import compare_accelerations


def compare_force_fields(N, theta, seed=42):
    """
    Compare naive vs Barnes-Hut accelerations at the same positions.

    Args:
        N: Number of particles
        theta: Barnes-Hut opening angle
        seed: Random seed

    Returns:
        Dictionary with error statistics and timing
    """
    print(f"\n{'='*70}")
    print(f"Force Field Comparison: N={N}, theta={theta}")
    print(f"{'='*70}")

    np.random.seed(seed)
    sim_params = SimParams(particle_count=N, g=1.0, e=1e-3, dt=0.01, fold_dt=False)
    particles = uniform_init(sim_params)
    positions = particles.get_positions()
    masses = particles.get_masses()

    naive = NaiveSolver()
    tree = BarnesHutSolver(TreeParams(theta=theta))

    # Compile outside the timed region
    naive.calculate_all_accelerations(positions[:2], masses[:2], sim_params)
    tree.calculate_all_accelerations(positions[:2], masses[:2], sim_params)

    t0 = time.perf_counter()
    a_naive = naive.calculate_all_accelerations(positions, masses, sim_params)
    t_naive = time.perf_counter() - t0
    print(f"  Naive kernel:      {t_naive*1000:.2f} ms")

    t0 = time.perf_counter()
    a_tree = tree.calculate_all_accelerations(positions, masses, sim_params)
    t_tree = time.perf_counter() - t0
    print(f"  Barnes-Hut kernel: {t_tree*1000:.2f} ms (tree: {tree.tree.n_nodes} nodes, depth {tree.tree.depth})")

    speedup = t_naive / t_tree if t_tree > 0 else float('inf')
    print(f"  Speedup: {speedup:.1f}x")

    stats = compare_accelerations(a_naive, a_tree)
    print(f"\nAccuracy Statistics:")
    print(f"  RMS relative error:    {stats['rms_error']:.4f} ({stats['rms_error']*100:.2f}%)")
    print(f"  Max relative error:    {stats['max_error']:.4f} ({stats['max_error']*100:.2f}%)")

    return {
        'N': N,
        'theta': theta,
        'rms_error': stats['rms_error'],
        'max_error': stats['max_error'],
        't_naive': t_naive,
        't_tree': t_tree,
        'speedup': speedup,
    }


def benchmark_steps(sizes, theta=0.75, n_steps=3, seed=42):
    """Mean wall time of one full integration step for each kernel and size."""
    results = []
    for N in sizes:
        for method in ('naive', 'tree'):
            np.random.seed(seed)
            sim_params = SimParams(particle_count=N)
            particles = uniform_init(sim_params)
            integrator = LeapfrogIntegrator(particles, sim_params, TreeParams(theta=theta),
                                            force_method=method, verbose=False)
            # First step includes JIT compilation
            integrator.step()
            integrator.step_durations.clear()
            for _ in range(n_steps):
                integrator.step()
            mean_us = 1e6 * np.mean(integrator.step_durations)
            print(f"  {method:5s} N={N:6d}: {mean_us:10.0f} µs/step")
            results.append({'N': N, 'method': method, 'step_us': mean_us})
    return results


if __name__ == "__main__":
    for theta in (0.0, 0.3, 0.5, 0.75, 1.0):
        compare_force_fields(N=2000, theta=theta)

    print(f"\n{'='*70}")
    print("Step Timing")
    print(f"{'='*70}")
    benchmark_steps([1024, 4096, 16384])
