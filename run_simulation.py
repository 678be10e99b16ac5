#!/usr/bin/env python3
"""
N-Body Simulation
Main script to run a naive or Barnes-Hut N-body simulation with configurable parameters.
"""

import os
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from nbody.cli import parse_arguments, args_to_sim_params, args_to_tree_params
from nbody.simulation import NBodySimulation
from nbody.visualization import (
    generate_output_filename,
    plot_particle_distribution_3d,
    plot_conservation_history
)


def run_simulation(args):
    """Run one simulation from parsed CLI arguments and write its outputs."""
    sim_params = args_to_sim_params(args)
    tree_params = args_to_tree_params(args)

    sim = NBodySimulation(sim_params, tree_params, force_method=args.method,
                          init=args.init, seed=args.seed)
    sim.run(n_steps=args.steps, save_interval=args.save_interval)

    os.makedirs(args.output_dir, exist_ok=True)
    method = sim.integrator.active_force_method

    sim.save(generate_output_filename('nbody', sim_params, method, 'pkl', args.output_dir))

    fig, _ = plot_particle_distribution_3d(
        sim.snapshots[-1],
        save_path=generate_output_filename('nbody_final', sim_params, method, 'png', args.output_dir)
    )
    plt.close(fig)

    fig = plot_conservation_history(
        sim.integrator.time_history,
        sim.integrator.energy_history,
        sim.integrator.momentum_history,
        save_path=generate_output_filename('nbody_conservation', sim_params, method, 'png', args.output_dir)
    )
    plt.close(fig)

    return sim


if __name__ == "__main__":
    args = parse_arguments()

    print(f"Output directory: {os.path.abspath(args.output_dir)}\n")

    sim = run_simulation(args)

    energy = sim.integrator.energy_history
    print("\n" + "="*70)
    print("SUMMARY")
    print("="*70)
    print(f"Kernel:           {sim.integrator.active_force_method}")
    print(f"Particles:        {len(sim.particles)}")
    print(f"Steps:            {sim.particles.step_num}")
    if len(energy) > 1 and energy[0] != 0:
        print(f"Energy drift:     {(energy[-1] - energy[0]) / abs(energy[0]):+.3e}")
    print(f"Final momentum:   {sim.integrator.total_momentum()}")
