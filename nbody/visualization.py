"""
Visualization Tools
Plots of particle snapshots and conserved-quantity histories
"""

import os
import numpy as np
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  (registers the 3d projection)


def plot_particle_distribution_3d(snapshot, save_path=None, point_size=2.0):
    """
    Plot 3D particle distribution at a given snapshot

    Parameters:
    -----------
    snapshot : dict
        Snapshot containing 'positions' and 'time'
    save_path : str, optional
        Path to save figure
    """
    fig = plt.figure(figsize=(10, 10))
    ax = fig.add_subplot(111, projection='3d')

    positions = snapshot['positions']
    ax.scatter(positions[:, 0], positions[:, 1], positions[:, 2],
               c='black', marker='o', s=point_size, alpha=0.6)

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_zlabel('Z')
    ax.set_title(f"t = {snapshot['time']:.4g} (step {snapshot.get('step', 0)})",
                 fontsize=14, fontweight='bold')

    # Equal aspect so discs look like discs
    finite = positions[np.all(np.isfinite(positions), axis=1)]
    if len(finite) > 0:
        center = (finite.max(axis=0) + finite.min(axis=0)) / 2
        half = max(np.max(finite.max(axis=0) - finite.min(axis=0)) / 2, 1e-12)
        ax.set_xlim(center[0] - half, center[0] + half)
        ax.set_ylim(center[1] - half, center[1] + half)
        ax.set_zlim(center[2] - half, center[2] + half)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {save_path}")

    return fig, ax


def plot_conservation_history(time_history, energy_history, momentum_history, save_path=None):
    """Plot relative energy drift and momentum magnitude over time."""
    t = np.asarray(time_history)
    energy = np.asarray(energy_history)
    momentum = np.linalg.norm(np.asarray(momentum_history).reshape(-1, 3), axis=1)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    if len(energy) > 0 and energy[0] != 0:
        ax1.plot(t, (energy - energy[0]) / abs(energy[0]), 'b-', linewidth=2)
        ax1.set_ylabel('Relative energy drift')
    else:
        ax1.plot(t, energy, 'b-', linewidth=2)
        ax1.set_ylabel('Total energy')
    ax1.grid(True, alpha=0.3)

    ax2.plot(t, momentum, 'r-', linewidth=2)
    ax2.set_ylabel('|Total momentum|')
    ax2.set_xlabel('Time')
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {save_path}")

    return fig


def generate_output_filename(base_name, sim_params, force_method, extension='png', output_dir='.'):
    """
    Generate a filename that encodes the run configuration.

    e.g. 'nbody_tree_N1000_dt0.016.png'
    """
    filename = f"{base_name}_{force_method}_N{sim_params.particle_count}_dt{sim_params.dt:g}.{extension}"
    return os.path.join(output_dir, filename)
