"""
Main Simulation Runner
Creates initial conditions, drives the integrator and stores results
"""

from typing import Optional, List, Dict
import numpy as np
import pickle

from .constants import SimParams, TreeParams
from .particles import ParticleSystem, create_particles
from .integrator import LeapfrogIntegrator
from .analysis import detect_non_finite_particles, detect_runaway_particles


class NBodySimulation:
    """Main class for running N-body simulations"""

    def __init__(self, sim_params: SimParams, tree_params: Optional[TreeParams] = None,
                 force_method: str = 'auto', init: str = 'uniform', seed: int = 42,
                 masses: Optional[np.ndarray] = None,
                 particle_system: Optional[ParticleSystem] = None, verbose: bool = True):
        """
        Initialize simulation.

        Args:
            init: Initial conditions, 'uniform' or 'disc' (ignored when
                  particle_system is given)
            masses: Per-particle masses; None for uniform unit masses
            particle_system: Prepared particles to use instead of an initializer
        """
        self.sim_params = sim_params
        self.tree_params = tree_params if tree_params is not None else TreeParams()
        self.seed = seed
        self.init = init
        self.verbose = verbose
        np.random.seed(self.seed)

        if particle_system is None:
            if self.verbose:
                print(f"Initializing {sim_params.particle_count} particles ({init})...")
            particle_system = create_particles(init, sim_params, masses)
        self.particles = particle_system

        self.integrator = LeapfrogIntegrator(
            self.particles,
            self.sim_params,
            tree_params=self.tree_params,
            force_method=force_method,
            verbose=verbose
        )
        self.integrator.prime_accelerations()

        # Simulation results
        self.snapshots = []

    def run(self, n_steps: int = 100, save_interval: int = 10) -> List[Dict]:
        """Run the simulation and return snapshots."""
        if n_steps < 0:
            raise ValueError(f"n_steps must be >= 0, got {n_steps}")
        if save_interval < 1:
            raise ValueError(f"save_interval must be >= 1, got {save_interval}")

        if self.verbose:
            print("\n" + "="*60)
            print("RUNNING N-BODY SIMULATION")
            print("="*60)
            print(f"Kernel: {self.integrator.active_force_method}")
            print(self.sim_params)
            print("="*60 + "\n")

        snapshots = self.integrator.evolve(n_steps, save_interval)
        # Continue an earlier run without duplicating its last snapshot
        if self.snapshots and snapshots and snapshots[0]['step'] == self.snapshots[-1]['step']:
            snapshots = snapshots[1:]
        self.snapshots.extend(snapshots)

        self.check_state()

        if self.verbose and self.integrator.step_durations:
            mean_us = 1e6 * np.mean(self.integrator.step_durations)
            print(f"[Simulation] Mean step duration: {mean_us:.0f} µs")
            print("\nSimulation complete!")
        return self.snapshots

    def check_state(self) -> Dict:
        """
        Report particles whose state is non-finite or flung out of the system.

        Returns dict with 'non_finite' (indices) and 'runaway' (detection dict).
        """
        src = self.particles.source
        bad = detect_non_finite_particles(src.positions, src.velocities, src.accelerations)
        finite = np.ones(len(src), dtype=bool)
        finite[bad] = False
        runaway = detect_runaway_particles(src.positions[finite], src.masses[finite])

        if self.verbose:
            if len(bad) > 0:
                print(f"[Simulation] WARNING: {len(bad)} particles have non-finite state "
                      f"(softening e={self.sim_params.e:.3e} may be too small)")
            if runaway['detected']:
                print(f"[Simulation] WARNING: runaway particles, max/rms distance ratio "
                      f"{runaway['ratio']:.1f}")

        return {'non_finite': bad, 'runaway': runaway}

    def save(self, filename: str) -> None:
        """Save simulation results."""
        data = {
            'snapshots': self.snapshots,
            'sim_params': vars(self.sim_params),
            'tree_params': vars(self.tree_params),
            'force_method': self.integrator.active_force_method,
            'init': self.init,
            'seed': self.seed,
            'n_particles': len(self.particles),
            'time_history': self.integrator.time_history,
            'energy_history': self.integrator.energy_history,
            'momentum_history': self.integrator.momentum_history,
            'step_durations': self.integrator.step_durations,
        }

        with open(filename, 'wb') as f:
            pickle.dump(data, f)

        if self.verbose:
            print(f"\nSaved simulation to {filename}")

    @staticmethod
    def load(filename: str) -> Dict:
        """Load simulation results."""
        with open(filename, 'rb') as f:
            data = pickle.load(f)
        return data
