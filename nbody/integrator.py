"""
N-Body Integrator
Selects a force kernel, dispatches it once per step and swaps the particle buffers
"""

import time
from typing import Optional, List, Dict
import numpy as np
from tqdm import tqdm

from .constants import SimParams, TreeParams, WORK_GROUP_SIZE
from .particles import ParticleSystem
from .numba_direct import NaiveSolver
from .barnes_hut_numba import BarnesHutSolver
from . import analysis

FORCE_METHODS = ('auto', 'naive', 'tree')


class LeapfrogIntegrator:
    """
    Leapfrog (kick-drift-kick) integrator
    Second-order symplectic integrator, conserves energy well.

    The kick-drift-kick arithmetic itself runs inside the kernels; this class
    is the host side: it uploads parameters, rebuilds the hierarchy for the
    tree kernel, dispatches and swaps buffers.
    """

    def __init__(self, particle_system: ParticleSystem, sim_params: SimParams,
                 tree_params: Optional[TreeParams] = None, force_method: str = 'auto',
                 work_group_size: int = WORK_GROUP_SIZE, verbose: bool = True):
        """
        Initialize integrator.

        Args:
            force_method: 'auto' (tree for N>=1000), 'naive' for the O(N²)
                          kernel or 'tree' for the Barnes-Hut kernel
            tree_params: Opening angle and root extent (tree kernel only)
        """
        if force_method not in FORCE_METHODS:
            raise ValueError(f"Unknown force method '{force_method}', expected one of {FORCE_METHODS}")
        if sim_params.particle_count != len(particle_system):
            raise ValueError(f"particle_count is {sim_params.particle_count} but the system "
                             f"holds {len(particle_system)} particles")
        sim_params.validate()

        self.particles = particle_system
        self.sim_params = sim_params
        self.tree_params = tree_params if tree_params is not None else TreeParams()
        self.force_method = force_method
        self.verbose = verbose

        N = len(particle_system)
        if force_method == 'auto':
            self._active_force_method = 'tree' if N >= 1000 else 'naive'
        else:
            self._active_force_method = force_method

        if self._active_force_method == 'tree':
            self.tree_params.validate()
            self.solver = BarnesHutSolver(self.tree_params, work_group_size)
        else:
            self.solver = NaiveSolver(work_group_size)

        if self.verbose:
            print(f"[Integrator] Force kernel: {self._active_force_method} (N={N})")
            if self._active_force_method == 'tree':
                print(f"[Integrator] Opening angle theta: {self.tree_params.theta}")

        # History tracking
        self.time_history = []
        self.energy_history = []
        self.momentum_history = []
        self.step_durations = []

    @property
    def active_force_method(self) -> str:
        return self._active_force_method

    def calculate_accelerations(self, positions: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Accelerations at the given (default: current) positions, in stored units.
        """
        if positions is None:
            positions = self.particles.get_positions()
        return self.solver.calculate_all_accelerations(positions, self.particles.get_masses(),
                                                       self.sim_params)

    def prime_accelerations(self) -> None:
        """
        Evaluate accelerations at the current positions.

        The first half-kick of a step uses the acceleration stored from the
        previous step; priming gives the very first step a valid one.
        """
        if len(self.particles) == 0:
            return
        self.particles.set_accelerations(self.calculate_accelerations())

    def step(self) -> None:
        """Take one leapfrog timestep: dispatch from source into destination, then swap."""
        self.sim_params.validate()
        src = self.particles.source
        dst = self.particles.destination

        t0 = time.perf_counter()
        if self._active_force_method == 'tree' and len(src) > 0:
            # Hierarchy from the snapshot the kernel reads
            self.solver.build_tree(src.positions, src.masses)
        self.solver.dispatch(src, dst, self.sim_params)
        self.step_durations.append(time.perf_counter() - t0)

        self.particles.swap()
        self.particles.time += self.sim_params.dt

    def evolve(self, n_steps: int, save_interval: int = 10) -> List[Dict]:
        """Advance n_steps, saving snapshots every save_interval steps."""
        snapshots = []

        if self.verbose:
            print(f"Running leapfrog integration...")
            print(f"  dt = {self.sim_params.dt:.3e}")
            print(f"  Total steps = {n_steps}")
            print(f"  Save interval = {save_interval}")

        snapshots.append(self._save_snapshot())
        self._record_history()

        history_interval = max(1, n_steps // 10)
        n_particles = len(self.particles)
        for step in tqdm(range(n_steps), mininterval=.5 if n_particles > 1000 else 0.1,
                         desc="Integrating", unit="step", disable=not self.verbose):
            self.step()

            if (step + 1) % save_interval == 0:
                snapshots.append(self._save_snapshot())

            if (step + 1) % history_interval == 0:
                self._record_history()

        if self.verbose:
            print(f"Integration complete. Time = {self.particles.time:.4e}")

        return snapshots

    def _record_history(self) -> None:
        self.time_history.append(self.particles.time)
        self.energy_history.append(self.total_energy())
        self.momentum_history.append(self.total_momentum())

    def kinetic_energy(self) -> float:
        return analysis.kinetic_energy(self.particles.get_velocities(), self.particles.get_masses())

    def potential_energy(self) -> float:
        """Softened potential in the units the kernels integrate (g scaled by dt when folded)."""
        return analysis.potential_energy(self.particles.get_positions(), self.particles.get_masses(),
                                         self.sim_params.effective_g, self.sim_params.e)

    def total_energy(self) -> float:
        """Calculate total energy (kinetic + potential)."""
        return analysis.total_energy(self.particles.get_positions(), self.particles.get_velocities(),
                                     self.particles.get_masses(), self.sim_params.effective_g,
                                     self.sim_params.e)

    def total_momentum(self) -> np.ndarray:
        return analysis.total_momentum(self.particles.get_velocities(), self.particles.get_masses())

    def _save_snapshot(self) -> Dict:
        """Save current state."""
        return {
            'step': self.particles.step_num,
            'time': self.particles.time,
            'positions': self.particles.get_positions().copy(),
            'velocities': self.particles.get_velocities().copy(),
            'accelerations': self.particles.get_accelerations().copy(),
        }
