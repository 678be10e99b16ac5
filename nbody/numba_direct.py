"""
Numba JIT-compiled direct O(N²) force kernel with leapfrog integration.

One work item per particle: each item reads the whole source snapshot and
writes only its own slot of the destination buffer, so items run in any
order without synchronization.
"""

import numpy as np
from numba import njit, prange

from .constants import SimParams, WORK_GROUP_SIZE, dispatch_grid_size
from .leapfrog import half_kick, drift
from .particles import ParticleBuffer


@njit(cache=True)
def direct_acceleration(i, ax, ay, az, positions, masses, particle_count, g, e):
    """
    Sum g * m_j * (b_j - a) / (r³ + e) over every j != i.

    Returns the unscaled force sum as three components.
    """
    sx = 0.0
    sy = 0.0
    sz = 0.0
    for j in range(particle_count):
        if j == i:
            continue

        dx = positions[j, 0] - ax
        dy = positions[j, 1] - ay
        dz = positions[j, 2] - az
        r = np.sqrt(dx*dx + dy*dy + dz*dz)

        f = g * masses[j] / (r*r*r + e)

        sx += f * dx
        sy += f * dy
        sz += f * dz

    return sx, sy, sz


@njit(cache=True)
def _naive_work_item(tid, particle_count, g, e, dt, force_scale,
                     src_pos, src_vel, src_acc, masses,
                     dst_pos, dst_vel, dst_acc):
    """Kick, drift, evaluate forces, kick for particle tid; writes slot tid only."""
    vx, vy, vz = half_kick(src_vel[tid, 0], src_vel[tid, 1], src_vel[tid, 2],
                           src_acc[tid, 0], src_acc[tid, 1], src_acc[tid, 2], dt)
    px, py, pz = drift(src_pos[tid, 0], src_pos[tid, 1], src_pos[tid, 2], vx, vy, vz, dt)

    sx, sy, sz = direct_acceleration(tid, px, py, pz, src_pos, masses, particle_count, g, e)
    ax = sx * force_scale
    ay = sy * force_scale
    az = sz * force_scale

    vx, vy, vz = half_kick(vx, vy, vz, ax, ay, az, dt)

    dst_pos[tid, 0] = px
    dst_pos[tid, 1] = py
    dst_pos[tid, 2] = pz
    dst_vel[tid, 0] = vx
    dst_vel[tid, 1] = vy
    dst_vel[tid, 2] = vz
    dst_acc[tid, 0] = ax
    dst_acc[tid, 1] = ay
    dst_acc[tid, 2] = az


@njit(parallel=True, cache=True)
def naive_kernel(grid_size, particle_count, g, e, dt, force_scale,
                 src_pos, src_vel, src_acc, masses,
                 dst_pos, dst_vel, dst_acc):
    """
    Advance every particle by one leapfrog step using all-pairs forces.

    Args:
        grid_size: Work items dispatched (>= particle_count)
        particle_count: Items with an id at or beyond this do nothing
        g, e, dt: Gravitational constant, softening, timestep
        force_scale: dt when the force sum is folded into acceleration, else 1
        src_*: Read-only snapshot (N, 3) arrays and (N,) masses
        dst_*: Output arrays, slot tid written by work item tid only
    """
    for tid in prange(grid_size):
        if tid < particle_count:
            _naive_work_item(tid, particle_count, g, e, dt, force_scale,
                             src_pos, src_vel, src_acc, masses,
                             dst_pos, dst_vel, dst_acc)


@njit(parallel=True, cache=True)
def calculate_forces_direct_numba(positions, masses, g, e, force_scale):
    """
    Accelerations at the given positions without integrating.

    Returns:
        (N, 3) accelerations in the same units the kernel stores
    """
    N = len(positions)
    accelerations = np.zeros((N, 3))

    for i in prange(N):
        sx, sy, sz = direct_acceleration(i, positions[i, 0], positions[i, 1], positions[i, 2],
                                         positions, masses, N, g, e)
        accelerations[i, 0] = sx * force_scale
        accelerations[i, 1] = sy * force_scale
        accelerations[i, 2] = sz * force_scale

    return accelerations


class NaiveSolver:
    """
    Direct O(N²) solver using Numba JIT compilation.

    Exact pairwise summation; no hierarchy is needed.
    """

    def __init__(self, work_group_size: int = WORK_GROUP_SIZE):
        self.work_group_size = work_group_size

    def build_tree(self, positions: np.ndarray, masses: np.ndarray) -> None:
        """No hierarchy (API compatible with the tree solver)."""
        return None

    def dispatch(self, src: ParticleBuffer, dst: ParticleBuffer, sim_params: SimParams) -> None:
        """Run one step from src into dst."""
        sim_params.validate()
        n = sim_params.particle_count
        if n > len(src) or n > len(dst):
            raise ValueError(f"particle_count {n} exceeds buffer length (src={len(src)}, dst={len(dst)})")

        grid_size = dispatch_grid_size(n, self.work_group_size)
        if grid_size == 0:
            return

        naive_kernel(grid_size, n, sim_params.g, sim_params.e, sim_params.dt, sim_params.force_scale,
                     src.positions, src.velocities, src.accelerations, src.masses,
                     dst.positions, dst.velocities, dst.accelerations)

    def calculate_all_accelerations(self, positions: np.ndarray, masses: np.ndarray,
                                    sim_params: SimParams) -> np.ndarray:
        """Accelerations at the given positions, in stored units."""
        positions = np.ascontiguousarray(positions, dtype=np.float64)
        masses = np.ascontiguousarray(masses, dtype=np.float64)
        if len(positions) == 0:
            return np.zeros((0, 3))
        return calculate_forces_direct_numba(positions, masses, sim_params.g, sim_params.e,
                                             sim_params.force_scale)
