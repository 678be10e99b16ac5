"""
Kick-drift-kick leapfrog steps shared by both force kernels.

Compiled separately so the naive and the tree kernel inline the same
arithmetic. Vectors are passed as scalar components because each call
runs inside one work item of a parallel loop.
"""

from numba import njit


@njit(cache=True, inline='always')
def half_kick(vx, vy, vz, ax, ay, az, dt):
    """v <- v + a * dt / 2"""
    h = 0.5 * dt
    return vx + ax * h, vy + ay * h, vz + az * h


@njit(cache=True, inline='always')
def drift(px, py, pz, vx, vy, vz, dt):
    """p <- p + v * dt"""
    return px + vx * dt, py + vy * dt, pz + vz * dt
