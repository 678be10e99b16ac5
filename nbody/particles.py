"""
Particle State
Double-buffered particle storage and initial conditions
"""

from typing import Optional
import numpy as np
from .constants import SimParams


class Particle:
    """A single body: position, velocity, acceleration and mass"""

    def __init__(self, position, velocity, acceleration=None, mass: float = 1.0, particle_id: int = 0):
        self.pos = np.array(position, dtype=np.float64)
        self.vel = np.array(velocity, dtype=np.float64)
        if acceleration is None:
            acceleration = np.zeros(3)
        self.acc = np.array(acceleration, dtype=np.float64)
        self.mass = float(mass)
        self.id = particle_id

    def __repr__(self):
        return f"Particle(id={self.id}, mass={self.mass:.3e}, pos={self.pos}, vel={self.vel})"


class ParticleBuffer:
    """
    Struct-of-arrays storage for one copy of the particle state.

    Attributes:
        positions: (N, 3) float64
        velocities: (N, 3) float64
        accelerations: (N, 3) float64, acceleration from the previous step
        masses: (N,) float64, all ones for uniform-mass systems
    """

    def __init__(self, positions, velocities=None, accelerations=None, masses=None):
        self.positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        n = len(self.positions)

        if velocities is None:
            velocities = np.zeros((n, 3))
        if accelerations is None:
            accelerations = np.zeros((n, 3))
        self.velocities = np.ascontiguousarray(velocities, dtype=np.float64).reshape(-1, 3)
        self.accelerations = np.ascontiguousarray(accelerations, dtype=np.float64).reshape(-1, 3)

        self.uniform_mass = masses is None
        if masses is None:
            masses = np.ones(n)
        self.masses = np.ascontiguousarray(masses, dtype=np.float64).reshape(-1)

        for name in ('velocities', 'accelerations', 'masses'):
            if len(getattr(self, name)) != n:
                raise ValueError(f"{name} has length {len(getattr(self, name))}, expected {n}")

    @classmethod
    def empty_like(cls, other: 'ParticleBuffer') -> 'ParticleBuffer':
        """Zeroed buffer with the same length and masses as other."""
        n = len(other)
        masses = None if other.uniform_mass else other.masses.copy()
        return cls(np.zeros((n, 3)), masses=masses)

    def copy(self) -> 'ParticleBuffer':
        masses = None if self.uniform_mass else self.masses.copy()
        return ParticleBuffer(self.positions.copy(), self.velocities.copy(),
                              self.accelerations.copy(), masses)

    def __len__(self):
        return len(self.positions)


class ParticleSystem:
    """
    Two alternating particle buffers.

    Kernels read the source buffer and write every slot of the destination
    buffer; swap() then makes the destination authoritative. The two
    buffers are never the same arrays.
    """

    def __init__(self, positions, velocities=None, masses=None, accelerations=None):
        source = ParticleBuffer(positions, velocities, accelerations, masses)
        self.buffers = [source, ParticleBuffer.empty_like(source)]
        self.step_num = 0
        self.time = 0.0

    @property
    def source(self) -> ParticleBuffer:
        return self.buffers[self.step_num % 2]

    @property
    def destination(self) -> ParticleBuffer:
        return self.buffers[(self.step_num + 1) % 2]

    @property
    def n_particles(self) -> int:
        return len(self.source)

    @property
    def uniform_mass(self) -> bool:
        return self.source.uniform_mass

    def swap(self) -> None:
        """Make the destination buffer the authoritative state."""
        self.step_num += 1

    def get_positions(self) -> np.ndarray:
        """Get all particle positions as (N, 3) array."""
        return self.source.positions

    def get_velocities(self) -> np.ndarray:
        """Get all particle velocities as (N, 3) array."""
        return self.source.velocities

    def get_accelerations(self) -> np.ndarray:
        """Get all particle accelerations as (N, 3) array."""
        return self.source.accelerations

    def get_masses(self) -> np.ndarray:
        """Get all particle masses as (N,) array."""
        return self.source.masses

    def set_positions(self, positions: np.ndarray) -> None:
        self.source.positions[:] = positions

    def set_velocities(self, velocities: np.ndarray) -> None:
        self.source.velocities[:] = velocities

    def set_accelerations(self, accelerations: np.ndarray) -> None:
        self.source.accelerations[:] = accelerations

    def __len__(self):
        return self.n_particles

    def __getitem__(self, i: int) -> Particle:
        src = self.source
        return Particle(src.positions[i], src.velocities[i], src.accelerations[i],
                        src.masses[i], particle_id=i)

    def __repr__(self):
        return f"ParticleSystem(n_particles={self.n_particles}, step={self.step_num}, time={self.time:.3e})"


def uniform_init(sim_params: SimParams, masses: Optional[np.ndarray] = None) -> ParticleSystem:
    """
    Particles spread uniformly over the cube [-1, 1]³ with small random velocities.

    Uses the global numpy random state; seed it for reproducible runs.
    """
    n = sim_params.particle_count
    positions = np.random.uniform(-1.0, 1.0, size=(n, 3))
    velocities = np.random.uniform(-1.0, 1.0, size=(n, 3)) * 0.001
    return ParticleSystem(positions, velocities, masses)


def disc_init(sim_params: SimParams, masses: Optional[np.ndarray] = None) -> ParticleSystem:
    """
    Flat rotating disc in the z=0 plane.

    Positions are uniform in the unit disc (rejection sampling), velocities
    are tangential around +z with magnitude 0.05 / (sqrt(r) + 0.001).
    """
    coeff = 0.05
    n = sim_params.particle_count
    positions = np.zeros((n, 3))
    velocities = np.zeros((n, 3))

    for i in range(n):
        while True:
            pos = np.array([np.random.uniform(-1.0, 1.0), np.random.uniform(-1.0, 1.0), 0.0])
            if np.linalg.norm(pos) <= 1.0:
                break
        r = np.linalg.norm(pos)
        tangent = np.cross(pos, [0.0, 0.0, 1.0])
        tangent_norm = np.linalg.norm(tangent)
        # Particle exactly on the axis has no tangential direction
        if tangent_norm > 0:
            velocities[i] = coeff / (np.sqrt(r) + 0.001) * tangent / tangent_norm
        positions[i] = pos

    return ParticleSystem(positions, velocities, masses)


INITIALIZERS = {
    'uniform': uniform_init,
    'disc': disc_init,
}


def create_particles(init: str, sim_params: SimParams, masses: Optional[np.ndarray] = None) -> ParticleSystem:
    """Build a particle system with one of the named initial conditions."""
    if init not in INITIALIZERS:
        raise ValueError(f"Unknown initializer '{init}', expected one of {sorted(INITIALIZERS)}")
    return INITIALIZERS[init](sim_params, masses)
