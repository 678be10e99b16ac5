"""
Simulation Parameters
Uniform scalars broadcast to every kernel thread for one dispatch
"""

import numpy as np

# Threads are dispatched in fixed-size work groups
WORK_GROUP_SIZE = 64

# Explicit traversal stack of the tree kernel, in (node, width) frames
STACK_CAPACITY = 256

# Distance under which a single-body node is the evaluating particle itself
SELF_EPSILON = 1e-9


def dispatch_grid_size(particle_count: int, work_group_size: int = WORK_GROUP_SIZE) -> int:
    """Number of work items dispatched: particle_count rounded up to whole work groups."""
    n_groups = (particle_count + work_group_size - 1) // work_group_size
    return n_groups * work_group_size


def required_stack_capacity(depth: int) -> int:
    """
    Stack frames needed to traverse a tree of the given depth.

    Every opened node replaces its own frame with up to 8 children, so each
    level adds 7 frames and the deepest level holds 8.
    """
    if depth <= 0:
        return 1
    return 7 * depth + 1


def max_tree_depth(stack_capacity: int = STACK_CAPACITY) -> int:
    """Deepest hierarchy that a stack of this capacity can traverse without dropping frames."""
    return (stack_capacity - 1) // 7


class SimParams:
    """Parameters shared by the naive and the tree kernel"""

    def __init__(self, particle_count: int = 40, g: float = 1e-6, e: float = 1e-4,
                 dt: float = 0.016, fold_dt: bool = True):
        """
        Initialize simulation parameters.

        Args:
            particle_count: Number of particles in the source buffer
            g: Gravitational constant
            e: Softening term added to r³ in the force law (must be > 0)
            dt: Timestep
            fold_dt: If True the force sum is scaled by dt before it is stored
                     and used as acceleration (the kernel's historical units
                     convention). If False the stored value is a pure acceleration.
        """
        self.particle_count = int(particle_count)
        self.g = float(g)
        self.e = float(e)
        self.dt = float(dt)
        self.fold_dt = bool(fold_dt)

    @property
    def force_scale(self) -> float:
        """Factor applied to the summed force before it is used as acceleration."""
        return self.dt if self.fold_dt else 1.0

    @property
    def effective_g(self) -> float:
        """
        Gravitational constant the integrated motion actually obeys.

        With dt folded into the stored acceleration every kick is g * dt
        times stronger than the bare force law, so energies are measured
        with g * dt.
        """
        return self.g * self.force_scale

    def validate(self) -> None:
        """Reject parameters that would silently corrupt the particle state."""
        if self.particle_count < 0:
            raise ValueError(f"particle_count must be >= 0, got {self.particle_count}")
        if not np.isfinite(self.g):
            raise ValueError(f"g must be finite, got {self.g}")
        if not np.isfinite(self.e) or self.e <= 0.0:
            raise ValueError(f"softening e must be positive, got {self.e}")
        if not np.isfinite(self.dt) or self.dt <= 0.0:
            raise ValueError(f"timestep dt must be positive, got {self.dt}")

    def __repr__(self):
        return (f"SimParams(particle_count={self.particle_count}, g={self.g}, "
                f"e={self.e}, dt={self.dt}, fold_dt={self.fold_dt})")

    def __str__(self):
        return (f"Simulation Parameters:\n"
                f"  Particles = {self.particle_count}\n"
                f"  G = {self.g:.3e}\n"
                f"  Softening = {self.e:.3e}\n"
                f"  dt = {self.dt:.3e}\n"
                f"  dt folded into force = {self.fold_dt}")


class TreeParams:
    """
    Barnes-Hut specific parameters

    root_extent is an output of the tree build: BarnesHutSolver.build_tree
    overwrites it with the width of the root octant it actually used, so a
    value passed in here only matters until the first build.
    """

    def __init__(self, theta: float = 0.75, root_extent: float = 2.0):
        """
        Args:
            theta: Opening angle (0 = exact, larger = faster and less accurate)
            root_extent: Width of the root octant; rewritten by every tree build
        """
        self.theta = float(theta)
        self.root_extent = float(root_extent)

    def validate(self) -> None:
        if not np.isfinite(self.theta) or self.theta < 0.0:
            raise ValueError(f"theta must be >= 0, got {self.theta}")
        if not np.isfinite(self.root_extent) or self.root_extent <= 0.0:
            raise ValueError(f"root_extent must be positive, got {self.root_extent}")

    def __repr__(self):
        return f"TreeParams(theta={self.theta}, root_extent={self.root_extent})"
