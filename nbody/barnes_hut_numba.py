"""
Numba JIT-compiled Barnes-Hut octree for O(N log N) gravitational force calculation.

The hierarchy is a flat arena of octants referenced by integer index.
Index 0 is the root, so a child index of 0 means "no child". Each octant
stores its center of mass, total mass, number of contained bodies and
8 child indices:

    Front: -z   Back: +z
    |---|---|   |---|---|
    | 2 | 3 |   | 6 | 7 |
    |---|---|   |---|---|
    | 0 | 1 |   | 4 | 5 |
    |---|---|   |---|---|

The force kernel walks the arena with an explicit (node, width) stack since
a work item has no call stack to recurse on. For theta=0 every body is
visited (equivalent to direct summation), theta=0.5 is typical and
theta=1.0 is aggressive.
"""

from typing import Optional
import numpy as np
from numba import njit, prange

from .constants import (SimParams, TreeParams, WORK_GROUP_SIZE, STACK_CAPACITY, SELF_EPSILON,
                        dispatch_grid_size, max_tree_depth, required_stack_capacity)
from .leapfrog import half_kick, drift
from .particles import ParticleBuffer

# Child slot value meaning "absent"; also the index of the root
EMPTY = 0


@njit(cache=True)
def _decide_octant(cx, cy, cz, px, py, pz):
    """Return octant index (0-7) for a point relative to a node center."""
    octant = 0
    if px > cx:
        octant |= 1
    if py > cy:
        octant |= 2
    if pz > cz:
        octant |= 4
    return octant


@njit(cache=True)
def _child_center(cx, cy, cz, width, octant):
    """Center of a child octant of a node with the given center and width."""
    q = 0.25 * width
    cx = cx + q if octant & 1 else cx - q
    cy = cy + q if octant & 2 else cy - q
    cz = cz + q if octant & 4 else cz - q
    return cx, cy, cz


@njit(cache=True)
def _absorb(node, px, py, pz, m, node_cog, node_mass, node_bodies):
    """Add one body to a node's running center of mass, mass and body count."""
    total = node_mass[node] + m
    if total > 0.0:
        w = m / total
        node_cog[node, 0] += (px - node_cog[node, 0]) * w
        node_cog[node, 1] += (py - node_cog[node, 1]) * w
        node_cog[node, 2] += (pz - node_cog[node, 2]) * w
    node_mass[node] = total
    node_bodies[node] += 1


@njit(cache=True)
def _is_childless(node, node_children):
    for c in range(8):
        if node_children[node, c] != EMPTY:
            return False
    return True


@njit(cache=True)
def build_octree(positions, masses, root_extent, max_depth, max_nodes):
    """
    Build the octree by inserting particles one at a time.

    The root is centered on the origin with width root_extent. Bodies that
    still share an octant at max_depth are merged into one childless node
    (a bucket) instead of subdividing further.

    Returns:
        (node_cog, node_mass, node_bodies, node_children, n_nodes, depth)
        n_nodes is -1 when max_nodes was too small.
    """
    N = len(positions)

    node_cog = np.zeros((max_nodes, 3), dtype=np.float64)
    node_mass = np.zeros(max_nodes, dtype=np.float64)
    node_bodies = np.zeros(max_nodes, dtype=np.int64)
    node_children = np.zeros((max_nodes, 8), dtype=np.int32)

    if N == 0:
        return node_cog, node_mass, node_bodies, node_children, 0, 0

    node_cog[0, 0] = positions[0, 0]
    node_cog[0, 1] = positions[0, 1]
    node_cog[0, 2] = positions[0, 2]
    node_mass[0] = masses[0]
    node_bodies[0] = 1
    n_nodes = 1
    tree_depth = 0

    for k in range(1, N):
        px = positions[k, 0]
        py = positions[k, 1]
        pz = positions[k, 2]
        m = masses[k]

        node = 0
        cx = 0.0
        cy = 0.0
        cz = 0.0
        width = root_extent
        depth = 0
        merged = False

        # Walk down through internal nodes, adding the body to each
        while node_bodies[node] > 1:
            _absorb(node, px, py, pz, m, node_cog, node_mass, node_bodies)
            if _is_childless(node, node_children):
                merged = True
                break

            octant = _decide_octant(cx, cy, cz, px, py, pz)
            child = node_children[node, octant]
            cx, cy, cz = _child_center(cx, cy, cz, width, octant)
            width *= 0.5
            depth += 1

            if child == EMPTY:
                if n_nodes >= max_nodes:
                    return node_cog, node_mass, node_bodies, node_children, -1, tree_depth
                child = n_nodes
                n_nodes += 1
                node_children[node, octant] = child
            node = child

        if merged:
            continue

        if node_bodies[node] == 0:
            node_cog[node, 0] = px
            node_cog[node, 1] = py
            node_cog[node, 2] = pz
            node_mass[node] = m
            node_bodies[node] = 1
            tree_depth = max(tree_depth, depth)
            continue

        # Single-body leaf: subdivide until the two bodies separate
        bx = node_cog[node, 0]
        by = node_cog[node, 1]
        bz = node_cog[node, 2]
        bm = node_mass[node]
        _absorb(node, px, py, pz, m, node_cog, node_mass, node_bodies)

        a_oct = _decide_octant(cx, cy, cz, px, py, pz)
        b_oct = _decide_octant(cx, cy, cz, bx, by, bz)
        while a_oct == b_oct and depth < max_depth:
            if n_nodes >= max_nodes:
                return node_cog, node_mass, node_bodies, node_children, -1, tree_depth
            child = n_nodes
            n_nodes += 1
            node_cog[child, 0] = node_cog[node, 0]
            node_cog[child, 1] = node_cog[node, 1]
            node_cog[child, 2] = node_cog[node, 2]
            node_mass[child] = node_mass[node]
            node_bodies[child] = 2
            node_children[node, a_oct] = child
            node = child

            cx, cy, cz = _child_center(cx, cy, cz, width, a_oct)
            width *= 0.5
            depth += 1
            a_oct = _decide_octant(cx, cy, cz, px, py, pz)
            b_oct = _decide_octant(cx, cy, cz, bx, by, bz)

        if depth >= max_depth:
            # Depth cap: node stays a childless bucket holding both bodies
            tree_depth = max(tree_depth, depth)
            continue

        if n_nodes + 2 > max_nodes:
            return node_cog, node_mass, node_bodies, node_children, -1, tree_depth

        leaf = n_nodes
        node_cog[leaf, 0] = px
        node_cog[leaf, 1] = py
        node_cog[leaf, 2] = pz
        node_mass[leaf] = m
        node_bodies[leaf] = 1
        node_children[node, a_oct] = leaf

        leaf = n_nodes + 1
        node_cog[leaf, 0] = bx
        node_cog[leaf, 1] = by
        node_cog[leaf, 2] = bz
        node_mass[leaf] = bm
        node_bodies[leaf] = 1
        node_children[node, b_oct] = leaf

        n_nodes += 2
        tree_depth = max(tree_depth, depth + 1)

    return node_cog, node_mass, node_bodies, node_children, n_nodes, tree_depth


@njit(cache=True)
def tree_acceleration(ax, ay, az, sx, sy, sz, g, e, theta, root_extent,
                      node_cog, node_mass, node_bodies, node_children,
                      stack_nodes, stack_widths):
    """
    Approximate force sum on a particle at (ax, ay, az) by walking the octree.

    (sx, sy, sz) is the particle's position in the snapshot the tree was
    built from; a single-body node sitting there is the particle itself.
    Frames that do not fit on the stack are dropped.

    Returns the unscaled force sum as three components.
    """
    capacity = len(stack_nodes)
    fx = 0.0
    fy = 0.0
    fz = 0.0

    stack_nodes[0] = 0
    stack_widths[0] = root_extent
    top = 1

    while top > 0:
        top -= 1
        node = stack_nodes[top]
        width = stack_widths[top]

        if node_bodies[node] == 0:
            continue

        if node_bodies[node] == 1:
            ox = node_cog[node, 0] - sx
            oy = node_cog[node, 1] - sy
            oz = node_cog[node, 2] - sz
            if np.sqrt(ox*ox + oy*oy + oz*oz) < SELF_EPSILON:
                continue

        dx = node_cog[node, 0] - ax
        dy = node_cog[node, 1] - ay
        dz = node_cog[node, 2] - az
        dist = np.sqrt(dx*dx + dy*dy + dz*dz)

        if _is_childless(node, node_children) or (dist > 0.0 and width / dist < theta):
            # Far enough (or nothing to open): whole node as one point mass
            f = g * node_mass[node] / (dist*dist*dist + e)
            fx += f * dx
            fy += f * dy
            fz += f * dz
        else:
            half = 0.5 * width
            for c in range(8):
                child = node_children[node, c]
                if child != EMPTY and top < capacity:
                    stack_nodes[top] = child
                    stack_widths[top] = half
                    top += 1

    return fx, fy, fz


@njit(cache=True)
def _tree_work_item(tid, g, e, dt, force_scale, theta, root_extent,
                    src_pos, src_vel, src_acc,
                    node_cog, node_mass, node_bodies, node_children,
                    dst_pos, dst_vel, dst_acc):
    """Kick, drift, walk the tree, kick for particle tid; writes slot tid only."""
    stack_nodes = np.empty(STACK_CAPACITY, dtype=np.int32)
    stack_widths = np.empty(STACK_CAPACITY, dtype=np.float64)

    sx = src_pos[tid, 0]
    sy = src_pos[tid, 1]
    sz = src_pos[tid, 2]

    vx, vy, vz = half_kick(src_vel[tid, 0], src_vel[tid, 1], src_vel[tid, 2],
                           src_acc[tid, 0], src_acc[tid, 1], src_acc[tid, 2], dt)
    px, py, pz = drift(sx, sy, sz, vx, vy, vz, dt)

    fx, fy, fz = tree_acceleration(px, py, pz, sx, sy, sz, g, e, theta, root_extent,
                                   node_cog, node_mass, node_bodies, node_children,
                                   stack_nodes, stack_widths)
    ax = fx * force_scale
    ay = fy * force_scale
    az = fz * force_scale

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
def tree_kernel(grid_size, particle_count, g, e, dt, force_scale, theta, root_extent,
                src_pos, src_vel, src_acc,
                node_cog, node_mass, node_bodies, node_children,
                dst_pos, dst_vel, dst_acc):
    """
    Advance every particle by one leapfrog step using Barnes-Hut forces.

    Same dispatch contract as the naive kernel: work item tid writes only
    slot tid of the destination arrays, items past particle_count are no-ops.
    """
    for tid in prange(grid_size):
        if tid < particle_count:
            _tree_work_item(tid, g, e, dt, force_scale, theta, root_extent,
                            src_pos, src_vel, src_acc,
                            node_cog, node_mass, node_bodies, node_children,
                            dst_pos, dst_vel, dst_acc)


@njit(cache=True)
def _tree_force_item(i, g, e, force_scale, theta, root_extent, positions,
                     node_cog, node_mass, node_bodies, node_children, accelerations):
    stack_nodes = np.empty(STACK_CAPACITY, dtype=np.int32)
    stack_widths = np.empty(STACK_CAPACITY, dtype=np.float64)
    px = positions[i, 0]
    py = positions[i, 1]
    pz = positions[i, 2]
    fx, fy, fz = tree_acceleration(px, py, pz, px, py, pz, g, e, theta, root_extent,
                                   node_cog, node_mass, node_bodies, node_children,
                                   stack_nodes, stack_widths)
    accelerations[i, 0] = fx * force_scale
    accelerations[i, 1] = fy * force_scale
    accelerations[i, 2] = fz * force_scale


@njit(parallel=True, cache=True)
def calculate_forces_barnes_hut(positions, g, e, force_scale, theta, root_extent,
                                node_cog, node_mass, node_bodies, node_children):
    """
    Accelerations at the positions the tree was built from, without integrating.

    Returns:
        (N, 3) accelerations in the same units the kernel stores
    """
    N = len(positions)
    accelerations = np.zeros((N, 3))

    for i in prange(N):
        _tree_force_item(i, g, e, force_scale, theta, root_extent, positions,
                         node_cog, node_mass, node_bodies, node_children, accelerations)

    return accelerations


def compute_root_extent(positions: np.ndarray) -> float:
    """Width of an origin-centered cube containing every position (never below 2)."""
    if len(positions) == 0:
        return 2.0
    bound = max(1.0, float(np.max(np.abs(positions))))
    return 2.0 * bound


class Octree:
    """
    Flat octant arena produced once per step from the current positions.

    Attributes:
        cog: (n_nodes, 3) centers of mass
        mass: (n_nodes,) total masses
        bodies: (n_nodes,) number of bodies under each node
        children: (n_nodes, 8) child indices, 0 = absent
        n_nodes: number of allocated octants
        root_extent: width of the root octant
        depth: deepest node level (root = 0)
    """

    def __init__(self, cog, mass, bodies, children, n_nodes: int, root_extent: float, depth: int):
        self.cog = cog
        self.mass = mass
        self.bodies = bodies
        self.children = children
        self.n_nodes = n_nodes
        self.root_extent = root_extent
        self.depth = depth

    @classmethod
    def build(cls, positions: np.ndarray, masses: np.ndarray,
              max_depth: Optional[int] = None, max_nodes: Optional[int] = None) -> 'Octree':
        """
        Build an octree from particle positions and masses.

        The node arena starts at max_nodes (default 4N) and doubles until
        the build fits.
        """
        positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 3)
        masses = np.ascontiguousarray(masses, dtype=np.float64).reshape(-1)
        if len(masses) != len(positions):
            raise ValueError(f"{len(masses)} masses for {len(positions)} positions")
        if not np.all(np.isfinite(positions)):
            raise ValueError("Cannot build octree: positions contain NaN or Inf")

        if max_depth is None:
            max_depth = max_tree_depth(STACK_CAPACITY)
        if max_nodes is None:
            max_nodes = max(64, 4 * len(positions))

        root_extent = compute_root_extent(positions)

        while True:
            cog, mass, bodies, children, n_nodes, depth = build_octree(
                positions, masses, root_extent, max_depth, max_nodes
            )
            if n_nodes >= 0:
                break
            max_nodes *= 2

        return cls(cog[:n_nodes], mass[:n_nodes], bodies[:n_nodes], children[:n_nodes],
                   n_nodes, root_extent, depth)

    def required_stack_capacity(self) -> int:
        return required_stack_capacity(self.depth)

    def validate(self, stack_capacity: int = STACK_CAPACITY) -> None:
        """Reject a hierarchy the kernel cannot traverse without dropping frames."""
        needed = self.required_stack_capacity()
        if needed > stack_capacity:
            raise ValueError(f"Octree depth {self.depth} needs {needed} stack frames, "
                             f"kernel stack holds {stack_capacity}")

    def __len__(self):
        return self.n_nodes

    def __repr__(self):
        return f"Octree(n_nodes={self.n_nodes}, depth={self.depth}, root_extent={self.root_extent:.3e})"


class BarnesHutSolver:
    """
    Barnes-Hut octree solver using Numba JIT compilation.

    O(N log N) force calculation with configurable accuracy via opening angle theta.
    theta=0 -> exact (equivalent to O(N^2) direct)
    theta=0.5 -> standard accuracy
    theta=1.0 -> fast/approximate
    """

    def __init__(self, tree_params: Optional[TreeParams] = None, work_group_size: int = WORK_GROUP_SIZE):
        self.tree_params = tree_params if tree_params is not None else TreeParams()
        self.work_group_size = work_group_size
        self.tree: Optional[Octree] = None

    def build_tree(self, positions: np.ndarray, masses: np.ndarray) -> Octree:
        """
        Build the hierarchy and publish its root extent to the tree parameters.

        The root extent is always derived from the positions; any value
        already held in tree_params.root_extent is replaced.
        """
        self.tree = Octree.build(positions, masses)
        self.tree_params.root_extent = self.tree.root_extent
        return self.tree

    def _check_ready(self, n: int) -> Octree:
        if self.tree is None:
            raise ValueError("build_tree() must be called before dispatching the tree kernel")
        if self.tree.bodies[0] != n:
            raise ValueError(f"Octree holds {self.tree.bodies[0]} bodies, expected {n}")
        self.tree_params.validate()
        self.tree.validate()
        return self.tree

    def dispatch(self, src: ParticleBuffer, dst: ParticleBuffer, sim_params: SimParams) -> None:
        """Run one step from src into dst using the last built tree."""
        sim_params.validate()
        n = sim_params.particle_count
        if n > len(src) or n > len(dst):
            raise ValueError(f"particle_count {n} exceeds buffer length (src={len(src)}, dst={len(dst)})")

        grid_size = dispatch_grid_size(n, self.work_group_size)
        if grid_size == 0:
            return

        tree = self._check_ready(n)
        tree_kernel(grid_size, n, sim_params.g, sim_params.e, sim_params.dt, sim_params.force_scale,
                    self.tree_params.theta, self.tree_params.root_extent,
                    src.positions, src.velocities, src.accelerations,
                    tree.cog, tree.mass, tree.bodies, tree.children,
                    dst.positions, dst.velocities, dst.accelerations)

    def calculate_all_accelerations(self, positions: np.ndarray, masses: np.ndarray,
                                    sim_params: SimParams) -> np.ndarray:
        """Build a tree at the given positions and return accelerations, in stored units."""
        positions = np.ascontiguousarray(positions, dtype=np.float64)
        if len(positions) == 0:
            return np.zeros((0, 3))
        self.build_tree(positions, masses)
        tree = self._check_ready(len(positions))
        return calculate_forces_barnes_hut(
            positions, sim_params.g, sim_params.e, sim_params.force_scale,
            self.tree_params.theta, self.tree_params.root_extent,
            tree.cog, tree.mass, tree.bodies, tree.children
        )
