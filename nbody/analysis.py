"""
Analysis Tools
Conserved quantities, kernel comparison and state health checks
"""

from typing import Dict, Optional
import numpy as np
from scipy.spatial.distance import pdist


def kinetic_energy(velocities: np.ndarray, masses: np.ndarray) -> float:
    """Total kinetic energy: sum of m v² / 2."""
    return float(0.5 * np.sum(masses * np.sum(velocities**2, axis=1)))


def potential_energy(positions: np.ndarray, masses: np.ndarray, g: float, e: float) -> float:
    """
    Softened gravitational potential energy.

    Pairwise term -g m_i m_j / (r³ + e)^(1/3), the potential whose gradient
    matches the kernel force law g m r / (r³ + e) for separations well above
    the softening scale e^(1/3).
    """
    N = len(positions)
    if N < 2:
        return 0.0

    # pdist returns the upper triangle (i < j) in row-major order
    r = pdist(positions)
    i, j = np.triu_indices(N, k=1)
    mass_products = masses[i] * masses[j]

    r_soft = np.cbrt(r**3 + e)
    return float(-g * np.sum(mass_products / r_soft))


def total_energy(positions: np.ndarray, velocities: np.ndarray, masses: np.ndarray,
                 g: float, e: float) -> float:
    return kinetic_energy(velocities, masses) + potential_energy(positions, masses, g, e)


def total_momentum(velocities: np.ndarray, masses: np.ndarray) -> np.ndarray:
    """Total linear momentum (3,)."""
    return np.sum(masses[:, np.newaxis] * velocities, axis=0)


def center_of_mass(positions: np.ndarray, masses: np.ndarray) -> np.ndarray:
    """Mass-weighted mean position (3,)."""
    total = np.sum(masses)
    if total == 0:
        return np.zeros(3)
    return np.sum(masses[:, np.newaxis] * positions, axis=0) / total


def compare_accelerations(reference: np.ndarray, approx: np.ndarray,
                          min_magnitude: float = 1e-20) -> Dict[str, float]:
    """
    Per-particle relative error of approx against reference accelerations.

    Particles whose reference magnitude is below min_magnitude are skipped.
    Returns dict with 'rms_error', 'max_error', 'n_compared'.
    """
    ref_mag = np.linalg.norm(reference, axis=1)
    mask = ref_mag > min_magnitude
    if not np.any(mask):
        return {'rms_error': 0.0, 'max_error': 0.0, 'n_compared': 0}

    errors = np.linalg.norm(approx[mask] - reference[mask], axis=1) / ref_mag[mask]

    return {
        'rms_error': float(np.sqrt(np.mean(errors**2))),
        'max_error': float(np.max(errors)),
        'n_compared': int(np.sum(mask)),
    }


def detect_non_finite_particles(positions: np.ndarray, velocities: np.ndarray,
                                accelerations: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Indices of particles with NaN or Inf anywhere in their state.

    Non-finite values appear when softening is too small for the closest
    approach; they never recover, so a run should stop once any show up.
    """
    bad = ~np.all(np.isfinite(positions), axis=1) | ~np.all(np.isfinite(velocities), axis=1)
    if accelerations is not None:
        bad |= ~np.all(np.isfinite(accelerations), axis=1)
    return np.nonzero(bad)[0]


def detect_runaway_particles(positions: np.ndarray, masses: np.ndarray,
                             threshold: float = 10.0) -> Dict[str, float]:
    """
    Detect particles flung far outside the bulk of the system.

    When max distance from the center of mass >> RMS distance it indicates
    particles being "shot out" by close encounters with too little softening.
    """
    offsets = positions - center_of_mass(positions, masses)
    distances = np.linalg.norm(offsets, axis=1)
    rms = np.sqrt(np.mean(distances**2)) if len(distances) else 0.0
    max_distance = np.max(distances) if len(distances) else 0.0
    ratio = max_distance / rms if rms > 0 else 0.0

    return {
        'detected': bool(ratio > threshold),
        'ratio': float(ratio),
        'max_distance': float(max_distance),
        'rms_distance': float(rms),
        'threshold': threshold
    }
