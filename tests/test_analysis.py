"""
Unit tests for nbody.analysis module

Tests shared analysis functions for:
- Kinetic and potential energy
- Momentum and center of mass
- Kernel comparison statistics
- Non-finite and runaway particle detection
"""

import unittest
import numpy as np
from nbody.analysis import (
    kinetic_energy,
    potential_energy,
    total_energy,
    total_momentum,
    center_of_mass,
    compare_accelerations,
    detect_non_finite_particles,
    detect_runaway_particles
)


class TestEnergy(unittest.TestCase):
    """Test energy functions"""

    def test_kinetic_energy(self):
        velocities = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
        masses = np.array([2.0, 1.0])
        # 0.5*2*1 + 0.5*1*4
        self.assertAlmostEqual(kinetic_energy(velocities, masses), 3.0)

    def test_potential_two_bodies(self):
        positions = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        masses = np.array([1.0, 3.0])
        expected = -0.5 * 3.0 / np.cbrt(8.0 + 0.01)
        self.assertAlmostEqual(potential_energy(positions, masses, 0.5, 0.01), expected)

    def test_potential_pairs_counted_once(self):
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        masses = np.array([1.0, 2.0, 3.0])
        e = 1e-3
        r12 = np.sqrt(2.0)
        expected = -(1 * 2 / np.cbrt(1 + e) + 1 * 3 / np.cbrt(1 + e) + 2 * 3 / np.cbrt(r12**3 + e))
        self.assertAlmostEqual(potential_energy(positions, masses, 1.0, e), expected)

    def test_potential_single_particle(self):
        self.assertEqual(potential_energy(np.zeros((1, 3)), np.ones(1), 1.0, 1e-4), 0.0)

    def test_potential_softened_at_contact(self):
        value = potential_energy(np.zeros((2, 3)), np.ones(2), 1.0, 1e-3)
        self.assertAlmostEqual(value, -1.0 / np.cbrt(1e-3))

    def test_total_energy(self):
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        velocities = np.array([[0.0, 1.0, 0.0], [0.0, -1.0, 0.0]])
        masses = np.ones(2)
        expected = 1.0 - 1.0 / np.cbrt(1.0 + 1e-2)
        self.assertAlmostEqual(total_energy(positions, velocities, masses, 1.0, 1e-2), expected)


class TestMomentum(unittest.TestCase):
    """Test momentum and center of mass"""

    def test_total_momentum(self):
        velocities = np.array([[1.0, 0.0, 0.0], [-0.5, 1.0, 0.0]])
        masses = np.array([1.0, 2.0])
        np.testing.assert_allclose(total_momentum(velocities, masses), [0.0, 2.0, 0.0])

    def test_center_of_mass(self):
        positions = np.array([[0.0, 0.0, 0.0], [4.0, 0.0, 0.0]])
        masses = np.array([3.0, 1.0])
        np.testing.assert_allclose(center_of_mass(positions, masses), [1.0, 0.0, 0.0])

    def test_center_of_mass_massless(self):
        np.testing.assert_array_equal(center_of_mass(np.ones((2, 3)), np.zeros(2)), np.zeros(3))


class TestCompareAccelerations(unittest.TestCase):
    """Test relative error statistics"""

    def test_identical(self):
        acc = np.random.RandomState(0).normal(size=(10, 3))
        stats = compare_accelerations(acc, acc.copy())
        self.assertEqual(stats['rms_error'], 0.0)
        self.assertEqual(stats['max_error'], 0.0)
        self.assertEqual(stats['n_compared'], 10)

    def test_known_error(self):
        reference = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])
        approx = np.array([[1.1, 0.0, 0.0], [0.0, 2.0, 0.0]])
        stats = compare_accelerations(reference, approx)
        self.assertAlmostEqual(stats['max_error'], 0.1)
        self.assertAlmostEqual(stats['rms_error'], np.sqrt(0.01 / 2))

    def test_tiny_reference_skipped(self):
        reference = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
        approx = np.array([[1.0, 0.0, 0.0], [5.0, 0.0, 0.0]])
        stats = compare_accelerations(reference, approx)
        self.assertEqual(stats['n_compared'], 1)
        self.assertEqual(stats['max_error'], 0.0)

    def test_nothing_to_compare(self):
        stats = compare_accelerations(np.zeros((3, 3)), np.ones((3, 3)))
        self.assertEqual(stats['n_compared'], 0)


class TestDetection(unittest.TestCase):
    """Test state health checks"""

    def test_non_finite_particles(self):
        positions = np.zeros((4, 3))
        velocities = np.zeros((4, 3))
        accelerations = np.zeros((4, 3))
        positions[1, 0] = np.nan
        velocities[2, 2] = np.inf
        accelerations[3, 1] = -np.inf
        np.testing.assert_array_equal(detect_non_finite_particles(positions, velocities), [1, 2])
        np.testing.assert_array_equal(
            detect_non_finite_particles(positions, velocities, accelerations), [1, 2, 3])

    def test_all_finite(self):
        self.assertEqual(len(detect_non_finite_particles(np.ones((5, 3)), np.ones((5, 3)))), 0)

    def test_runaway_not_detected_for_cloud(self):
        positions = np.random.RandomState(1).uniform(-1, 1, (500, 3))
        result = detect_runaway_particles(positions, np.ones(500))
        self.assertFalse(result['detected'])
        self.assertLess(result['ratio'], 10.0)

    def test_runaway_detected(self):
        positions = np.random.RandomState(1).uniform(-1, 1, (500, 3))
        positions[0] = [1e3, 0.0, 0.0]
        result = detect_runaway_particles(positions, np.ones(500))
        self.assertTrue(result['detected'])
        self.assertGreater(result['max_distance'], 900.0)

    def test_runaway_empty(self):
        result = detect_runaway_particles(np.zeros((0, 3)), np.zeros(0))
        self.assertFalse(result['detected'])
        self.assertEqual(result['ratio'], 0.0)


if __name__ == '__main__':
    unittest.main()
