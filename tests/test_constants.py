"""
Unit tests for nbody.constants module

Tests parameter classes and dispatch helpers:
- Default simulation parameters
- Parameter validation
- Work group rounding
- Stack capacity vs tree depth
"""

import unittest
import numpy as np
from nbody.constants import (
    SimParams,
    TreeParams,
    WORK_GROUP_SIZE,
    STACK_CAPACITY,
    dispatch_grid_size,
    required_stack_capacity,
    max_tree_depth
)


class TestSimParams(unittest.TestCase):
    """Test SimParams defaults and validation"""

    def setUp(self):
        self.params = SimParams()

    def test_defaults(self):
        """Defaults match the reference configuration"""
        self.assertEqual(self.params.particle_count, 40)
        self.assertAlmostEqual(self.params.g, 1e-6)
        self.assertAlmostEqual(self.params.e, 1e-4)
        self.assertAlmostEqual(self.params.dt, 0.016)
        self.assertTrue(self.params.fold_dt)

    def test_force_scale_folded(self):
        """Folded convention scales the force sum by dt"""
        self.assertAlmostEqual(self.params.force_scale, 0.016)

    def test_force_scale_unfolded(self):
        """Unfolded convention stores pure acceleration"""
        params = SimParams(dt=0.5, fold_dt=False)
        self.assertEqual(params.force_scale, 1.0)

    def test_effective_g_folded(self):
        """Folding dt into the kicks scales the integrated gravity by dt"""
        params = SimParams(g=2.0, dt=0.01)
        self.assertAlmostEqual(params.effective_g, 0.02)

    def test_effective_g_unfolded(self):
        params = SimParams(g=2.0, dt=0.01, fold_dt=False)
        self.assertEqual(params.effective_g, 2.0)

    def test_validate_accepts_defaults(self):
        self.params.validate()

    def test_zero_particles_valid(self):
        SimParams(particle_count=0).validate()

    def test_negative_particle_count_rejected(self):
        with self.assertRaises(ValueError):
            SimParams(particle_count=-1).validate()

    def test_nonpositive_softening_rejected(self):
        """e = 0 would divide by zero for coincident particles"""
        for e in (0.0, -1e-4, np.nan):
            with self.subTest(e=e):
                with self.assertRaises(ValueError):
                    SimParams(e=e).validate()

    def test_nonpositive_dt_rejected(self):
        for dt in (0.0, -0.01, np.inf):
            with self.subTest(dt=dt):
                with self.assertRaises(ValueError):
                    SimParams(dt=dt).validate()

    def test_non_finite_g_rejected(self):
        with self.assertRaises(ValueError):
            SimParams(g=np.nan).validate()

    def test_str_lists_parameters(self):
        text = str(self.params)
        self.assertIn("Particles = 40", text)
        self.assertIn("Softening", text)


class TestTreeParams(unittest.TestCase):
    """Test TreeParams defaults and validation"""

    def test_defaults(self):
        params = TreeParams()
        self.assertAlmostEqual(params.theta, 0.75)
        self.assertAlmostEqual(params.root_extent, 2.0)
        params.validate()

    def test_theta_zero_valid(self):
        """theta = 0 means exact summation"""
        TreeParams(theta=0.0).validate()

    def test_negative_theta_rejected(self):
        with self.assertRaises(ValueError):
            TreeParams(theta=-0.1).validate()

    def test_nonpositive_root_extent_rejected(self):
        with self.assertRaises(ValueError):
            TreeParams(root_extent=0.0).validate()


class TestDispatchGrid(unittest.TestCase):
    """Test rounding of particle count up to whole work groups"""

    def test_work_group_size(self):
        self.assertEqual(WORK_GROUP_SIZE, 64)

    def test_reference_count_rounds_up(self):
        """40 particles still launch one full group"""
        self.assertEqual(dispatch_grid_size(40), 64)

    def test_exact_multiple(self):
        self.assertEqual(dispatch_grid_size(128), 128)

    def test_one_over_multiple(self):
        self.assertEqual(dispatch_grid_size(129), 192)

    def test_zero_particles(self):
        self.assertEqual(dispatch_grid_size(0), 0)

    def test_custom_group_size(self):
        self.assertEqual(dispatch_grid_size(10, work_group_size=8), 16)


class TestStackCapacity(unittest.TestCase):
    """Test the traversal stack bound"""

    def test_root_only(self):
        self.assertEqual(required_stack_capacity(0), 1)

    def test_grows_by_seven_per_level(self):
        self.assertEqual(required_stack_capacity(1), 8)
        self.assertEqual(required_stack_capacity(2), 15)
        self.assertEqual(required_stack_capacity(10) - required_stack_capacity(9), 7)

    def test_max_depth_fits_capacity(self):
        """Deepest allowed tree fits, one level deeper does not"""
        depth = max_tree_depth(STACK_CAPACITY)
        self.assertLessEqual(required_stack_capacity(depth), STACK_CAPACITY)
        self.assertGreater(required_stack_capacity(depth + 1), STACK_CAPACITY)

    def test_default_max_depth(self):
        self.assertEqual(max_tree_depth(), 36)


if __name__ == '__main__':
    unittest.main()
