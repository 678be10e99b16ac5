"""
Unit tests for nbody.cli module

Tests command-line argument parsing and conversion to parameter objects.
"""

import unittest
from nbody.cli import parse_arguments, args_to_sim_params, args_to_tree_params


class TestParseArguments(unittest.TestCase):
    """Test argument defaults and overrides"""

    def test_defaults(self):
        args = parse_arguments(argv=[])
        self.assertEqual(args.particles, 40)
        self.assertAlmostEqual(args.g, 1e-6)
        self.assertAlmostEqual(args.e, 1e-4)
        self.assertAlmostEqual(args.dt, 0.016)
        self.assertFalse(args.no_fold_dt)
        self.assertEqual(args.method, 'auto')
        self.assertAlmostEqual(args.theta, 0.75)
        self.assertEqual(args.init, 'uniform')
        self.assertEqual(args.seed, 42)
        self.assertEqual(args.output_dir, './results')

    def test_overrides(self):
        args = parse_arguments(argv=['--particles', '2048', '--method', 'tree', '--theta', '0.5',
                                     '--init', 'disc', '--steps', '100', '--save-interval', '10',
                                     '--no-fold-dt'])
        self.assertEqual(args.particles, 2048)
        self.assertEqual(args.method, 'tree')
        self.assertAlmostEqual(args.theta, 0.5)
        self.assertEqual(args.init, 'disc')
        self.assertEqual(args.steps, 100)
        self.assertEqual(args.save_interval, 10)
        self.assertTrue(args.no_fold_dt)

    def test_without_output_dir(self):
        args = parse_arguments(add_output_dir=False, argv=[])
        self.assertFalse(hasattr(args, 'output_dir'))

    def test_invalid_method_rejected(self):
        with self.assertRaises(SystemExit):
            parse_arguments(argv=['--method', 'fmm'])

    def test_invalid_init_rejected(self):
        with self.assertRaises(SystemExit):
            parse_arguments(argv=['--init', 'plummer'])


class TestArgumentConversion(unittest.TestCase):
    """Test conversion of parsed arguments into parameter objects"""

    def test_sim_params(self):
        args = parse_arguments(argv=['--particles', '100', '--g', '1.0', '--e', '0.01',
                                     '--dt', '0.001'])
        params = args_to_sim_params(args)
        self.assertEqual(params.particle_count, 100)
        self.assertEqual(params.g, 1.0)
        self.assertEqual(params.e, 0.01)
        self.assertEqual(params.dt, 0.001)
        self.assertTrue(params.fold_dt)

    def test_no_fold_dt(self):
        params = args_to_sim_params(parse_arguments(argv=['--no-fold-dt']))
        self.assertFalse(params.fold_dt)
        self.assertEqual(params.force_scale, 1.0)

    def test_tree_params(self):
        params = args_to_tree_params(parse_arguments(argv=['--theta', '0.3']))
        self.assertAlmostEqual(params.theta, 0.3)
        self.assertAlmostEqual(params.root_extent, 2.0)


if __name__ == '__main__':
    unittest.main()
