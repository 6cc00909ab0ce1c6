"""
Tests for AngleSolver.
"""

import unittest
import numpy as np

# Add parent directory to path for imports
import sys
from pathlib import Path
_root = Path(__file__).parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from swathcore.sound_velocity import LayeredModel
from swathcore.raytracer import Raytracer
from swathcore.angle_solver import AngleSolver, SolveMode


class TestAngleSolver(unittest.TestCase):
    """Angle search against synthetic rays."""

    def setUp(self):
        model = LayeredModel.from_knots([(0.0, 1500.0), (1000.0, 1520.0), (12000.0, 1520.0)])
        self.raytracer = Raytracer(model)
        self.solver = AngleSolver(self.raytracer)

    def test_depth_mode_recovers_angle(self):
        """Depth match started 3 degrees off finds the tracing angle."""
        for angle in (20.0, 35.0, 50.0, 70.0):
            point = self.raytracer.trace_point(angle, 1.0)
            solution = self.solver.solve_depth(angle + 3.0, 1.0, point.depth)
            self.assertTrue(solution.converged)
            self.assertLess(abs(solution.angle - angle), 1e-3)
            self.assertLessEqual(solution.iterations, 50)

    def test_distance_mode_recovers_angle(self):
        for angle in (5.0, 20.0, 45.0, 70.0):
            point = self.raytracer.trace_point(angle, 1.0)
            solution = self.solver.solve_distance(angle - 3.0 if angle > 3.0 else 0.0, 1.0, point.distance)
            self.assertTrue(solution.converged)
            self.assertLess(abs(solution.angle - angle), 1e-3)
            self.assertLess(abs(solution.residual), 0.01)

    def test_depth_offset_and_static_shift(self):
        model = LayeredModel.from_knots([(5.0, 1500.0), (500.0, 1490.0)])
        raytracer = Raytracer(model)
        solver = AngleSolver(raytracer)
        shift = raytracer.static_shift_for(2.0)
        point = raytracer.trace_point(30.0, 0.4, 2.0, shift)
        solution = solver.solve(SolveMode.DISTANCE, 25.0, 0.4, point.distance, 2.0, shift)
        self.assertLess(abs(solution.angle - 30.0), 1e-3)
        self.assertAlmostEqual(solution.depth, point.depth, places=2)

    def test_near_vertical_depth_match_from_zero_seed(self):
        """Depth barely changes near vertical; the search must not stop there."""
        raytracer = Raytracer(LayeredModel.half_space(1500.0))
        solver = AngleSolver(raytracer)
        target = 150.0 * np.cos(np.radians(4.0))
        solution = solver.solve_depth(0.0, 0.2, target)
        self.assertTrue(solution.converged)
        self.assertLess(abs(solution.residual), 0.001)
        self.assertLess(abs(solution.angle - 4.0), 0.01)
        self.assertGreater(solution.iterations, 2)

    def test_sweep_from_zero_seed(self):
        """Both modes reach every angle across the fan from a vertical seed."""
        for angle in np.linspace(1.0, 89.0, 23):
            point = self.raytracer.trace_point(angle, 1.0)
            for mode, target in ((SolveMode.DISTANCE, point.distance), (SolveMode.DEPTH, point.depth)):
                solution = self.solver.solve(mode, 0.0, 1.0, target)
                self.assertTrue(solution.converged, f"{mode.value} at {angle}")
                self.assertLess(abs(solution.residual), 0.001, f"{mode.value} at {angle}")
                reached = solution.distance if mode == SolveMode.DISTANCE else solution.depth
                self.assertAlmostEqual(reached - target, solution.residual)

    def test_unreachable_target_is_not_converged(self):
        # Deeper than the slant range at this travel time
        raytracer = Raytracer(LayeredModel.half_space(1500.0))
        solution = AngleSolver(raytracer).solve_depth(10.0, 0.2, 200.0)
        self.assertFalse(solution.converged)
        self.assertEqual(solution.iterations, 50)
        self.assertLess(solution.angle, 1.0)
        self.assertAlmostEqual(solution.residual, -50.0, places=2)

    def test_runs_minimum_iterations(self):
        point = self.raytracer.trace_point(30.0, 1.0)
        solution = self.solver.solve_distance(30.0, 1.0, point.distance)
        self.assertTrue(solution.converged)
        self.assertEqual(solution.iterations, 3)
        self.assertAlmostEqual(solution.angle, 30.0, places=4)

    def test_iteration_cap_returns_best(self):
        solver = AngleSolver(self.raytracer, max_iterations=1)
        point = self.raytracer.trace_point(40.0, 1.0)
        solution = solver.solve_distance(30.0, 1.0, point.distance)
        self.assertFalse(solution.converged)
        self.assertEqual(solution.iterations, 1)
        self.assertAlmostEqual(solution.angle, 30.0)

    def test_angle_stays_in_bracket(self):
        # Farther than any ray can reach at this travel time
        solution = self.solver.solve_distance(45.0, 1.0, 5000.0)
        self.assertGreaterEqual(solution.angle, 0.0)
        self.assertLessEqual(solution.angle, 90.0)

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            AngleSolver(self.raytracer, precision=0.0)
        with self.assertRaises(ValueError):
            AngleSolver(self.raytracer, max_iterations=0)


class TestBlend(unittest.TestCase):

    def test_weights(self):
        self.assertAlmostEqual(AngleSolver.blend(0.0, 10.0), 0.0)
        self.assertAlmostEqual(AngleSolver.blend(45.0, 40.0), 42.5)
        self.assertAlmostEqual(AngleSolver.blend(90.0, 10.0), 10.0)

    def test_blend_of_equal_angles(self):
        for angle in np.linspace(0.0, 80.0, 9):
            self.assertAlmostEqual(AngleSolver.blend(angle, angle), angle)


if __name__ == '__main__':
    unittest.main()
