"""
AngleSolver - takeoff angle search matching a reported sounding position.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum

from .raytracer import Raytracer, RayPoint

# Searches always evaluate at least this many rays before stopping
MIN_ITERATIONS = 3


class SolveMode(str, Enum):
    DISTANCE = "distance"  # match horizontal distance
    DEPTH = "depth"        # match depth


@dataclass
class AngleSolution:
    """Result of one angle search."""
    angle: float          # Takeoff angle from vertical, degrees
    residual: float       # Calculated minus target, m
    iterations: int
    converged: bool       # Best residual within precision
    terminated: bool = False  # Final ray terminated at a post-critical layer
    distance: float = 0.0     # Horizontal distance of the final ray, m
    depth: float = 0.0        # Depth of the final ray, m


class AngleSolver:
    """
    Secant search for the takeoff angle reproducing a target distance or depth
    at a fixed travel time.

    The angle is kept inside a bracket starting at [0, 90] degrees and
    tightened by the sign of each residual. Proposals falling outside the
    bracket are replaced by bisection toward the bracket edge in the step
    direction. When successive rays barely differ (depth near vertical,
    distance near horizontal) the bracket itself is bisected. The search
    returns the best angle seen and counts as converged only when that
    angle's residual is within precision.
    """

    def __init__(self, raytracer: Raytracer, precision: float = 0.001,
                 max_iterations: int = 50, first_step: float = 0.01):
        """
        Initialize solver.

        Args:
            raytracer: Raytracer over the layered model
            precision: Distance/depth tolerance, m
            max_iterations: Iteration cap
            first_step: Angle perturbation after the first evaluation, degrees
        """
        if precision <= 0:
            raise ValueError(f"Solver precision must be positive, got {precision}")
        if max_iterations < 1:
            raise ValueError(f"Solver needs at least one iteration, got {max_iterations}")
        self.raytracer = raytracer
        self.precision = precision
        self.max_iterations = max_iterations
        self.first_step = first_step

    def solve(self, mode: SolveMode, initial_angle: float, travel_time: float, target: float,
              depth_offset: float = 0.0, static_shift: float = 0.0) -> AngleSolution:
        """
        Search the takeoff angle.

        Args:
            mode: Quantity to match
            initial_angle: Starting angle, degrees
            travel_time: Two-way travel time, s
            target: Target distance or depth, m
            depth_offset: Transducer depth, m
            static_shift: Static shift, m

        Returns:
            AngleSolution for the best angle seen
        """
        mode = SolveMode(mode)
        thetamin, thetamax = 0.0, 90.0
        theta = float(np.clip(initial_angle, thetamin, thetamax))
        dtheta = 0.0
        theta_old = theta
        f_old = None
        min_iterations = min(MIN_ITERATIONS, self.max_iterations)

        best_theta, best_residual, best_point = theta, np.inf, None
        point = None

        for iteration in range(1, self.max_iterations + 1):
            if thetamin < theta + dtheta < thetamax:
                theta += dtheta
            elif dtheta < 0.0:
                theta -= 0.5 * (theta - thetamin)
            elif dtheta > 0.0:
                theta += 0.5 * (thetamax - theta)

            point = self.raytracer.trace_point(theta, travel_time, depth_offset, static_shift)
            f = point.distance if mode == SolveMode.DISTANCE else point.depth
            residual = f - target

            if best_point is None or abs(residual) < abs(best_residual):
                best_theta, best_residual, best_point = theta, residual, point

            # Larger angles reach further out and less deep
            too_large = f > target if mode == SolveMode.DISTANCE else f < target
            too_small = f < target if mode == SolveMode.DISTANCE else f > target
            if too_large:
                thetamax = min(thetamax, theta)
            if too_small:
                thetamin = max(thetamin, theta)

            if abs(best_residual) < self.precision and iteration >= min_iterations:
                return self._solution(best_theta, best_residual, iteration, True, best_point)

            if f_old is None:
                dtheta = -self.first_step if too_large else self.first_step
            elif abs(f - f_old) < self.precision:
                # Flat response, secant step is meaningless: bisect the bracket
                dtheta = 0.5 * (thetamin + thetamax) - theta
            else:
                dtheta = (target - f) * (theta - theta_old) / (f - f_old)

            theta_old = theta
            f_old = f

        return self._solution(best_theta, best_residual, self.max_iterations,
                              abs(best_residual) < self.precision, best_point)

    @staticmethod
    def _solution(theta: float, residual: float, iterations: int, converged: bool,
                  point: RayPoint) -> AngleSolution:
        return AngleSolution(angle=float(theta), residual=float(residual), iterations=iterations,
                             converged=converged, terminated=point.terminated,
                             distance=point.distance, depth=point.depth)

    def solve_distance(self, initial_angle: float, travel_time: float, target_distance: float,
                       depth_offset: float = 0.0, static_shift: float = 0.0) -> AngleSolution:
        return self.solve(SolveMode.DISTANCE, initial_angle, travel_time, target_distance,
                          depth_offset, static_shift)

    def solve_depth(self, initial_angle: float, travel_time: float, target_depth: float,
                    depth_offset: float = 0.0, static_shift: float = 0.0) -> AngleSolution:
        return self.solve(SolveMode.DEPTH, initial_angle, travel_time, target_depth,
                          depth_offset, static_shift)

    @staticmethod
    def blend(distance_angle: float, depth_angle: float) -> float:
        """
        Combine the two solutions.

        Near vertical the distance solution dominates, near horizontal the depth
        solution: theta = w*theta_x + (1 - w)*theta_z with w = cos^2(theta_x).
        """
        w = np.cos(np.radians(distance_angle)) ** 2
        return float(w * distance_angle + (1.0 - w) * depth_angle)
