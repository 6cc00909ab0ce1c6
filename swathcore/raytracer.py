"""
Raytracer - straight-ray propagation through a layered sound velocity model.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .sound_velocity import LayeredModel


@dataclass
class RayPoint:
    """End point of a traced ray."""
    distance: float       # Horizontal distance from the start, m
    depth: float          # Depth, m
    travel_time: float    # Two-way travel time consumed, s
    terminated: bool = False  # Ray turned horizontal at a layer boundary


@dataclass
class RayTable:
    """
    Ray path sampled at every layer boundary for one takeoff angle.

    Times are two-way travel times. Between boundaries the ray is straight,
    so positions at intermediate times are linear in time.
    """
    angle: float
    start_depth: float
    times: np.ndarray
    distances: np.ndarray
    depths: np.ndarray
    terminated: bool = False
    tail_rate: Optional[Tuple[float, float]] = None  # (dx/dt, dz/dt) beyond the last boundary

    def position_at(self, travel_time: float) -> RayPoint:
        """
        Position reached at a two-way travel time.

        Args:
            travel_time: Two-way travel time, s

        Returns:
            RayPoint (terminated if the ray stopped before that time)
        """
        if travel_time <= 0:
            return RayPoint(0.0, self.start_depth, 0.0)

        if travel_time > self.times[-1]:
            if self.tail_rate is None:
                return RayPoint(float(self.distances[-1]), float(self.depths[-1]),
                                float(self.times[-1]), self.terminated)
            dt = travel_time - self.times[-1]
            return RayPoint(float(self.distances[-1] + self.tail_rate[0] * dt),
                            float(self.depths[-1] + self.tail_rate[1] * dt),
                            float(travel_time))

        x = float(np.interp(travel_time, self.times, self.distances))
        z = float(np.interp(travel_time, self.times, self.depths))
        return RayPoint(x, z, float(travel_time))


class Raytracer:
    """
    Raytracer over a frozen LayeredModel.

    Within a layer of velocity v, a ray with ray parameter p = sin(theta)/v0
    advances dx = dz * p*v / sqrt(1 - (p*v)^2) and takes
    dt = 2*dz / (v * sqrt(1 - (p*v)^2)) of two-way time.
    Tables are cached per instance.
    """

    def __init__(self, model: LayeredModel):
        """
        Initialize raytracer.

        Args:
            model: Layered sound velocity model
        """
        self.model = model
        self._tables: Dict[Tuple[float, float, float], RayTable] = {}

    def static_shift_for(self, depth_offset: float) -> float:
        """
        Vertical shift needed to start a ray above the first profile knot.

        Args:
            depth_offset: Transducer depth, m

        Returns:
            Static shift, m (0 when the transducer lies inside the profile)
        """
        first = self.model.first_depth
        return depth_offset - first if depth_offset < first else 0.0

    def _slowness(self, angle: float, start_depth: float) -> float:
        v0 = self.model.layer_velocities[self.model.layer_index(start_depth)]
        return np.sin(np.radians(angle)) / v0

    def trace_point(self, angle: float, travel_time: float,
                    depth_offset: float = 0.0, static_shift: float = 0.0) -> RayPoint:
        """
        Trace a ray for a given two-way travel time.

        Args:
            angle: Takeoff angle from vertical, degrees
            travel_time: Two-way travel time, s
            depth_offset: Transducer depth, m
            static_shift: Shift applied so the ray starts inside the profile, m;
                the trace starts at depth_offset - static_shift and the result
                depth is shifted back.

        Returns:
            RayPoint at the end of the travel time (or at the termination boundary)
        """
        model = self.model
        z = depth_offset - static_shift
        x = 0.0
        t = 0.0
        remaining = travel_time
        i = model.layer_index(z)
        p = self._slowness(angle, z)
        terminated = False

        while remaining > 0:
            v = model.layer_velocities[i]
            pv = p * v
            if abs(pv) >= 1.0:
                terminated = True
                break
            cos = np.sqrt(1.0 - pv * pv)

            if i < model.nlayers - 1:
                dz = model.boundaries[i + 1] - z
                dt = 2.0 * dz / (v * cos)
            else:
                dt = np.inf

            if dt >= remaining:
                dz = 0.5 * remaining * v * cos
                x += dz * pv / cos
                z += dz
                t += remaining
                break

            x += dz * pv / cos
            z += dz
            t += dt
            remaining -= dt
            i += 1

        return RayPoint(float(x), float(z + static_shift), float(t), terminated)

    def trace_to_depth(self, angle: float, target_depth: float,
                       depth_offset: float = 0.0, static_shift: float = 0.0) -> RayPoint:
        """
        Trace a ray down to a target depth.

        Args:
            angle: Takeoff angle from vertical, degrees
            target_depth: Depth to reach, m
            depth_offset: Transducer depth, m
            static_shift: Static shift, m (see trace_point)

        Returns:
            RayPoint with the two-way travel time needed to reach target_depth
        """
        model = self.model
        z = depth_offset - static_shift
        goal = target_depth - static_shift
        x = 0.0
        t = 0.0
        i = model.layer_index(z)
        p = self._slowness(angle, z)
        terminated = False

        while z < goal:
            v = model.layer_velocities[i]
            pv = p * v
            if abs(pv) >= 1.0:
                terminated = True
                break
            cos = np.sqrt(1.0 - pv * pv)
            bottom = model.boundaries[i + 1] if i < model.nlayers - 1 else np.inf
            dz = min(bottom, goal) - z
            x += dz * pv / cos
            t += 2.0 * dz / (v * cos)
            z += dz
            i = min(i + 1, model.nlayers - 1)

        return RayPoint(float(x), float(z + static_shift), float(t), terminated)

    def trace_table(self, angle: float, depth_offset: float = 0.0,
                    max_depth: Optional[float] = None) -> RayTable:
        """
        Trace a ray through every layer boundary down to max_depth.

        Args:
            angle: Takeoff angle from vertical, degrees
            depth_offset: Start depth, m
            max_depth: Deepest boundary to trace to, m (default: profile bottom)

        Returns:
            RayTable (cached per angle/start/max depth)
        """
        model = self.model
        bottom_depth = float(model.boundaries[-1]) if max_depth is None else float(max_depth)
        key = (float(angle), float(depth_offset), bottom_depth)
        if key in self._tables:
            return self._tables[key]

        z = depth_offset
        x = 0.0
        t = 0.0
        times = [0.0]
        distances = [0.0]
        depths = [z]
        i = model.layer_index(z)
        p = self._slowness(angle, z)
        terminated = False
        tail_rate = None

        while True:
            v = model.layer_velocities[i]
            pv = p * v
            if abs(pv) >= 1.0:
                terminated = True
                break
            cos = np.sqrt(1.0 - pv * pv)
            if z >= bottom_depth or i == model.nlayers - 1:
                # Beyond the table the ray keeps going in the current layer
                tail_rate = (0.5 * v * pv, 0.5 * v * cos)
                if z < bottom_depth:
                    dz = bottom_depth - z
                    x += dz * pv / cos
                    t += 2.0 * dz / (v * cos)
                    z = bottom_depth
                    times.append(t)
                    distances.append(x)
                    depths.append(z)
                break
            dz = min(model.boundaries[i + 1], bottom_depth) - z
            x += dz * pv / cos
            t += 2.0 * dz / (v * cos)
            z += dz
            times.append(t)
            distances.append(x)
            depths.append(z)
            if z < model.boundaries[i + 1]:
                tail_rate = (0.5 * v * pv, 0.5 * v * cos)
                break
            i += 1

        table = RayTable(angle=float(angle), start_depth=float(depth_offset),
                         times=np.asarray(times), distances=np.asarray(distances),
                         depths=np.asarray(depths), terminated=terminated,
                         tail_rate=tail_rate)
        self._tables[key] = table
        return table

    def clear_cache(self):
        self._tables.clear()
