"""
SoundVelocityProfile - sound speed profile and its constant-velocity layered model.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple

# Profiles are extended to this depth by repeating the last velocity
MAX_PROFILE_DEPTH = 12000.0
DEFAULT_SOUND_VELOCITY = 1500.0


class SoundVelocityProfile:
    """
    Ordered (depth, velocity) knots.

    Depth strictly increasing, at least two knots. The profile is extended to
    MAX_PROFILE_DEPTH by repeating the last velocity; the original knots are
    kept alongside the extended ones.
    """

    def __init__(self, depths: Sequence[float], velocities: Sequence[float]):
        """
        Initialize and validate profile.

        Args:
            depths: Knot depths, m (strictly increasing)
            velocities: Sound speed at each knot, m/s
        """
        depths = np.asarray(depths, dtype=float)
        velocities = np.asarray(velocities, dtype=float)

        if depths.ndim != 1 or depths.shape != velocities.shape:
            raise ValueError(f"Profile needs matching depth/velocity lists, got {depths.shape} and {velocities.shape}")
        if depths.size < 2:
            raise ValueError(f"Profile needs at least 2 knots, got {depths.size}")
        if not np.all(np.isfinite(depths)) or not np.all(np.isfinite(velocities)):
            raise ValueError("Profile contains non-finite values")
        if np.any(np.diff(depths) <= 0):
            raise ValueError("Profile depths must be strictly increasing")
        if np.any(velocities <= 0):
            raise ValueError("Profile velocities must be positive")

        self.original_depths = depths
        self.original_velocities = velocities

        if depths[-1] < MAX_PROFILE_DEPTH:
            depths = np.append(depths, MAX_PROFILE_DEPTH)
            velocities = np.append(velocities, velocities[-1])
        self.depths = depths
        self.velocities = velocities

        for arr in (self.original_depths, self.original_velocities, self.depths, self.velocities):
            arr.setflags(write=False)

    @classmethod
    def from_knots(cls, knots: Sequence[Tuple[float, float]]) -> 'SoundVelocityProfile':
        """Build from a list of (depth, velocity) pairs."""
        knots = list(knots)
        if len(knots) < 2:
            raise ValueError(f"Profile needs at least 2 knots, got {len(knots)}")
        depths, velocities = zip(*knots)
        return cls(depths, velocities)

    @classmethod
    def half_space(cls, velocity: float = DEFAULT_SOUND_VELOCITY) -> 'SoundVelocityProfile':
        """Constant-velocity profile from the surface down to MAX_PROFILE_DEPTH."""
        if velocity <= 0:
            raise ValueError(f"Sound velocity must be positive, got {velocity}")
        return cls([0.0, MAX_PROFILE_DEPTH], [velocity, velocity])

    @property
    def knots(self) -> List[Tuple[float, float]]:
        return list(zip(self.original_depths.tolist(), self.original_velocities.tolist()))

    def velocity_at(self, depth: float) -> float:
        """Linearly interpolated sound speed at depth, m/s."""
        return float(np.interp(depth, self.depths, self.velocities))

    def layered(self) -> 'LayeredModel':
        return LayeredModel(self)

    def __repr__(self):
        return (f"SoundVelocityProfile(n={self.original_depths.size}, "
                f"{self.original_depths[0]:.1f}-{self.original_depths[-1]:.1f} m)")


class LayeredModel:
    """
    Piecewise-constant velocity model derived from a profile.

    Layer i spans [boundaries[i], boundaries[i+1]) with velocity equal to the
    mean of the two bounding knot velocities. The last layer starts at the last
    knot, uses its velocity and extends without bound.
    """

    def __init__(self, profile: SoundVelocityProfile):
        self.profile = profile
        self.boundaries = profile.depths
        mean = 0.5 * (profile.velocities[:-1] + profile.velocities[1:])
        self.layer_velocities = np.append(mean, profile.velocities[-1])
        self.layer_velocities.setflags(write=False)

    @classmethod
    def from_knots(cls, knots: Sequence[Tuple[float, float]]) -> 'LayeredModel':
        return cls(SoundVelocityProfile.from_knots(knots))

    @classmethod
    def half_space(cls, velocity: float = DEFAULT_SOUND_VELOCITY) -> 'LayeredModel':
        return cls(SoundVelocityProfile.half_space(velocity))

    @property
    def first_depth(self) -> float:
        return float(self.boundaries[0])

    @property
    def nlayers(self) -> int:
        return self.layer_velocities.size

    def layer_index(self, depth: float) -> int:
        """
        Index of the layer containing depth.

        Depths above the first knot map to layer 0.
        """
        i = int(np.searchsorted(self.boundaries, depth, side='right')) - 1
        return min(max(i, 0), self.nlayers - 1)

    def mean_velocity(self, depth: float, start: Optional[float] = None) -> float:
        """
        Depth-averaged sound speed between start (default: first knot) and depth.

        Averaged as depth / one-way vertical travel time.
        """
        top = self.first_depth if start is None else start
        if depth <= top:
            return float(self.layer_velocities[self.layer_index(top)])

        travel_time = 0.0
        for i in range(self.layer_index(top), self.nlayers):
            z0 = max(top, self.boundaries[i])
            z1 = depth if i == self.nlayers - 1 else min(depth, self.boundaries[i + 1])
            if z1 > z0:
                travel_time += (z1 - z0) / self.layer_velocities[i]
            if z1 >= depth:
                break
        return float((depth - top) / travel_time)

    def uncorrect_depth(self, depth: float, reference_velocity: float = DEFAULT_SOUND_VELOCITY,
                        start: Optional[float] = None) -> float:
        """
        Depth that a constant reference sound speed would have produced.

        Args:
            depth: Raytraced depth, m
            reference_velocity: Reference sound speed, m/s
            start: Depth the ray started at, m (default: first knot)

        Returns:
            Uncorrected depth, m
        """
        top = self.first_depth if start is None else start
        if depth <= top:
            return depth
        return top + (depth - top) * reference_velocity / self.mean_velocity(depth, top)

    def __repr__(self):
        return f"LayeredModel(layers={self.nlayers}, first_depth={self.first_depth:.1f} m)"
