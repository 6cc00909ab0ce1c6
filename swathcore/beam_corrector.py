"""
BeamGeometryCorrector - per-beam takeoff angle and sounding position recomputation.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .dto import Beam, CorrectedBeam, DepthSourceMode, SensorChannel, SensorOffsetGeometry
from .sensor_series import SensorTimeSeries, wrap_degrees
from .raytracer import Raytracer
from .angle_solver import AngleSolver, AngleSolution
from .geometry import beam_angles, rollpitch_to_takeoff, wrap_azimuth, lever_arm_offsets, vertical_lever

logger = logging.getLogger(__name__)

DETECTION_VALID_BIT = 128


@dataclass
class PingSync:
    """Navigation and attitude synchronised to the ping time."""
    time: float
    heading: float
    roll: float
    pitch: float
    heave: float
    transducer_depth: float          # Vertical reference used for ray tracing, m
    reported_depth: float            # Transducer depth reported with the ping, m
    speed: float = 0.0
    sensor_depth: Optional[float] = None
    longitude: float = 0.0
    latitude: float = 0.0


@dataclass
class BeamMotion:
    """Platform state at sector transmit and beam receive time."""
    transmit_time: float
    receive_time: float
    transmit_heading: float
    receive_heading: float
    transmit_roll: float
    transmit_pitch: float
    transmit_heave: float
    receive_roll: float
    receive_pitch: float
    receive_heave: float
    transmit_sensor_depth: Optional[float] = None
    receive_sensor_depth: Optional[float] = None

    @property
    def beam_heave(self) -> float:
        return 0.5 * (self.transmit_heave + self.receive_heave)

    @property
    def differential_heave(self) -> float:
        return self.receive_heave - self.transmit_heave


@dataclass
class BeamSetup:
    """Everything the angle searches need for one beam."""
    motion: BeamMotion
    theta: float                 # First-cut takeoff angle, degrees
    phi: float                   # Yaw-corrected azimuth, degrees
    depth_offset_use: float      # Ray start depth, m
    static_shift: float
    travel_time: float           # Two-way, s
    target_distance: float       # m
    target_depth: float          # m
    offset_forward: float        # Transducer relative to position sensor, m
    offset_starboard: float
    transmit_alongtrack: float   # Along-track motion during the sector transmit delay, m


class BeamGeometryCorrector:
    """
    Recomputes one beam's takeoff angles and position.

    For each beam: transmit/receive times, attitude and heading at both,
    heave and lever-arm corrected ray start depth, roll-pitch to takeoff
    transform with yaw correction, a distance match and a depth match angle
    search, and the blended angle traced to the final sounding.
    """

    def __init__(self, raytracer: Raytracer, solver: AngleSolver,
                 offsets: Optional[SensorOffsetGeometry] = None,
                 series: Optional[Dict[SensorChannel, SensorTimeSeries]] = None,
                 depth_source: DepthSourceMode = DepthSourceMode.HEAVE,
                 null_detection_mask: int = 0x70):
        """
        Initialize corrector.

        Args:
            raytracer: Raytracer over the frozen layered model
            solver: Angle solver sharing the raytracer
            offsets: Platform geometry (default: all zero)
            series: Frozen sensor series by channel (missing channels give neutral values)
            depth_source: Vertical reference source
            null_detection_mask: Detection bits that null a beam when bit 7 is set
        """
        self.raytracer = raytracer
        self.solver = solver
        self.offsets = offsets if offsets is not None else SensorOffsetGeometry()
        self.series = series if series is not None else {}
        self.depth_source = DepthSourceMode(depth_source)
        self.null_detection_mask = null_detection_mask

    def _query(self, channel: SensorChannel, t: float) -> Optional[np.ndarray]:
        ts = self.series.get(channel)
        if ts is None:
            return SensorTimeSeries(channel).neutral()
        return ts.interpolate(t)

    def heading_at(self, t: float, default: float) -> float:
        value = self._query(SensorChannel.HEADING, t)
        if value is None:
            return default
        return float(wrap_degrees(value[0] + self.offsets.heading_bias, 0.0))

    def attitude_at(self, t: float,
                    default: Tuple[float, float, float] = (0.0, 0.0, 0.0)) -> Tuple[float, float, float]:
        """Roll, pitch and heave at time t; default when there is no attitude series."""
        ts = self.series.get(SensorChannel.ATTITUDE)
        if ts is None or len(ts) == 0:
            return default
        roll, pitch, heave = ts.interpolate(t)
        return float(roll), float(pitch), float(heave)

    def sensor_depth_at(self, t: float) -> Optional[float]:
        value = self._query(SensorChannel.SENSOR_DEPTH, t)
        return None if value is None else float(value[0]) + self.offsets.sensor_depth_static

    def is_valid(self, beam: Beam) -> bool:
        """Beam has a positive travel time, a finite depth and is not nulled by its detection byte."""
        if not beam.travel_time > 0 or not np.isfinite(beam.depth):
            return False
        nulled = (beam.detection & DETECTION_VALID_BIT) and (beam.detection & self.null_detection_mask)
        return not nulled

    def is_flagged(self, beam: Beam) -> bool:
        return bool(beam.detection & DETECTION_VALID_BIT) or beam.clean != 0

    def sample_motion(self, sync: PingSync, beam: Beam) -> BeamMotion:
        """Heading and attitude at sector transmit and beam receive time."""
        transmit_time = sync.time + beam.transmit_offset
        receive_time = transmit_time + beam.travel_time

        snapshot = (sync.roll, sync.pitch, sync.heave)
        transmit_heading = self.heading_at(transmit_time, sync.heading)
        transmit_roll, transmit_pitch, transmit_heave = self.attitude_at(transmit_time, snapshot)
        receive_heading = self.heading_at(receive_time, sync.heading)
        receive_roll, receive_pitch, receive_heave = self.attitude_at(receive_time, snapshot)

        motion = BeamMotion(transmit_time=transmit_time, receive_time=receive_time,
                            transmit_heading=transmit_heading, receive_heading=receive_heading,
                            transmit_roll=transmit_roll, transmit_pitch=transmit_pitch,
                            transmit_heave=transmit_heave, receive_roll=receive_roll,
                            receive_pitch=receive_pitch, receive_heave=receive_heave)
        if self.depth_source != DepthSourceMode.HEAVE:
            motion.transmit_sensor_depth = self.sensor_depth_at(transmit_time)
            motion.receive_sensor_depth = self.sensor_depth_at(receive_time)
        return motion

    def takeoff(self, sync: PingSync, beam: Beam, motion: BeamMotion) -> Tuple[float, float]:
        """
        Takeoff angle and yaw-corrected azimuth.

        Returns:
            (theta, phi), degrees
        """
        alpha, beta = beam_angles(beam.tilt_angle, motion.transmit_pitch, beam.pointing_angle,
                                  motion.receive_roll, self.offsets.pitch_bias, self.offsets.roll_bias)
        theta, phi = rollpitch_to_takeoff(alpha, beta)
        # Heading change between ping time and sector transmit rotates the beam
        phi = wrap_azimuth(phi - (motion.transmit_heading - sync.heading))
        return theta, phi

    def first_cut(self, sync: PingSync, beam: Beam, motion: Optional[BeamMotion] = None) -> float:
        """Takeoff angle from vertical before any search, degrees."""
        if motion is None:
            motion = self.sample_motion(sync, beam)
        theta, _ = self.takeoff(sync, beam, motion)
        return theta

    def vertical_motion(self, sync: PingSync, motion: BeamMotion) -> float:
        """Transducer displacement during the beam relative to the ping, m (+ down)."""
        dz = 0.0
        if self.depth_source in (DepthSourceMode.HEAVE, DepthSourceMode.SENSOR_DEPTH_AND_HEAVE):
            dz -= motion.differential_heave
        if self.depth_source in (DepthSourceMode.SENSOR_DEPTH, DepthSourceMode.SENSOR_DEPTH_AND_HEAVE):
            if (motion.transmit_sensor_depth is not None and motion.receive_sensor_depth is not None
                    and sync.sensor_depth is not None):
                beam_depth = 0.5 * (motion.transmit_sensor_depth + motion.receive_sensor_depth)
                dz += beam_depth - sync.sensor_depth
        return dz

    def prepare(self, sync: PingSync, beam: Beam, heave_offset: float = 0.0,
                motion: Optional[BeamMotion] = None) -> BeamSetup:
        """
        Compute search inputs for a beam.

        Args:
            sync: Ping synchronised state
            beam: Raw beam
            heave_offset: Per-ping vertical calibration, m
            motion: Beam motion already sampled for this ping (sampled here when None)

        Returns:
            BeamSetup
        """
        if motion is None:
            motion = self.sample_motion(sync, beam)
        theta, phi = self.takeoff(sync, beam, motion)
        geo = self.offsets

        lever_dz = (vertical_lever(geo.transducer_offset, geo.motion_offset,
                                   motion.receive_roll, motion.transmit_pitch)
                    - vertical_lever(geo.transducer_offset, geo.motion_offset, sync.roll, sync.pitch))
        depth_offset_use = (sync.transducer_depth + self.vertical_motion(sync, motion)
                            + lever_dz + heave_offset)
        static_shift = self.raytracer.static_shift_for(depth_offset_use)

        offset = lever_arm_offsets(geo.transducer_offset, geo.position_offset,
                                   motion.receive_roll, motion.transmit_pitch)
        transmit_alongtrack = sync.speed * beam.transmit_offset

        across = beam.acrosstrack - offset[1]
        along = beam.alongtrack - offset[0] - transmit_alongtrack
        target_distance = float(np.hypot(across, along))
        target_depth = beam.depth + sync.reported_depth

        return BeamSetup(motion=motion, theta=theta, phi=phi, depth_offset_use=depth_offset_use,
                         static_shift=static_shift, travel_time=beam.travel_time,
                         target_distance=target_distance, target_depth=target_depth,
                         offset_forward=float(offset[0]), offset_starboard=float(offset[1]),
                         transmit_alongtrack=transmit_alongtrack)

    def solve(self, setup: BeamSetup) -> Tuple[AngleSolution, AngleSolution, float]:
        """
        Distance match, then depth match seeded by it, then the blend.

        Returns:
            (distance solution, depth solution, blended angle)
        """
        sol_x = self.solver.solve_distance(setup.theta, setup.travel_time, setup.target_distance,
                                           setup.depth_offset_use, setup.static_shift)
        sol_z = self.solver.solve_depth(sol_x.angle, setup.travel_time, setup.target_depth,
                                        setup.depth_offset_use, setup.static_shift)
        return sol_x, sol_z, AngleSolver.blend(sol_x.angle, sol_z.angle)

    def correct(self, sync: PingSync, beam: Beam, heave_offset: float = 0.0,
                motion: Optional[BeamMotion] = None) -> CorrectedBeam:
        """
        Recompute one beam.

        Invalid beams come back with zero angle, azimuth and range and
        valid=False; they are never solved.

        Args:
            sync: Ping synchronised state
            beam: Raw beam
            heave_offset: Per-ping vertical calibration, m
            motion: Beam motion already sampled for this ping

        Returns:
            CorrectedBeam
        """
        if not self.is_valid(beam):
            return CorrectedBeam(valid=False)

        setup = self.prepare(sync, beam, heave_offset, motion)
        sol_x, sol_z, theta = self.solve(setup)
        point = self.raytracer.trace_point(theta, setup.travel_time, setup.depth_offset_use,
                                           setup.static_shift)

        phi = np.radians(setup.phi)
        across = setup.offset_starboard - point.distance * np.sin(phi)
        along = setup.offset_forward + point.distance * np.cos(phi) + setup.transmit_alongtrack

        converged = sol_x.converged and sol_z.converged
        terminated = sol_x.terminated or sol_z.terminated or point.terminated
        if not converged:
            logger.debug(f"Beam at {setup.motion.transmit_time:.3f}s did not converge "
                         f"(residuals {sol_x.residual:.4f} m, {sol_z.residual:.4f} m)")

        return CorrectedBeam(depression=theta, azimuth=setup.phi, range=setup.travel_time,
                             depth=point.depth - sync.transducer_depth,
                             acrosstrack=float(across), alongtrack=float(along),
                             heave=setup.motion.beam_heave, valid=True,
                             flagged=self.is_flagged(beam), converged=converged,
                             terminated=terminated)
