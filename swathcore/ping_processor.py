"""
PingProcessor - per-ping synchronisation, nadir calibration and beam loop.
"""

import logging
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .dto import (CorrectedBeam, CorrectedPing, DepthSourceMode, Ping, ProcessingConfigDTO,
                  SensorChannel, SensorOffsetGeometry)
from .sensor_series import SensorTimeSeries, wrap_degrees
from .sound_velocity import LayeredModel
from .raytracer import Raytracer
from .angle_solver import AngleSolver, AngleSolution
from .beam_corrector import BeamGeometryCorrector, BeamMotion, BeamSetup, PingSync
from .geometry import lever_arm_offsets


class PingState(str, Enum):
    INIT = "init"
    SYNC = "sync"
    NADIR_CALIBRATE = "nadir_calibrate"
    BEAM_LOOP = "beam_loop"
    EMIT = "emit"


@dataclass
class NadirCalibration:
    """Outcome of the per-ping nadir calibration."""
    beam_index: Optional[int] = None
    heave_offset: float = 0.0
    residual: float = 0.0       # Reported minus raytraced depth, m
    solution: Optional[AngleSolution] = None
    setup: Optional[BeamSetup] = None


class PingProcessor:
    """
    Per-ping state machine.

    INIT -> SYNC -> NADIR_CALIBRATE -> BEAM_LOOP -> EMIT. The nadir beam's
    depth residual after a distance-match search becomes a heave offset applied
    to every beam of the ping. Every input ping produces exactly one output
    ping, also when no beam is valid.
    """

    def __init__(self, model: LayeredModel,
                 series: Optional[Dict[SensorChannel, SensorTimeSeries]] = None,
                 offsets: Optional[SensorOffsetGeometry] = None,
                 config: Optional[ProcessingConfigDTO] = None):
        """
        Initialize processor.

        Args:
            model: Frozen layered sound velocity model
            series: Frozen sensor series by channel
            offsets: Platform geometry
            config: Processing parameters
        """
        self.logger = logging.getLogger(__name__)
        self.config = config if config is not None else ProcessingConfigDTO()
        self.offsets = offsets if offsets is not None else SensorOffsetGeometry()
        self.series = series if series is not None else {}

        self.raytracer = Raytracer(model)
        self.solver = AngleSolver(self.raytracer, precision=self.config.precision,
                                  max_iterations=self.config.max_iterations,
                                  first_step=self.config.first_step)
        self.corrector = BeamGeometryCorrector(self.raytracer, self.solver, self.offsets, self.series,
                                               depth_source=self.config.depth_source,
                                               null_detection_mask=self.config.null_detection_mask)

        self.state = PingState.INIT
        self.sync: Optional[PingSync] = None
        self.calibration = NadirCalibration()
        # (time, roll, pitch) of every processed ping
        self.sync_attitude: List[Tuple[float, float, float]] = []

    @property
    def heave_offset(self) -> float:
        return self.calibration.heave_offset

    def _gap_total(self) -> int:
        return sum(ts.gap_count for ts in self.series.values())

    def synchronise(self, ping: Ping) -> PingSync:
        """
        Navigation, heading and attitude at ping time.

        Channels without samples leave the ping's own values unchanged.
        """
        series = self.series
        lon, lat = ping.longitude, ping.latitude
        roll, pitch, heave = ping.roll, ping.pitch, ping.heave

        if SensorChannel.POSITION in series:
            value = series[SensorChannel.POSITION].interpolate(ping.time)
            if value is not None:
                lon, lat = float(value[0]), float(value[1])
        heading = self.corrector.heading_at(ping.time, ping.heading)
        if SensorChannel.ATTITUDE in series and len(series[SensorChannel.ATTITUDE]) > 0:
            roll, pitch, heave = (float(v) for v in series[SensorChannel.ATTITUDE].interpolate(ping.time))

        transducer_depth = ping.transducer_depth
        sensor_depth = None
        if self.config.depth_source != DepthSourceMode.HEAVE:
            sensor_depth = self.corrector.sensor_depth_at(ping.time)
            if sensor_depth is not None:
                offset = lever_arm_offsets(self.offsets.transducer_offset,
                                           self.offsets.depth_sensor_offset, roll, pitch)
                transducer_depth = sensor_depth + float(offset[2])

        return PingSync(time=ping.time, heading=heading, roll=roll, pitch=pitch, heave=heave,
                        transducer_depth=transducer_depth, reported_depth=ping.transducer_depth,
                        speed=ping.speed, sensor_depth=sensor_depth,
                        longitude=float(wrap_degrees(lon, -180.0)), latitude=lat)

    def sample_motions(self, ping: Ping, sync: PingSync) -> List[Optional[BeamMotion]]:
        """Motion of every valid beam, sampled once per ping (None for invalid beams)."""
        return [self.corrector.sample_motion(sync, beam) if self.corrector.is_valid(beam) else None
                for beam in ping.beams]

    def find_nadir(self, ping: Ping, sync: PingSync,
                   motions: Optional[List[Optional[BeamMotion]]] = None) -> Optional[int]:
        """Index of the valid beam with the smallest takeoff angle, or None."""
        if motions is None:
            motions = self.sample_motions(ping, sync)
        best, best_theta = None, np.inf
        for i, beam in enumerate(ping.beams):
            if motions[i] is None:
                continue
            theta = self.corrector.first_cut(sync, beam, motions[i])
            if theta < best_theta:
                best, best_theta = i, theta
        return best

    def calibrate_nadir(self, ping: Ping, sync: PingSync,
                        motions: Optional[List[Optional[BeamMotion]]] = None) -> NadirCalibration:
        """
        Distance-match the nadir beam and take its depth residual as heave offset.

        Returns:
            NadirCalibration (zero offset when no beam is valid)
        """
        if motions is None:
            motions = self.sample_motions(ping, sync)
        index = self.find_nadir(ping, sync, motions)
        if index is None:
            return NadirCalibration()

        setup = self.corrector.prepare(sync, ping.beams[index], motion=motions[index])
        solution = self.solver.solve_distance(setup.theta, setup.travel_time, setup.target_distance,
                                              setup.depth_offset_use, setup.static_shift)
        residual = setup.target_depth - solution.depth
        return NadirCalibration(beam_index=index, heave_offset=residual, residual=residual,
                                solution=solution, setup=setup)

    def process(self, ping: Ping) -> CorrectedPing:
        """
        Run one ping through the state machine.

        Args:
            ping: Raw ping

        Returns:
            CorrectedPing with one CorrectedBeam per input beam
        """
        self.state = PingState.INIT
        gaps_before = self._gap_total()
        warnings = []

        self.state = PingState.SYNC
        sync = self.synchronise(ping)
        self.sync = sync
        self.sync_attitude.append((ping.time, sync.roll, sync.pitch))

        self.state = PingState.NADIR_CALIBRATE
        motions = self.sample_motions(ping, sync)
        self.calibration = self.calibrate_nadir(ping, sync, motions)
        if self.calibration.beam_index is None:
            warnings.append(f"Ping {ping.time:.6f}: no valid beams")
        elif self.calibration.solution is not None and not self.calibration.solution.converged:
            warnings.append(f"Ping {ping.time:.6f}: nadir calibration did not converge")

        self.state = PingState.BEAM_LOOP
        beams: List[CorrectedBeam] = []
        for beam, motion in zip(ping.beams, motions):
            beams.append(self.corrector.correct(sync, beam, self.calibration.heave_offset, motion))

        self.state = PingState.EMIT
        result = CorrectedPing(
            time=ping.time,
            longitude=sync.longitude,
            latitude=sync.latitude,
            heading=sync.heading,
            roll=sync.roll,
            pitch=sync.pitch,
            heave=sync.heave,
            transducer_depth=sync.transducer_depth,
            heave_offset=self.calibration.heave_offset,
            nadir_beam=self.calibration.beam_index,
            beams=beams,
            convergence_failures=sum(1 for b in beams if b.valid and not b.converged),
            ray_terminations=sum(1 for b in beams if b.terminated),
            sensor_gaps=self._gap_total() - gaps_before,
            warnings=warnings,
        )
        for message in warnings:
            self.logger.debug(message)
        return result
