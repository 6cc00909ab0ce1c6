"""
CORE модуль - вычислительное ядро пересчёта геометрии лучей многолучевого эхолота.
"""

from .dto import (SensorChannel, DepthSourceMode, SensorSample, SensorOffsetGeometry, Beam, Ping,
                  CorrectedBeam, CorrectedPing, ProcessingConfigDTO, ProcessingSummary, JobDTO)
from .time_latency import TimeLatencyModel
from .sensor_series import SensorTimeSeries
from .sound_velocity import SoundVelocityProfile, LayeredModel
from .raytracer import Raytracer, RayPoint, RayTable
from .angle_solver import AngleSolver, AngleSolution, SolveMode
from .beam_corrector import BeamGeometryCorrector
from .ping_processor import PingProcessor, PingState
from .preprocessor import SwathPreprocessor

__all__ = [
    'SensorChannel',
    'DepthSourceMode',
    'SensorSample',
    'SensorOffsetGeometry',
    'Beam',
    'Ping',
    'CorrectedBeam',
    'CorrectedPing',
    'ProcessingConfigDTO',
    'ProcessingSummary',
    'JobDTO',
    'TimeLatencyModel',
    'SensorTimeSeries',
    'SoundVelocityProfile',
    'LayeredModel',
    'Raytracer',
    'RayPoint',
    'RayTable',
    'AngleSolver',
    'AngleSolution',
    'SolveMode',
    'BeamGeometryCorrector',
    'PingProcessor',
    'PingState',
    'SwathPreprocessor',
]
