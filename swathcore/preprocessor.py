"""
SwathPreprocessor - two-pass driver for beam geometry recomputation.
"""

import logging
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple, Union

import numpy as np

from .dto import (CorrectedPing, Ping, ProcessingConfigDTO, ProcessingSummary, SensorChannel,
                  SensorOffsetGeometry, SensorSample)
from .sensor_series import SensorTimeSeries
from .sound_velocity import LayeredModel, SoundVelocityProfile
from .time_latency import TimeLatencyModel
from .ping_processor import PingProcessor

Record = Union[Ping, SensorSample]


class SwathPreprocessor:
    """
    Two-pass preprocessor.

    Pass 1 reads every record, storing asynchronous sensor samples and the
    ping time span; the sensor series are then latency corrected, smoothed
    and frozen. Pass 2 reads the records again and corrects each ping in file
    order. Pings are never dropped.
    """

    def __init__(self, config: Optional[ProcessingConfigDTO] = None,
                 offsets: Optional[SensorOffsetGeometry] = None,
                 profile: Optional[SoundVelocityProfile] = None,
                 latency: Optional[TimeLatencyModel] = None):
        """
        Initialize preprocessor.

        Args:
            config: Processing parameters
            offsets: Platform geometry
            profile: Sound velocity profile (default: half space at the configured velocity)
            latency: Latency model (default: config.latency_constant if set)
        """
        self.logger = logging.getLogger(__name__)
        self.config = config if config is not None else ProcessingConfigDTO()
        self.offsets = offsets if offsets is not None else SensorOffsetGeometry()

        if profile is None:
            profile = SoundVelocityProfile.half_space(self.config.default_sound_velocity)
        self.model = LayeredModel(profile)

        if latency is None and self.config.latency_constant is not None:
            latency = TimeLatencyModel.from_constant(self.config.latency_constant)
        self.latency = latency

        self.series: Dict[SensorChannel, SensorTimeSeries] = {
            channel: SensorTimeSeries(channel) for channel in SensorChannel
        }
        self.summary = ProcessingSummary()
        self.processor: Optional[PingProcessor] = None
        self.frozen = False

    def add_sample(self, sample: SensorSample):
        self.series[sample.channel].append(sample.time, sample.values)

    def first_pass(self, records: Iterable[Record]):
        """
        Populate the sensor series and the ping time span.

        Args:
            records: Pings and sensor samples in file order
        """
        if self.frozen:
            raise ValueError("First pass already finished")

        npings = 0
        for record in records:
            if isinstance(record, SensorSample):
                self.add_sample(record)
            elif isinstance(record, Ping):
                npings += 1
                if self.summary.start_time is None or record.time < self.summary.start_time:
                    self.summary.start_time = record.time
                if self.summary.end_time is None or record.time > self.summary.end_time:
                    self.summary.end_time = record.time
            else:
                raise ValueError(f"Unsupported record type: {type(record).__name__}")

        self.summary.samples = {channel.value: len(ts) for channel, ts in self.series.items()}
        self.logger.info(f"First pass: {npings} pings, samples {self.summary.samples}")

    def freeze(self):
        """Apply latency and smoothing, then make the series read-only."""
        config = self.config
        if self.latency is not None and self.latency.is_active:
            for channel in config.latency_channels:
                self.series[channel].apply_time_latency(self.latency)
            self.logger.info(f"Applied {self.latency} to {[c.value for c in config.latency_channels]}")

        if config.heading_filter_window > 0:
            self.series[SensorChannel.HEADING].apply_gaussian_filter(config.heading_filter_window)
        if config.attitude_filter_window > 0:
            self.series[SensorChannel.ATTITUDE].apply_gaussian_filter(config.attitude_filter_window)
        if config.sensor_depth_filter_window > 0:
            self.series[SensorChannel.SENSOR_DEPTH].apply_gaussian_filter(
                config.sensor_depth_filter_window, taper_depth=config.sensor_depth_filter_taper)

        for ts in self.series.values():
            ts.freeze()
        self.frozen = True

        series = {channel: ts for channel, ts in self.series.items() if len(ts) > 0}
        self.processor = PingProcessor(self.model, series, self.offsets, config)

    def second_pass(self, records: Iterable[Record]) -> Iterator[CorrectedPing]:
        """
        Correct every ping in file order.

        Args:
            records: The same records as the first pass (sensor samples are skipped)

        Yields:
            CorrectedPing per input ping
        """
        if not self.frozen:
            raise ValueError("Second pass requires a finished first pass")

        summary = self.summary
        for record in records:
            if not isinstance(record, Ping):
                continue
            corrected = self.processor.process(record)
            summary.pings += 1
            for beam in corrected.beams:
                if beam.valid:
                    summary.beams_valid += 1
                    if beam.flagged:
                        summary.beams_flagged += 1
                else:
                    summary.beams_invalid += 1
            summary.convergence_failures += corrected.convergence_failures
            summary.ray_terminations += corrected.ray_terminations
            summary.sensor_gaps += corrected.sensor_gaps
            summary.warnings.extend(corrected.warnings)
            yield corrected

    def run(self, records: Callable[[], Iterable[Record]]) -> Iterator[CorrectedPing]:
        """
        Run both passes.

        Args:
            records: Callable returning a fresh iterator over the input records

        Yields:
            CorrectedPing per input ping
        """
        self.first_pass(records())
        self.freeze()
        yield from self.second_pass(records())
        self.log_summary()

    def log_summary(self):
        s = self.summary
        self.logger.info(f"Processed {s.pings} pings: {s.beams_valid} valid beams "
                         f"({s.beams_flagged} flagged), {s.beams_invalid} invalid, "
                         f"{s.convergence_failures} convergence failures, "
                         f"{s.ray_terminations} ray terminations, {s.sensor_gaps} sensor gaps")
        if s.warnings:
            self.logger.warning(f"{len(s.warnings)} warnings, first: {s.warnings[0]}")

    def ancillary_window(self) -> Optional[Tuple[float, float]]:
        """Time window for ancillary output, or None when no ping was read."""
        s = self.summary
        if s.start_time is None:
            return None
        margin = self.config.ancillary_margin
        return s.start_time - margin, s.end_time + margin

    def synchronous_attitude(self) -> np.ndarray:
        """(time, roll, pitch) rows of the processed pings."""
        if self.processor is None or not self.processor.sync_attitude:
            return np.zeros((0, 3))
        return np.asarray(self.processor.sync_attitude, dtype=float)

    def asynchronous_heading(self) -> np.ndarray:
        """(time, heading) rows inside the ancillary window."""
        return self._window_rows(SensorChannel.HEADING, [0])

    def asynchronous_attitude(self) -> np.ndarray:
        """(time, roll, pitch) rows inside the ancillary window."""
        return self._window_rows(SensorChannel.ATTITUDE, [0, 1])

    def _window_rows(self, channel: SensorChannel, components) -> np.ndarray:
        window = self.ancillary_window()
        if window is None:
            return np.zeros((0, 1 + len(components)))
        times, values = self.series[channel].window(*window)
        return np.column_stack([times, values[:, components]])
