"""
SensorTimeSeries - asynchronous sensor stream with latency, smoothing and interpolation.
"""

import logging
import numpy as np
from typing import Dict, Optional, Sequence, Tuple, Union

from .dto import SensorChannel, CHANNEL_FIELDS
from .time_latency import TimeLatencyModel

logger = logging.getLogger(__name__)


# Components interpolated on a circle: component index -> lower edge of output range, degrees
CIRCULAR_COMPONENTS: Dict[SensorChannel, Dict[int, float]] = {
    SensorChannel.HEADING: {0: 0.0},
    SensorChannel.POSITION: {0: -180.0},
}

# Value returned when a channel has no samples at all. None means "no change".
NEUTRAL_DEFAULTS: Dict[SensorChannel, Optional[Tuple[float, ...]]] = {
    SensorChannel.POSITION: None,
    SensorChannel.HEADING: None,
    SensorChannel.ATTITUDE: (0.0, 0.0, 0.0),
    SensorChannel.SENSOR_DEPTH: None,
    SensorChannel.ALTITUDE: (0.0,),
}


def wrap_degrees(angle, lower: float = -180.0):
    """
    Wrap angle(s) into [lower, lower + 360).

    Args:
        angle: Angle or array of angles, degrees
        lower: Lower edge of the output range, degrees

    Returns:
        Wrapped angle(s), degrees
    """
    return np.mod(np.asarray(angle, dtype=float) - lower, 360.0) + lower


class SensorTimeSeries:
    """
    Time-ordered samples of one asynchronous sensor channel.

    Samples are stored in arrival order. The series is filled during the first
    pass, corrected (latency, smoothing) and then frozen; in the second pass it
    is only queried through interpolate(). Interpolation keeps a search cursor
    that is advanced by non-decreasing queries, so a pass over the pings costs
    amortised O(1) per lookup.
    """

    def __init__(self, channel: Union[SensorChannel, str]):
        """
        Initialize an empty series.

        Args:
            channel: Sensor channel tag
        """
        self.channel = SensorChannel(channel)
        self.fields = CHANNEL_FIELDS[self.channel]
        self.ncomponents = len(self.fields)
        self.circular = CIRCULAR_COMPONENTS.get(self.channel, {})

        self._times = np.zeros(0)
        self._values = np.zeros((0, self.ncomponents))
        self._pending_times = []
        self._pending_values = []

        self.frozen = False
        self.gap_count = 0
        self._cursor = 0

    def append(self, time: float, value: Union[float, Sequence[float]]):
        """
        Append one sample in arrival order.

        Args:
            time: Sample epoch time, s
            value: Value (scalar for single-component channels) or value tuple
        """
        if self.frozen:
            raise ValueError(f"{self.channel.value} series is frozen")

        components = np.atleast_1d(np.asarray(value, dtype=float))
        if components.size != self.ncomponents:
            raise ValueError(
                f"{self.channel.value} sample needs {self.ncomponents} values, got {components.size}")

        self._pending_times.append(float(time))
        self._pending_values.append(components)

    def _flush(self):
        if self._pending_times:
            self._times = np.concatenate([self._times, np.asarray(self._pending_times)])
            self._values = np.vstack([self._values, np.asarray(self._pending_values)])
            self._pending_times = []
            self._pending_values = []

    @property
    def times(self) -> np.ndarray:
        self._flush()
        return self._times

    @property
    def values(self) -> np.ndarray:
        self._flush()
        return self._values

    def __len__(self):
        return self._times.size + len(self._pending_times)

    def freeze(self):
        """Finish the first pass; the series becomes read-only."""
        self._flush()
        self._times.setflags(write=False)
        self._values.setflags(write=False)
        self.frozen = True
        self._cursor = 0
        logger.debug(f"Froze {self.channel.value} series with {len(self)} samples")

    def reset_cursor(self):
        """Rewind the interpolation cursor for a new pass."""
        self._cursor = 0

    def apply_time_latency(self, model: Optional[TimeLatencyModel]):
        """
        Subtract the time latency from every timestamp.

        Args:
            model: Latency model (None or an inactive model is a no-op)
        """
        if self.frozen:
            raise ValueError(f"{self.channel.value} series is frozen")
        if model is None or not model.is_active or len(self) == 0:
            return

        times = self.times
        self._times = times - np.asarray(model.latency_at(times), dtype=float)
        self._cursor = 0
        logger.debug(f"Applied {model} to {self.channel.value} series")

    def apply_gaussian_filter(self, window_seconds: float, taper_depth: Optional[float] = None):
        """
        Gaussian time-domain smoothing.

        Sample weights are exp(-(dt/window)^2) over +/- 4 windows, with dt taken
        from the actual timestamps. Circular components are smoothed through
        their unit vectors.

        Args:
            window_seconds: Gaussian half width, s (<= 0 is a no-op)
            taper_depth: Optional depth scale, m. Samples deeper than twice this
                value blend back toward the raw value (sensor depth only).
        """
        if self.frozen:
            raise ValueError(f"{self.channel.value} series is frozen")
        n = len(self)
        if window_seconds <= 0 or n < 2:
            return

        times = self.times
        raw = self.values
        span = times[-1] - times[0]
        mean_dt = abs(span) / (n - 1)
        nhalf = n if mean_dt <= 0 else max(1, int(4.0 * window_seconds / mean_dt))

        filtered = np.empty_like(raw)
        for i in range(n):
            j1 = max(i - nhalf, 0)
            j2 = min(i + nhalf, n - 1)
            weights = np.exp(-((times[j1:j2 + 1] - times[i]) / window_seconds) ** 2)
            wsum = np.sum(weights)
            for k in range(self.ncomponents):
                segment = raw[j1:j2 + 1, k]
                if k in self.circular:
                    rad = np.radians(segment)
                    s = np.sum(weights * np.sin(rad)) / wsum
                    c = np.sum(weights * np.cos(rad)) / wsum
                    filtered[i, k] = np.degrees(np.arctan2(s, c))
                else:
                    filtered[i, k] = np.sum(weights * segment) / wsum

        for k, lower in self.circular.items():
            filtered[:, k] = wrap_degrees(filtered[:, k], lower)

        if taper_depth is not None and taper_depth > 0:
            depth = raw[:, 0]
            factor = np.where(depth < 2.0 * taper_depth, 1.0,
                              np.exp(-(depth - 2.0 * taper_depth) / taper_depth))
            filtered = (1.0 - factor)[:, None] * raw + factor[:, None] * filtered

        self._values = filtered
        logger.debug(f"Gaussian filter ({window_seconds} s) applied to {self.channel.value} series")

    def neutral(self) -> Optional[np.ndarray]:
        default = NEUTRAL_DEFAULTS[self.channel]
        return None if default is None else np.array(default, dtype=float)

    def interpolate(self, query_time: float) -> Optional[np.ndarray]:
        """
        Interpolated value at query time.

        Outside the sampled interval the nearest end value is held and the gap
        counter is incremented. With no samples the channel's neutral default
        is returned (None for "no change").

        Args:
            query_time: Epoch time, s

        Returns:
            Value components, or None
        """
        times = self.times
        values = self.values
        n = times.size

        if n == 0:
            self.gap_count += 1
            return self.neutral()

        if query_time <= times[0] or n == 1:
            if query_time != times[0]:
                self.gap_count += 1
            return values[0].copy()
        if query_time >= times[-1]:
            if query_time > times[-1]:
                self.gap_count += 1
            return values[-1].copy()

        i = min(self._cursor, n - 2)
        if query_time < times[i]:
            # Query earlier than the cursor: relocate instead of walking back
            i = max(int(np.searchsorted(times, query_time, side='right')) - 1, 0)
        while i < n - 2 and times[i + 1] <= query_time:
            i += 1
        self._cursor = i

        t0, t1 = times[i], times[i + 1]
        f = (query_time - t0) / (t1 - t0) if t1 > t0 else 0.0
        f = min(max(f, 0.0), 1.0)

        v0 = values[i]
        v1 = values[i + 1]
        result = v0 + f * (v1 - v0)
        for k, lower in self.circular.items():
            delta = wrap_degrees(v1[k] - v0[k], -180.0)
            result[k] = wrap_degrees(v0[k] + f * delta, lower)
        return result

    def window(self, start: float, end: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Samples with start <= time <= end.

        Returns:
            (times, values)
        """
        times = self.times
        mask = (times >= start) & (times <= end)
        return times[mask], self.values[mask]

    def __repr__(self):
        return f"SensorTimeSeries({self.channel.value}, n={len(self)}, gaps={self.gap_count})"
