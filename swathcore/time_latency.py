"""
TimeLatencyModel - time latency correction for asynchronous sensor data.
"""

import numpy as np
from enum import Enum
from typing import Optional, Sequence
from scipy.interpolate import interp1d


class LatencyMode(str, Enum):
    OFF = "off"
    CONSTANT = "constant"
    MODEL = "model"


class TimeLatencyModel:
    """
    Time latency model.

    Either a single constant offset or a piecewise-linear (time, latency)
    series. Latency is subtracted from sensor timestamps.
    """

    def __init__(self, constant: Optional[float] = None,
                 times: Optional[Sequence[float]] = None,
                 latencies: Optional[Sequence[float]] = None):
        """
        Initialize latency model.

        Args:
            constant: Constant latency, s
            times: Model epoch times, s (used when constant is None)
            latencies: Latency at each model time, s
        """
        if constant is not None and times is not None:
            raise ValueError("Latency model takes either a constant or a time series, not both")

        self.constant = 0.0
        self.times = np.zeros(0)
        self.latencies = np.zeros(0)

        if constant is not None:
            self.mode = LatencyMode.CONSTANT
            self.constant = float(constant)
        elif times is not None:
            times = np.asarray(times, dtype=float)
            latencies = np.asarray(latencies if latencies is not None else [], dtype=float)
            if times.size == 0:
                raise ValueError("Latency model series is empty")
            if times.shape != latencies.shape:
                raise ValueError(f"Latency model has {times.size} times but {latencies.size} latencies")
            if np.any(np.diff(times) <= 0):
                raise ValueError("Latency model times must be strictly increasing")
            self.mode = LatencyMode.MODEL
            self.times = times
            self.latencies = latencies
            if times.size > 1:
                self._interp = interp1d(times, latencies, kind='linear', bounds_error=False,
                                        fill_value=(latencies[0], latencies[-1]), assume_sorted=True)
            else:
                self._interp = lambda t: np.full_like(np.asarray(t, dtype=float), latencies[0])
        else:
            self.mode = LatencyMode.OFF

    @classmethod
    def from_constant(cls, latency: float) -> 'TimeLatencyModel':
        return cls(constant=latency)

    @classmethod
    def from_table(cls, times: Sequence[float], latencies: Sequence[float]) -> 'TimeLatencyModel':
        return cls(times=times, latencies=latencies)

    def latency_at(self, t):
        """
        Latency at time(s) t.

        Outside the model series the end values are held.

        Args:
            t: Epoch time or array of times, s

        Returns:
            Latency, s (same shape as t)
        """
        if self.mode == LatencyMode.CONSTANT:
            return np.full_like(np.asarray(t, dtype=float), self.constant) if np.ndim(t) else self.constant
        if self.mode == LatencyMode.MODEL:
            result = self._interp(t)
            return result if np.ndim(t) else float(result)
        return np.zeros_like(np.asarray(t, dtype=float)) if np.ndim(t) else 0.0

    @property
    def is_active(self) -> bool:
        return self.mode != LatencyMode.OFF

    def __repr__(self):
        if self.mode == LatencyMode.CONSTANT:
            return f"TimeLatencyModel(constant={self.constant}s)"
        if self.mode == LatencyMode.MODEL:
            return f"TimeLatencyModel(model, n={self.times.size})"
        return "TimeLatencyModel(off)"
