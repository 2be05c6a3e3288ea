"""Single-pole low-pass filter used to pre-condition samples."""
from __future__ import annotations
import math
import numpy as np
from scipy import signal as scipy_signal


def lowpass_alpha(cutoff_hz: float, sample_rate: float) -> float:
    """Smoothing coefficient dt / (RC + dt) for a given cutoff."""
    if cutoff_hz <= 0 or sample_rate <= 0:
        raise ValueError("cutoff_hz and sample_rate must be positive.")
    rc = 1.0 / (2.0 * math.pi * cutoff_hz)
    dt = 1.0 / sample_rate
    return dt / (rc + dt)


def lowpass(samples: np.ndarray, cutoff_hz: float, sample_rate: float) -> np.ndarray:
    """
    Apply y[n] = y[n-1] + alpha * (x[n] - y[n-1]) with y[-1] = 0.

    Args:
        samples: Mono input signal
        cutoff_hz: -3 dB point of the filter
        sample_rate: Sample rate in Hz

    Returns:
        Filtered float64 signal of the same length
    """
    x = np.asarray(samples, dtype=np.float64)
    if x.ndim != 1:
        raise ValueError("lowpass expects mono 1D signal.")
    filt = LowPassFilter(cutoff_hz, sample_rate)
    if x.size == 0:
        return x.copy()
    return filt.process(x)


class LowPassFilter:
    """Stateful single-pole low-pass filter for block-wise processing."""

    def __init__(self, cutoff_hz: float, sample_rate: float):
        self.alpha = lowpass_alpha(cutoff_hz, sample_rate)
        self._b = np.array([self.alpha])
        self._a = np.array([1.0, self.alpha - 1.0])
        self._zi = np.zeros(1, dtype=np.float64)

    def process(self, block: np.ndarray) -> np.ndarray:
        x = np.asarray(block, dtype=np.float64)
        y, self._zi = scipy_signal.lfilter(self._b, self._a, x, zi=self._zi)
        return y

    def reset(self) -> None:
        self._zi = np.zeros(1, dtype=np.float64)
