"""Windowing functions for DSP operations."""
import numpy as np


def hann(n: int) -> np.ndarray:
    """Generate a Hann window of length n."""
    return np.hanning(n).astype(np.float64)


def hann_open(n: int) -> np.ndarray:
    """Hann window of length n without its zero-valued end points."""
    return np.hanning(n + 2)[1:-1].astype(np.float64)
