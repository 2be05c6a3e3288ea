"""Time-domain and spectral descriptors."""
from __future__ import annotations

import numpy as np

from spectraprint.types import SpectralFeatures

ROLLOFF_FRACTION = 0.99
_EPS = 1e-20


def rms(x: np.ndarray) -> float:
    """Root-mean-square amplitude."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x ** 2)))


def energy(x: np.ndarray) -> float:
    """Sum of squared samples."""
    x = np.asarray(x, dtype=np.float64)
    return float(np.sum(x ** 2))


def zero_crossings(x: np.ndarray, previous: float | None = None) -> int:
    """
    Count sign changes between consecutive samples.

    Zero counts as positive. ``previous`` is the sample preceding ``x`` when
    a signal is processed block by block.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return 0
    non_negative = x >= 0.0
    count = int(np.count_nonzero(non_negative[1:] != non_negative[:-1]))
    if previous is not None and (previous >= 0.0) != bool(non_negative[0]):
        count += 1
    return count


def _moment(amp: np.ndarray, order: int) -> float:
    total = float(np.sum(amp))
    if total <= 0:
        return 0.0
    k = np.arange(amp.size, dtype=np.float64)
    return float(np.sum((k ** order) * np.abs(amp)) / total)


def spectral_centroid(amp: np.ndarray) -> float:
    return _moment(np.asarray(amp, dtype=np.float64), 1)


def spectral_flatness(amp: np.ndarray) -> float:
    """Geometric over arithmetic mean of the amplitude spectrum."""
    a = np.asarray(amp, dtype=np.float64)
    mean = float(np.mean(a)) if a.size else 0.0
    if mean <= 0:
        return 0.0
    geo = float(np.exp(np.mean(np.log(np.maximum(a, _EPS)))))
    return geo / mean


def spectral_flux(amp: np.ndarray, previous: np.ndarray | None = None) -> float:
    """Sum of positive amplitude increases relative to a previous spectrum."""
    a = np.asarray(amp, dtype=np.float64)
    prev = np.zeros_like(a) if previous is None else np.asarray(previous, dtype=np.float64)
    diff = a - prev
    return float(np.sum(np.maximum(diff, 0.0)))


def spectral_slope(amp: np.ndarray, sample_rate: float, window_size: int) -> float:
    a = np.asarray(amp, dtype=np.float64)
    freqs = np.arange(a.size, dtype=np.float64) * sample_rate / float(window_size)
    amp_sum = float(np.sum(a))
    freq_sum = float(np.sum(freqs))
    denom = amp_sum * (float(np.sum(freqs ** 2)) - freq_sum ** 2)
    if denom == 0:
        return 0.0
    return (a.size * float(np.sum(freqs * a)) - freq_sum * amp_sum) / denom


def spectral_rolloff(amp: np.ndarray, sample_rate: float) -> float:
    """Frequency below which 99% of the amplitude sum lies."""
    a = np.asarray(amp, dtype=np.float64)
    if a.size < 2:
        return 0.0
    nyq_bin = sample_rate / (2.0 * (a.size - 1))
    ec = float(np.sum(a))
    threshold = ROLLOFF_FRACTION * ec
    n = a.size - 1
    while ec > threshold and n > 0:
        ec -= a[n]
        n -= 1
    return (n + 1) * nyq_bin


def spectral_spread(amp: np.ndarray) -> float:
    a = np.asarray(amp, dtype=np.float64)
    mu1 = _moment(a, 1)
    return float(np.sqrt(max(0.0, _moment(a, 2) - mu1 ** 2)))


def spectral_skewness(amp: np.ndarray) -> float:
    a = np.asarray(amp, dtype=np.float64)
    mu1, mu2, mu3 = _moment(a, 1), _moment(a, 2), _moment(a, 3)
    denom = max(0.0, mu2 - mu1 ** 2) ** 1.5
    if denom == 0:
        return 0.0
    return (2.0 * mu1 ** 3 - 3.0 * mu1 * mu2 + mu3) / denom


def spectral_kurtosis(amp: np.ndarray) -> float:
    a = np.asarray(amp, dtype=np.float64)
    mu1, mu2, mu3, mu4 = (_moment(a, i) for i in (1, 2, 3, 4))
    denom = (mu2 - mu1 ** 2) ** 2
    if denom == 0:
        return 0.0
    return (-3.0 * mu1 ** 4 + 6.0 * mu1 * mu2 - 4.0 * mu1 * mu3 + mu4) / denom


def spectral_features(amp: np.ndarray, sample_rate: float, window_size: int) -> SpectralFeatures:
    """Compute every spectral descriptor of an amplitude spectrum."""
    return SpectralFeatures(
        centroid=spectral_centroid(amp),
        flatness=spectral_flatness(amp),
        flux=spectral_flux(amp),
        slope=spectral_slope(amp, sample_rate, window_size),
        rolloff=spectral_rolloff(amp, sample_rate),
        spread=spectral_spread(amp),
        skewness=spectral_skewness(amp),
        kurtosis=spectral_kurtosis(amp),
    )
