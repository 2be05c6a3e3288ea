from __future__ import annotations

import math

import numpy as np
import pytest

from spectraprint.dsp.filters import LowPassFilter, lowpass, lowpass_alpha
from spectraprint.dsp.windowing import hann, hann_open


def test_lowpass_alpha_formula():
    rc = 1.0 / (2.0 * math.pi * 1000.0)
    dt = 1.0 / 8000.0
    assert lowpass_alpha(1000.0, 8000.0) == pytest.approx(dt / (rc + dt))


def test_lowpass_alpha_rejects_non_positive():
    with pytest.raises(ValueError):
        lowpass_alpha(0.0, 8000.0)
    with pytest.raises(ValueError):
        lowpass_alpha(1000.0, -1.0)


def test_lowpass_recurrence():
    x = np.array([1.0, 0.0, 2.0, -1.0])
    alpha = lowpass_alpha(2000.0, 16000.0)
    y = lowpass(x, 2000.0, 16000.0)
    expected = []
    prev = 0.0
    for v in x:
        prev = prev + alpha * (v - prev)
        expected.append(prev)
    assert np.allclose(y, expected)


def test_lowpass_passes_dc_and_attenuates_high_frequencies():
    fs = 16000
    dc = lowpass(np.ones(4000), 500.0, fs)
    assert dc[-1] == pytest.approx(1.0, abs=1e-6)
    t = np.arange(fs) / fs
    high = np.sin(2 * np.pi * 6000.0 * t)
    y = lowpass(high, 500.0, fs)
    assert np.sqrt(np.mean(y[1000:] ** 2)) < 0.2 * np.sqrt(np.mean(high ** 2))


def test_lowpass_rejects_multichannel():
    with pytest.raises(ValueError):
        lowpass(np.zeros((10, 2)), 1000.0, 8000.0)


def test_stateful_filter_matches_one_shot():
    rng = np.random.default_rng(1)
    x = rng.standard_normal(1000)
    filt = LowPassFilter(3000.0, 16000.0)
    blocks = np.concatenate([filt.process(x[:123]), filt.process(x[123:])])
    assert np.allclose(blocks, lowpass(x, 3000.0, 16000.0))
    filt.reset()
    assert np.allclose(filt.process(x[:50]), lowpass(x[:50], 3000.0, 16000.0))


def test_hann_is_symmetric_with_zero_ends():
    w = hann(8)
    assert w[0] == pytest.approx(0.0)
    assert w[-1] == pytest.approx(0.0)
    assert np.allclose(w, w[::-1])


def test_hann_open_has_no_zero_points():
    w = hann_open(2048)
    assert w.shape == (2048,)
    assert np.all(w > 0.0)
    assert np.max(w) <= 1.0
    assert np.allclose(w, w[::-1])
