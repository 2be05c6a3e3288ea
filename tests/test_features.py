from __future__ import annotations

import numpy as np
import pytest

from spectraprint.analysis.features import (
    energy,
    rms,
    spectral_centroid,
    spectral_features,
    spectral_flatness,
    spectral_flux,
    spectral_kurtosis,
    spectral_rolloff,
    spectral_skewness,
    spectral_slope,
    spectral_spread,
    zero_crossings,
)


def test_time_domain_basics():
    assert rms(np.array([1.0, -1.0])) == pytest.approx(1.0)
    assert rms(np.zeros(0)) == 0.0
    assert energy(np.array([1.0, 2.0])) == pytest.approx(5.0)


def test_zero_crossings_counts_zero_as_positive():
    assert zero_crossings(np.array([1.0, -1.0, 1.0])) == 2
    assert zero_crossings(np.array([0.0, -1.0])) == 1
    assert zero_crossings(np.array([0.0, 1.0])) == 0
    assert zero_crossings(np.array([1.0]), previous=-1.0) == 1
    assert zero_crossings(np.zeros(0), previous=-1.0) == 0


def test_zero_crossings_blockwise_equals_whole():
    rng = np.random.default_rng(3)
    x = rng.standard_normal(1000)
    whole = zero_crossings(x)
    split = zero_crossings(x[:400]) + zero_crossings(x[400:], previous=x[399])
    assert split == whole


def test_centroid_and_spread_of_single_bin():
    a = np.zeros(16)
    a[3] = 1.0
    assert spectral_centroid(a) == pytest.approx(3.0)
    assert spectral_spread(a) == pytest.approx(0.0, abs=1e-9)


def test_flatness_of_flat_spectrum_is_one():
    assert spectral_flatness(np.ones(32)) == pytest.approx(1.0)
    assert spectral_flatness(np.zeros(32)) == 0.0


def test_flux_without_previous_is_sum():
    a = np.array([1.0, 2.0, 3.0])
    assert spectral_flux(a) == pytest.approx(6.0)
    assert spectral_flux(a, previous=np.array([2.0, 2.0, 2.0])) == pytest.approx(1.0)


def test_rolloff_of_flat_spectrum():
    assert spectral_rolloff(np.ones(101), 200.0) == pytest.approx(99.0)


def test_slope_of_flat_spectrum_is_zero():
    assert spectral_slope(np.ones(64), 8000.0, 128) == pytest.approx(0.0, abs=1e-12)


def test_symmetric_spectrum_has_no_skew():
    a = np.array([0.0, 1.0, 2.0, 1.0, 0.0])
    assert spectral_skewness(a) == pytest.approx(0.0, abs=1e-9)
    assert spectral_kurtosis(a) > 0.0


def test_spectral_features_bundle():
    a = np.linspace(1.0, 0.1, 64)
    f = spectral_features(a, 8000.0, 128)
    assert f.centroid == pytest.approx(spectral_centroid(a))
    assert f.rolloff == pytest.approx(spectral_rolloff(a, 8000.0))
    assert f.slope == pytest.approx(spectral_slope(a, 8000.0, 128))
