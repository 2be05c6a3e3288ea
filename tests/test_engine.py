from __future__ import annotations

import numpy as np
import pytest

from spectraprint.analysis.engine import SpectralAnalyzer, analyze_audio, analyze_stream
from spectraprint.config import AnalysisConfig
from spectraprint.errors import AudioDecodeError
from spectraprint.io.audio import ArrayStream
from spectraprint.types import AnalysisResult, AudioBuffer, ComputingDevice
from spectraprint.utils.cancel import CancelToken
from tests.conftest import sine, write_wav

FS = 8000
W = 1024


def _tone_stream(amplitude: float = 0.5, phase: float = 0.1) -> ArrayStream:
    # 500 Hz sits exactly on bin 64 for W=1024 at 8 kHz
    return ArrayStream(sine(500.0, FS, 1.0, amplitude=amplitude, phase=phase), FS)


@pytest.mark.parametrize("device", [ComputingDevice.CPU, ComputingDevice.GPU])
def test_sine_peaks_at_expected_bin(device):
    with SpectralAnalyzer(device=device, window_size=W, hop_size=W // 2) as analyzer:
        desc = analyzer.analyze(_tone_stream())
    assert desc is not None
    assert desc.spectrum.shape == (W,)
    assert int(np.argmax(desc.amplitude_spectrum())) == 64
    assert desc.sample_rate == FS
    assert desc.total_samples == FS
    assert desc.duration == pytest.approx(1.0)


def test_time_domain_statistics_of_sine():
    desc = analyze_stream(_tone_stream(amplitude=0.5), window_size=W, device=ComputingDevice.CPU)
    assert desc.rms == pytest.approx(0.5 / np.sqrt(2.0), rel=1e-3)
    assert desc.energy == pytest.approx(0.125 * FS, rel=1e-3)
    assert abs(desc.zcr - 2 * 500) <= 2


def test_cpu_and_gpu_spectra_agree():
    cpu = analyze_stream(_tone_stream(), window_size=W, device=ComputingDevice.CPU)
    gpu = analyze_stream(_tone_stream(), window_size=W, device=ComputingDevice.GPU)
    assert np.allclose(cpu.spectrum, gpu.spectrum)
    assert cpu.zcr == gpu.zcr


def test_input_shorter_than_window_is_zero_padded():
    x = sine(500.0, FS, 0.05, phase=0.1)
    desc = analyze_stream(ArrayStream(x, FS), window_size=W, device=ComputingDevice.CPU)
    assert desc.total_samples == x.size
    assert desc.spectrum.shape == (W,)
    assert np.all(np.isfinite(desc.spectrum))


def test_empty_input_raises():
    with pytest.raises(AudioDecodeError):
        analyze_stream(ArrayStream(np.zeros(0), FS), window_size=W, device=ComputingDevice.CPU)


def test_cancelled_before_start_returns_none():
    token = CancelToken()
    token.cancel()
    with SpectralAnalyzer(device=ComputingDevice.CPU, window_size=W, cancel_token=token) as a:
        assert a.analyze(_tone_stream()) is None


class _CancellingStream:
    """Stream that cancels its token after the first block."""

    def __init__(self, x: np.ndarray, token: CancelToken):
        self.sample_rate = FS
        self.frames = x.size
        self.duration = x.size / FS
        self._x = x
        self._token = token

    def blocks(self, block_size: int = 4096):
        for i, start in enumerate(range(0, self._x.size, block_size)):
            if i == 1:
                self._token.cancel()
            yield self._x[start:start + block_size]


def test_cancelled_mid_stream_returns_none():
    token = CancelToken()
    stream = _CancellingStream(sine(500.0, FS, 2.0), token)
    with SpectralAnalyzer(device=ComputingDevice.GPU, window_size=W, cancel_token=token) as a:
        assert a.analyze(stream) is None


def test_invalid_hop_size_rejected():
    with pytest.raises(ValueError):
        SpectralAnalyzer(device=ComputingDevice.CPU, window_size=W, hop_size=W + 1)


def test_analyze_audio_from_file(tmp_path):
    path = write_wav(tmp_path, "tone.wav", sine(500.0, FS, 1.0, phase=0.1), FS)
    result = analyze_audio(str(path), AnalysisConfig(window_size=W, hop_size=W // 2, device="cpu"))
    assert isinstance(result, AnalysisResult)
    assert result.stat.sample_rate == FS
    assert result.parameters.window_size == W
    # centroid is in bins; the tone sits on bin 64
    assert result.features.centroid == pytest.approx(64.0, abs=8.0)
    assert result.rms == pytest.approx(0.5 / np.sqrt(2.0), rel=1e-3)
    norm = result.normalize()
    assert 0.0 < norm.rolloff <= 1.0


def test_analyze_audio_accepts_audio_buffer():
    x = sine(500.0, FS, 0.5, phase=0.1)
    buf = AudioBuffer(samples=x, fs=float(FS), duration=0.5)
    result = analyze_audio(buf, AnalysisConfig(window_size=256, hop_size=128, device=0))
    assert result.description.total_samples == x.size
