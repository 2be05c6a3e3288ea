from __future__ import annotations

import numpy as np
import pytest

from spectraprint.errors import AudioDecodeError
from spectraprint.fingerprint.sampler import IntervalSampler, Sampler, UniformSampler
from spectraprint.io.audio import ArrayStream
from spectraprint.utils.cancel import CancelToken
from tests.conftest import sine, write_wav

FS = 8000


def _ramp(seconds: float, fs: int = FS) -> np.ndarray:
    return np.arange(int(seconds * fs), dtype=np.float64) / (seconds * fs)


def _collect(sampler, source):
    events = []
    n = sampler.process(source, events.append)
    assert n == len(events)
    return events


def test_consecutive_windows_from_start():
    x = _ramp(10.0)
    events = _collect(UniformSampler(1.0, 3, FS), ArrayStream(x, FS))
    assert [e.sample_index for e in events] == [0, 1, 2]
    assert all(e.total_samples == 3 for e in events)
    assert all(e.sample_rate == FS and e.duration == 1.0 for e in events)
    assert np.allclose(events[0].data, x[:8000])
    assert np.allclose(events[1].data, x[8000:16000])
    assert np.allclose(events[2].data, x[16000:24000])


def test_windows_overlap_when_stream_is_short():
    x = _ramp(2.5)
    events = _collect(UniformSampler(1.0, 3, FS), ArrayStream(x, FS))
    assert len(events) == 3
    # 0.25 s overlap: windows start at 0, 0.75 s and 1.5 s
    assert np.allclose(events[1].data, x[6000:14000])
    assert np.allclose(events[2].data, x[12000:20000])


def test_final_partial_window_is_zero_padded():
    x = _ramp(0.5)
    events = _collect(UniformSampler(1.0, 3, FS), ArrayStream(x, FS))
    assert len(events) == 1
    assert events[0].data.size == 8000
    assert np.allclose(events[0].data[:4000], x)
    assert np.all(events[0].data[4000:] == 0.0)


def test_windows_are_resampled_to_target_rate(tmp_path):
    path = write_wav(tmp_path, "tone.wav", sine(440.0, 16000, 2.0), 16000)
    events = _collect(UniformSampler(1.0, 2, FS), str(path))
    assert len(events) == 2
    assert all(e.sample_rate == FS for e in events)
    assert all(e.data.size == 8000 for e in events)


def test_cancel_before_start_emits_nothing():
    token = CancelToken()
    token.cancel()
    events = _collect(UniformSampler(1.0, 3, FS, cancel_token=token), ArrayStream(_ramp(5.0), FS))
    assert events == []


def test_cancel_from_sink_stops_further_events():
    token = CancelToken()
    events = []

    def sink(event):
        events.append(event)
        token.cancel()

    sampler = UniformSampler(1.0, 3, FS, cancel_token=token)
    assert sampler.process(ArrayStream(_ramp(5.0), FS), sink) == 1
    assert len(events) == 1


def test_sampler_alias_and_validation():
    assert Sampler is UniformSampler
    with pytest.raises(ValueError):
        UniformSampler(0.0, 3, FS)
    with pytest.raises(ValueError):
        UniformSampler(1.0, 0, FS)
    with pytest.raises(ValueError):
        IntervalSampler(1.0, 0.0, FS)


def test_interval_sampler_emits_one_window_per_interval():
    x = _ramp(5.0)
    events = _collect(IntervalSampler(1.0, 2.0, FS, block_size=3000), ArrayStream(x, FS))
    assert [e.sample_index for e in events] == [0, 1, 2]
    assert np.allclose(events[1].data, x[16000:24000])
    assert np.allclose(events[2].data, x[32000:40000])


def test_interval_sampler_overlapping_windows():
    x = _ramp(2.0)
    events = _collect(IntervalSampler(1.0, 0.5, FS), ArrayStream(x, FS))
    assert len(events) == 3
    assert np.allclose(events[1].data, x[4000:12000])


class _BlockStream:
    """Stream exposing only sample_rate and blocks()."""

    def __init__(self, samples: np.ndarray, fs: int = FS, fail_after: int | None = None):
        self.samples = samples
        self.sample_rate = fs
        self.fail_after = fail_after

    def blocks(self, block_size: int):
        for i, start in enumerate(range(0, self.samples.size, block_size)):
            if self.fail_after is not None and i >= self.fail_after:
                raise AudioDecodeError("corrupt frame")
            yield self.samples[start:start + block_size]


def test_stream_without_duration_uses_consecutive_windows():
    x = _ramp(2.0)
    events = _collect(UniformSampler(0.5, 2, FS), _BlockStream(x))
    assert len(events) == 2
    assert np.allclose(events[0].data, x[:4000])
    assert np.allclose(events[1].data, x[4000:8000])


def test_decode_failure_propagates_and_keeps_emitted_events():
    x = _ramp(5.0)
    events = []
    sampler = UniformSampler(0.5, 5, FS, block_size=4096)
    with pytest.raises(AudioDecodeError):
        sampler.process(_BlockStream(x, fail_after=2), events.append)
    assert [e.sample_index for e in events] == [0, 1]
    assert np.allclose(events[0].data, x[:4000])
    assert np.allclose(events[1].data, x[4000:8000])
