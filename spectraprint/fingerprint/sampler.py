"""
Window samplers feeding the signature builder.

A sampler decodes a source block by block, cuts fixed-length windows at the
source rate, resamples each one to the target rate and hands it to a sink as
a SampleEvent.
"""
from __future__ import annotations
import logging
import math
from typing import Callable
import numpy as np
from scipy import signal as scipy_signal

from spectraprint.io.audio import DEFAULT_BLOCK_SIZE, open_stream
from spectraprint.types import SampleEvent
from spectraprint.utils.cancel import CancelToken, is_cancelled

logger = logging.getLogger(__name__)

Sink = Callable[[SampleEvent], None]


def resample(x: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Polyphase resampling between integer rates."""
    x = np.asarray(x, dtype=np.float64)
    src_rate, dst_rate = int(src_rate), int(dst_rate)
    if src_rate == dst_rate:
        return x.copy()
    g = math.gcd(src_rate, dst_rate)
    return scipy_signal.resample_poly(x, dst_rate // g, src_rate // g)


class _BaseSampler:
    def __init__(
        self,
        sample_duration: float,
        sample_rate: int,
        cancel_token: CancelToken | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        if sample_duration <= 0:
            raise ValueError("sample_duration must be positive.")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive.")
        self.sample_duration = float(sample_duration)
        self.sample_rate = int(sample_rate)
        self.cancel_token = cancel_token
        self.block_size = int(block_size)

    def _window_frames(self, src_rate: int) -> int:
        n = int(self.sample_duration * src_rate)
        if n <= 0:
            raise ValueError("sample_duration is shorter than one source sample.")
        return n

    def _emit(self, sink: Sink, window: np.ndarray, index: int, total: int, src_rate: int) -> None:
        data = resample(window, src_rate, self.sample_rate)
        sink(SampleEvent(
            sample_index=index,
            total_samples=total,
            sample_rate=self.sample_rate,
            duration=self.sample_duration,
            data=data,
        ))


class UniformSampler(_BaseSampler):
    """
    Emit ``sample_count`` consecutive windows from the start of a source.

    When the windows do not fit in the stream they overlap evenly; a window
    cut short by the end of the stream is zero-padded.
    """

    def __init__(
        self,
        sample_duration: float,
        sample_count: int,
        sample_rate: int,
        cancel_token: CancelToken | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        super().__init__(sample_duration, sample_rate, cancel_token, block_size)
        if sample_count <= 0:
            raise ValueError("sample_count must be positive.")
        self.sample_count = int(sample_count)

    def _overlap_frames(self, stream_duration: float | None, src_rate: int, window: int) -> int:
        total_desired = self.sample_duration * self.sample_count
        if stream_duration is None:
            # length unknown up front
            return 0
        if self.sample_count < 2 or total_desired <= stream_duration:
            return 0
        overlap = int((total_desired - stream_duration) / (self.sample_count - 1) * src_rate)
        return min(overlap, window - 1)

    def process(self, source, sink: Sink) -> int:
        """
        Sample ``source`` and call ``sink`` for every window.

        Returns:
            Number of events emitted
        """
        if is_cancelled(self.cancel_token):
            return 0
        stream = open_stream(source)
        src_rate = int(stream.sample_rate)
        window = self._window_frames(src_rate)
        duration = getattr(stream, "duration", None)
        if duration is not None:
            duration = float(duration)
        step = window - self._overlap_frames(duration, src_rate, window)

        buf = np.zeros(0, dtype=np.float64)
        emitted = 0
        for block in stream.blocks(self.block_size):
            if is_cancelled(self.cancel_token):
                logger.info("Sampling cancelled after %d windows", emitted)
                return emitted
            buf = np.concatenate([buf, np.asarray(block, dtype=np.float64)])
            while buf.size >= window and emitted < self.sample_count:
                if is_cancelled(self.cancel_token):
                    logger.info("Sampling cancelled after %d windows", emitted)
                    return emitted
                self._emit(sink, buf[:window], emitted, self.sample_count, src_rate)
                emitted += 1
                buf = buf[step:]
            if emitted >= self.sample_count:
                break

        if emitted < self.sample_count and buf.size > 0:
            if is_cancelled(self.cancel_token):
                return emitted
            padded = np.zeros(window, dtype=np.float64)
            padded[:buf.size] = buf[:window]
            self._emit(sink, padded, emitted, self.sample_count, src_rate)
            emitted += 1
        logger.debug("Emitted %d/%d windows at step %d", emitted, self.sample_count, step)
        return emitted


Sampler = UniformSampler


class IntervalSampler(_BaseSampler):
    """
    Emit one window at the start of every ``interval`` seconds.

    There is no limit on the number of windows; windows that would run past
    the end of the stream are not emitted.
    """

    def __init__(
        self,
        sample_duration: float,
        interval: float,
        sample_rate: int,
        cancel_token: CancelToken | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        super().__init__(sample_duration, sample_rate, cancel_token, block_size)
        if interval <= 0:
            raise ValueError("interval must be positive.")
        self.interval = float(interval)

    def process(self, source, sink: Sink) -> int:
        if is_cancelled(self.cancel_token):
            return 0
        stream = open_stream(source)
        src_rate = int(stream.sample_rate)
        window = self._window_frames(src_rate)

        # buf holds source samples starting at absolute index buf_start
        buf = np.zeros(0, dtype=np.float64)
        buf_start = 0
        emitted = 0
        for block in stream.blocks(self.block_size):
            if is_cancelled(self.cancel_token):
                return emitted
            buf = np.concatenate([buf, np.asarray(block, dtype=np.float64)])
            while True:
                start = int(round(emitted * self.interval * src_rate))
                if start < buf_start or start - buf_start + window > buf.size:
                    break
                if is_cancelled(self.cancel_token):
                    return emitted
                off = start - buf_start
                self._emit(sink, buf[off:off + window], emitted, 0, src_rate)
                emitted += 1
            next_start = int(round(emitted * self.interval * src_rate))
            drop = min(max(0, next_start - buf_start), buf.size)
            buf = buf[drop:]
            buf_start += drop
        logger.debug("Emitted %d windows every %.3fs", emitted, self.interval)
        return emitted
