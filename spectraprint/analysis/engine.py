"""
Spectral analysis engine.

Frames a decoded stream with a Hann window, transforms each frame on the
selected device and averages the magnitude spectra. RMS, zero-crossing count
and energy are computed over the whole signal alongside.
"""
from __future__ import annotations
import logging
import time
import numpy as np

from spectraprint.analysis.features import spectral_features, zero_crossings
from spectraprint.config import AnalysisConfig
from spectraprint.dsp.fft import create_backend
from spectraprint.dsp.windowing import hann
from spectraprint.errors import AudioDecodeError
from spectraprint.io.audio import DEFAULT_BLOCK_SIZE, open_stream
from spectraprint.types import (
    AnalysisParameter,
    AnalysisResult,
    AudioDescription,
    AudioStat,
    ComputingDevice,
)
from spectraprint.utils.cancel import CancelToken, is_cancelled

logger = logging.getLogger(__name__)


class _Cancelled(Exception):
    pass


class SpectralAnalyzer:
    """
    Per-file spectral analysis.

    Args:
        device: FFT backend selector (int code, name or ComputingDevice)
        window_size: Frame size W
        hop_size: Frame advance H, 0 < H <= W (default W // 2)
        batch_size: Frames per backend submission (backend default if None)
        cancel_token: Polled between blocks and frames
        backend: Pre-built backend to share between analyzers
        block_size: Decode block size in samples
    """

    def __init__(
        self,
        device=ComputingDevice.GPU,
        window_size: int = 1024,
        hop_size: int | None = None,
        batch_size: int | None = None,
        cancel_token: CancelToken | None = None,
        backend=None,
        block_size: int = DEFAULT_BLOCK_SIZE
    ):
        window_size = int(window_size)
        if window_size <= 0:
            raise ValueError("window_size must be positive.")
        hop_size = window_size // 2 if hop_size is None else int(hop_size)
        if hop_size <= 0 or hop_size > window_size:
            raise ValueError("hop_size must be in (0, window_size].")
        self.device = ComputingDevice.parse(device)
        self.window_size = window_size
        self.hop_size = hop_size
        self.cancel_token = cancel_token
        self.block_size = int(block_size)
        self._owns_backend = backend is None
        self.backend = backend or create_backend(self.device, window_size, batch_size)
        self._window = hann(window_size)

    def close(self) -> None:
        if self._owns_backend:
            self.backend.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _check_cancelled(self) -> None:
        if is_cancelled(self.cancel_token):
            raise _Cancelled()

    def analyze(self, source) -> AudioDescription | None:
        """
        Analyse a path, AudioBuffer or stream.

        Returns:
            AudioDescription, or None when cancelled

        Raises:
            AudioDecodeError: decoding failed or produced no samples
            DeviceBackendError: the FFT backend failed
        """
        if is_cancelled(self.cancel_token):
            logger.info("Analysis cancelled before start")
            return None
        t0 = time.perf_counter()
        stream = open_stream(source)
        try:
            desc = self._run(stream)
        except _Cancelled:
            logger.info("Analysis cancelled")
            return None
        logger.debug(
            "[%s] analysed %d samples in %d frames (%.3fs)",
            self.device.value, desc.total_samples, self._frame_count,
            time.perf_counter() - t0
        )
        return desc

    def _flush(self, pending: list[np.ndarray], acc: np.ndarray) -> None:
        if not pending:
            return
        self._check_cancelled()
        frames = np.stack(pending, axis=0) * self._window
        spectra = self.backend.transform(frames)
        acc += np.sum(np.abs(spectra), axis=0)
        self._frame_count += len(pending)
        pending.clear()

    def _run(self, stream) -> AudioDescription:
        W, H = self.window_size, self.hop_size
        batch = max(1, int(self.backend.batch_size))
        acc = np.zeros(W, dtype=np.float64)
        buf = np.zeros(0, dtype=np.float64)
        pending: list[np.ndarray] = []
        self._frame_count = 0

        total = 0
        sum_sq = 0.0
        zcr = 0
        prev: float | None = None
        next_start = 0
        covered_until = 0

        for block in stream.blocks(self.block_size):
            self._check_cancelled()
            x = np.asarray(block, dtype=np.float64)
            if x.size == 0:
                continue
            sum_sq += float(np.dot(x, x))
            zcr += zero_crossings(x, prev)
            prev = float(x[-1])
            total += x.size

            buf = np.concatenate([buf, x])
            while buf.size >= W:
                self._check_cancelled()
                pending.append(buf[:W].copy())
                covered_until = next_start + W
                next_start += H
                buf = buf[H:]
                if len(pending) >= batch:
                    self._flush(pending, acc)

        if total == 0:
            raise AudioDecodeError("No audio samples decoded.")

        if (self._frame_count + len(pending)) == 0 or total > covered_until:
            tail = np.zeros(W, dtype=np.float64)
            tail[:buf.size] = buf
            pending.append(tail)
        self._flush(pending, acc)

        spectrum = (acc / self._frame_count).astype(np.complex128)
        sample_rate = int(stream.sample_rate)
        return AudioDescription(
            sample_rate=sample_rate,
            duration=total / float(sample_rate),
            total_samples=total,
            spectrum=spectrum,
            rms=float(np.float32(np.sqrt(sum_sq / total))),
            zcr=int(zcr),
            energy=float(np.float32(sum_sq)),
        )


def analyze_stream(
    source,
    window_size: int = 1024,
    hop_size: int | None = None,
    device=ComputingDevice.GPU,
    cancel_token: CancelToken | None = None
) -> AudioDescription | None:
    """Run a one-off SpectralAnalyzer over a source."""
    with SpectralAnalyzer(
        device=device,
        window_size=window_size,
        hop_size=hop_size,
        cancel_token=cancel_token
    ) as analyzer:
        return analyzer.analyze(source)


def analyze_audio(
    source,
    config: AnalysisConfig | None = None,
    cancel_token: CancelToken | None = None,
    backend=None
) -> AnalysisResult | None:
    """
    Full descriptor pipeline: decode, spectral analysis and features.

    Args:
        source: Path, AudioBuffer or stream
        config: Analysis settings (defaults if None)
        cancel_token: Cooperative cancellation
        backend: Optional shared FFT backend

    Returns:
        AnalysisResult, or None when cancelled
    """
    config = config or AnalysisConfig()
    with SpectralAnalyzer(
        device=config.device,
        window_size=config.window_size,
        hop_size=config.hop_size,
        batch_size=config.batch_size,
        cancel_token=cancel_token,
        backend=backend
    ) as analyzer:
        desc = analyzer.analyze(source)
    if desc is None:
        return None
    amp = desc.amplitude_spectrum()
    return AnalysisResult(
        stat=AudioStat(
            sample_rate=desc.sample_rate,
            duration=desc.duration,
            total_samples=desc.total_samples,
        ),
        parameters=AnalysisParameter(
            window_size=config.window_size,
            hop_size=config.hop_size,
        ),
        description=desc,
        features=spectral_features(amp, desc.sample_rate, config.window_size),
    )
