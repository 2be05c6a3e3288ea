"""
FFT backends selected by ComputingDevice.

Both backends expose ``transform(frames)`` taking a ``(n, W)`` array of real
frames and returning the ``(n, W)`` complex spectra. The CPU backend runs
inline one frame at a time; the GPU backend batches frames and submits them
to a single submission queue whose worker runs a vectorised multi-threaded
transform.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
import numpy as np
import scipy.fft

from spectraprint.errors import DeviceBackendError
from spectraprint.types import ComputingDevice

logger = logging.getLogger(__name__)

DEFAULT_GPU_BATCH_SIZE = 256


def _as_frames(frames: np.ndarray, window_size: int) -> np.ndarray:
    x = np.asarray(frames, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    if x.ndim != 2 or x.shape[1] != window_size:
        raise ValueError(
            f"Expected frames of shape (n, {window_size}), got {x.shape}."
        )
    return x


class CpuBackend:
    """Inline numpy FFT."""

    device = ComputingDevice.CPU

    def __init__(self, window_size: int, batch_size: int = 1):
        self.window_size = int(window_size)
        self.batch_size = max(1, int(batch_size))

    def transform(self, frames: np.ndarray) -> np.ndarray:
        x = _as_frames(frames, self.window_size)
        return np.fft.fft(x, n=self.window_size, axis=-1)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class GpuBackend:
    """
    Batched accelerator backend.

    Frames are submitted to a single-worker queue and the caller blocks until
    the batch completes. The queue is safe to share between analyses running
    on different threads. Failures surface as DeviceBackendError; there is no
    fallback to the CPU backend.
    """

    device = ComputingDevice.GPU

    def __init__(
        self,
        window_size: int,
        batch_size: int = DEFAULT_GPU_BATCH_SIZE,
        workers: int = -1
    ):
        self.window_size = int(window_size)
        self.batch_size = max(1, int(batch_size))
        self.workers = workers
        self._queue = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fft-queue")

    def _run(self, x: np.ndarray) -> np.ndarray:
        return scipy.fft.fft(x, n=self.window_size, axis=-1, workers=self.workers)

    def transform(self, frames: np.ndarray) -> np.ndarray:
        x = _as_frames(frames, self.window_size)
        try:
            future = self._queue.submit(self._run, x)
        except RuntimeError as exc:
            raise DeviceBackendError(f"FFT queue unavailable: {exc}") from exc
        try:
            return future.result()
        except Exception as exc:
            raise DeviceBackendError(f"FFT batch failed: {exc}") from exc

    def close(self) -> None:
        self._queue.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def create_backend(
    device: ComputingDevice,
    window_size: int,
    batch_size: int | None = None
):
    """Instantiate the FFT backend for a device selector."""
    device = ComputingDevice.parse(device)
    if device == ComputingDevice.CPU:
        backend = CpuBackend(window_size, batch_size or 1)
    else:
        backend = GpuBackend(window_size, batch_size or DEFAULT_GPU_BATCH_SIZE)
    logger.debug(
        "Created %s FFT backend (window=%d, batch=%d)",
        device.value, backend.window_size, backend.batch_size
    )
    return backend
