"""Audio I/O module: whole-file decoding and block streams."""
from __future__ import annotations
import json
import logging
import os
import shutil
import subprocess
import warnings as py_warnings
from typing import Iterator
import numpy as np
from spectraprint.errors import AudioDecodeError
from spectraprint.types import AudioBuffer

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 4096
SUPPORTED_AUDIO_EXTS = {".wav", ".flac", ".aiff", ".aif", ".mp3", ".ogg"}


def _downmix(x: np.ndarray) -> np.ndarray:
    """Average channels of a (frames, channels) block into mono."""
    if x.ndim == 1:
        return x
    if x.ndim != 2:
        raise AudioDecodeError("Decoded audio must be 1D or 2D array.")
    if x.shape[1] == 1:
        return x[:, 0]
    return np.mean(x, axis=1)


def _decode_soundfile(path: str) -> tuple[np.ndarray, float, list[str]]:
    """Decode using soundfile (libsndfile)."""
    import soundfile as sf

    with py_warnings.catch_warnings(record=True) as w:
        py_warnings.simplefilter("always")
        data, fs = sf.read(path, always_2d=True, dtype="float64")
    warn_list = [str(wi.message) for wi in w]
    return data, float(fs), warn_list


def _ffprobe_info(path: str) -> tuple[int, int]:
    """Return (sample_rate, channels) from ffprobe."""
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise AudioDecodeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", "stream=sample_rate,channels",
        "-of", "json",
        path,
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise AudioDecodeError(f"ffprobe failed: {proc.stderr.strip()}")
    streams = json.loads(proc.stdout).get("streams", [])
    if not streams:
        raise AudioDecodeError("ffprobe reported no audio streams.")
    return int(streams[0]["sample_rate"]), int(streams[0]["channels"])


def _decode_ffmpeg(path: str) -> tuple[np.ndarray, float, list[str]]:
    """Decode using ffmpeg to raw float32 PCM."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise AudioDecodeError("ffmpeg backend not available.")
    fs, ch = _ffprobe_info(path)
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", path,
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, capture_output=True, check=False)
    warn_list = [
        line for line in proc.stderr.decode("utf-8", errors="replace").splitlines()
        if line.strip()
    ]
    if proc.returncode != 0:
        raise AudioDecodeError("ffmpeg decode failed.")
    data = np.frombuffer(proc.stdout, dtype=np.float32)
    if ch > 0:
        n = (data.size // ch) * ch
        if n != data.size:
            warn_list.append("ffmpeg: trimmed partial frame at end of stream.")
            data = data[:n]
        data = data.reshape(-1, ch)
    return data.astype(np.float64), float(fs), warn_list


def load_audio(path: str) -> AudioBuffer:
    """
    Load an audio file and downmix it to a mono float64 buffer.

    Supports WAV, FLAC, AIFF, OGG via soundfile; anything soundfile rejects is
    handed to ffmpeg when it is installed.

    Raises:
        AudioDecodeError: when no backend can decode the file
    """
    if not os.path.isfile(path):
        raise AudioDecodeError(f"Audio file not found: {path}")
    warnings_list: list[str] = []
    backend = "soundfile"
    try:
        data, fs, warn_list = _decode_soundfile(path)
        warnings_list.extend(warn_list)
    except Exception as exc:
        logger.debug("soundfile could not decode %s: %s", path, exc)
        warnings_list.append(f"soundfile decode failed: {exc}")
        backend = "ffmpeg"
        data, fs, warn_list = _decode_ffmpeg(path)
        warnings_list.extend(warn_list)

    channels = 1 if data.ndim == 1 else int(data.shape[1])
    if channels > 1:
        warnings_list.append(f"{backend}: downmixed {channels} channels to mono.")
    mono = _downmix(np.asarray(data, dtype=np.float64))
    return AudioBuffer(
        samples=mono,
        fs=float(fs),
        duration=mono.shape[0] / float(fs) if fs else 0.0,
        channels=1,
        backend=backend,
        warnings=warnings_list
    )


class ArrayStream:
    """Block stream over samples already in memory."""

    def __init__(self, samples: np.ndarray, sample_rate: float):
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive.")
        self.samples = _downmix(np.asarray(samples, dtype=np.float64))
        self.sample_rate = int(round(sample_rate))
        self.frames = int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)

    def blocks(self, block_size: int = DEFAULT_BLOCK_SIZE) -> Iterator[np.ndarray]:
        for start in range(0, self.frames, block_size):
            yield self.samples[start:start + block_size]


class FileStream:
    """
    Block stream decoding a file incrementally with soundfile.

    Files soundfile cannot open are decoded whole through the ffmpeg backend.
    """

    def __init__(self, path: str):
        self.path = str(path)
        if not os.path.isfile(self.path):
            raise AudioDecodeError(f"Audio file not found: {self.path}")
        self._fallback: ArrayStream | None = None
        try:
            import soundfile as sf
            info = sf.info(self.path)
            self.sample_rate = int(info.samplerate)
            self.frames = int(info.frames)
        except Exception as exc:
            logger.debug("soundfile cannot stream %s (%s); using ffmpeg", self.path, exc)
            buf = load_audio(self.path)
            self._fallback = ArrayStream(buf.samples, buf.fs)
            self.sample_rate = self._fallback.sample_rate
            self.frames = self._fallback.frames

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate) if self.sample_rate else 0.0

    def blocks(self, block_size: int = DEFAULT_BLOCK_SIZE) -> Iterator[np.ndarray]:
        if self._fallback is not None:
            yield from self._fallback.blocks(block_size)
            return
        import soundfile as sf
        try:
            for block in sf.blocks(
                self.path, blocksize=block_size, dtype="float64", always_2d=True
            ):
                yield _downmix(block)
        except RuntimeError as exc:
            raise AudioDecodeError(f"Decoding {self.path} failed: {exc}") from exc


def open_stream(source) -> ArrayStream | FileStream:
    """Turn a path, AudioBuffer or existing stream into a block stream."""
    if isinstance(source, (ArrayStream, FileStream)):
        return source
    if isinstance(source, AudioBuffer):
        return ArrayStream(source.samples, source.fs)
    if isinstance(source, (str, os.PathLike)):
        return FileStream(os.fspath(source))
    if hasattr(source, "blocks") and hasattr(source, "sample_rate"):
        return source
    raise TypeError(f"Unsupported audio source: {type(source).__name__}")
