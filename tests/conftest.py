from __future__ import annotations

import json
import sys
from pathlib import Path

import numpy as np
import soundfile as sf

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def sine(
    freq_hz: float,
    fs: int,
    duration_s: float,
    amplitude: float = 0.5,
    phase: float = 0.0
) -> np.ndarray:
    n = int(round(duration_s * fs))
    t = np.arange(n, dtype=np.float64) / fs
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t + phase)


def tone_burst(
    freq_hz: float,
    fs: int,
    total_s: float,
    start_s: float,
    burst_s: float,
    amplitude: float = 0.5
) -> np.ndarray:
    """Silence with one Hann-shaped tone burst."""
    x = np.zeros(int(round(total_s * fs)), dtype=np.float64)
    start = int(round(start_s * fs))
    n = int(round(burst_s * fs))
    t = np.arange(n, dtype=np.float64) / fs
    x[start:start + n] = amplitude * np.hanning(n) * np.sin(2.0 * np.pi * freq_hz * t)
    return x


def write_wav(tmp_path: Path, name: str, samples: np.ndarray, fs: int) -> Path:
    path = tmp_path / name
    sf.write(path, samples, fs, subtype="FLOAT")
    return path


def write_config(tmp_path: Path, cfg: dict) -> Path:
    path = tmp_path / "engine.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    return path
