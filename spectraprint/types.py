from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import numpy as np

NUM_BANDS = 5


class ComputingDevice(str, Enum):
    CPU = "cpu"
    GPU = "gpu"

    @classmethod
    def from_code(cls, code: int) -> "ComputingDevice":
        """Map an integer code to a device (0=cpu, 1=gpu, anything else gpu)."""
        if code == 0:
            return cls.CPU
        return cls.GPU

    @classmethod
    def from_name(cls, name: str) -> "ComputingDevice":
        """Map a case-insensitive name to a device (unknown names map to gpu)."""
        if name.strip().lower() == "cpu":
            return cls.CPU
        return cls.GPU

    @classmethod
    def parse(cls, value) -> "ComputingDevice":
        """Convert an int, str, device or None to a device. Never raises."""
        if isinstance(value, ComputingDevice):
            return value
        if isinstance(value, bool):
            return cls.GPU
        if isinstance(value, int):
            return cls.from_code(value)
        if isinstance(value, str):
            return cls.from_name(value)
        return cls.GPU


@dataclass(frozen=True)
class AudioBuffer:
    samples: np.ndarray
    fs: float
    duration: float
    channels: int = 1
    backend: str = "memory"
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AudioDescription:
    sample_rate: int
    duration: float
    total_samples: int
    spectrum: np.ndarray
    rms: float
    zcr: int
    energy: float

    @property
    def window_size(self) -> int:
        return int(self.spectrum.size)

    def amplitude_spectrum(self) -> np.ndarray:
        """Return magnitudes of the first W/2 bins."""
        half = self.spectrum.size // 2
        return np.abs(self.spectrum[:half]).astype(np.float64)


@dataclass(frozen=True)
class AudioStat:
    sample_rate: int
    duration: float
    total_samples: int


@dataclass(frozen=True)
class AnalysisParameter:
    window_size: int
    hop_size: int


@dataclass(frozen=True)
class SpectralFeatures:
    centroid: float
    flatness: float
    flux: float
    slope: float
    rolloff: float
    spread: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class NormalizedAnalysisResult:
    stat: AudioStat
    parameters: AnalysisParameter
    zcr: float
    energy: float
    centroid: float
    flatness: float
    flux: float
    slope: float
    rolloff: float
    spread: float
    skewness: float
    kurtosis: float


@dataclass(frozen=True)
class AnalysisResult:
    stat: AudioStat
    parameters: AnalysisParameter
    description: AudioDescription
    features: SpectralFeatures

    @property
    def rms(self) -> float:
        return self.description.rms

    @property
    def zcr(self) -> int:
        return self.description.zcr

    @property
    def energy(self) -> float:
        return self.description.energy

    def normalize(self) -> NormalizedAnalysisResult:
        """Scale descriptors into comparable ranges for recommendation."""
        half_window = self.parameters.window_size / 2.0
        nyquist = self.stat.sample_rate / 2.0
        zcr_span = max(1.0, self.stat.total_samples / 2.0 - 1.0)
        total = max(1, self.stat.total_samples)
        f = self.features
        return NormalizedAnalysisResult(
            stat=self.stat,
            parameters=self.parameters,
            zcr=float(self.description.zcr) / zcr_span,
            energy=float(self.description.energy) / total,
            centroid=f.centroid / half_window,
            flatness=f.flatness,
            flux=f.flux,
            slope=f.slope,
            rolloff=f.rolloff / nyquist if nyquist > 0 else 0.0,
            spread=f.spread / half_window,
            skewness=f.skewness,
            kurtosis=f.kurtosis,
        )


@dataclass(frozen=True)
class SampleEvent:
    sample_index: int
    total_samples: int
    sample_rate: int
    duration: float
    data: np.ndarray
