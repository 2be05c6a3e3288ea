"""Engine configuration loaded from JSON documents."""
from __future__ import annotations
import json
from dataclasses import dataclass, field, fields, replace
from spectraprint.types import ComputingDevice, NUM_BANDS


@dataclass(frozen=True)
class AnalysisConfig:
    window_size: int = 1024
    hop_size: int = 512
    device: ComputingDevice = ComputingDevice.GPU
    batch_size: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "device", ComputingDevice.parse(self.device))
        if self.window_size <= 0:
            raise ValueError("analysis.window_size must be positive.")
        if self.hop_size <= 0 or self.hop_size > self.window_size:
            raise ValueError("analysis.hop_size must be in (0, window_size].")
        if self.batch_size is not None and self.batch_size <= 0:
            raise ValueError("analysis.batch_size must be positive.")


@dataclass(frozen=True)
class SamplerConfig:
    sample_duration: float = 5.0
    sample_count: int = 3
    sample_rate: int = 16000

    def __post_init__(self):
        if self.sample_duration <= 0:
            raise ValueError("sampler.sample_duration must be positive.")
        if self.sample_count <= 0:
            raise ValueError("sampler.sample_count must be positive.")
        if self.sample_rate <= 0:
            raise ValueError("sampler.sample_rate must be positive.")


@dataclass(frozen=True)
class FingerprintConfig:
    """Spectrogram and peak-picking constants for signature building."""
    fft_size: int = 2048
    hop_size: int = 128
    history_size: int = 256
    min_bin: int = 10
    max_bin: int = 1015
    frame_delay: int = 46
    spread_delay: int = 49
    neighbor_offsets: tuple[int, ...] = (-10, -7, -4, -3, 1, 2, 5, 8)
    time_offsets: tuple[int, ...] = (
        -53, -45, 165, 172, 179, 186, 193, 200, 214, 221, 228, 235, 242, 249
    )
    spread_offsets: tuple[int, ...] = (-2, -4, -7)
    min_magnitude: float = 1.0 / 64.0
    relative_threshold: float = 0.0
    band_edges_hz: tuple[float, ...] = (250.0, 520.0, 1450.0, 3500.0, 5500.0, 8000.0)
    sample_scale: float = 65536.0
    lowpass_cutoff_hz: float | None = 7000.0

    def __post_init__(self):
        for name in ("neighbor_offsets", "time_offsets", "spread_offsets", "band_edges_hz"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        if self.fft_size <= 0 or self.hop_size <= 0 or self.hop_size > self.fft_size:
            raise ValueError("fingerprint.fft_size/hop_size are invalid.")
        n_bins = self.fft_size // 2 + 1
        if not 1 <= self.min_bin < self.max_bin <= n_bins - 2:
            raise ValueError("fingerprint.min_bin/max_bin must lie inside the spectrum.")
        span = max(
            [self.frame_delay, self.spread_delay]
            + [abs(o) for o in self.time_offsets + self.spread_offsets]
        )
        if self.history_size <= span:
            raise ValueError("fingerprint.history_size is too small for the offsets.")
        edges = self.band_edges_hz
        if len(edges) != NUM_BANDS + 1:
            raise ValueError(f"fingerprint.band_edges_hz needs {NUM_BANDS + 1} edges.")
        if any(b <= a for a, b in zip(edges, edges[1:])):
            raise ValueError("fingerprint.band_edges_hz must be ascending.")
        if not 0.0 <= self.relative_threshold <= 1.0:
            raise ValueError("fingerprint.relative_threshold must be in [0, 1].")
        if self.lowpass_cutoff_hz is not None and self.lowpass_cutoff_hz <= 0:
            raise ValueError("fingerprint.lowpass_cutoff_hz must be positive.")


@dataclass(frozen=True)
class RateLimitConfig:
    interval_seconds: float = 1.0

    def __post_init__(self):
        if self.interval_seconds < 0:
            raise ValueError("rate_limit.interval_seconds must be non-negative.")


@dataclass(frozen=True)
class EngineConfig:
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    fingerprint: FingerprintConfig = field(default_factory=FingerprintConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)


_SECTIONS = {
    "analysis": AnalysisConfig,
    "sampler": SamplerConfig,
    "fingerprint": FingerprintConfig,
    "rate_limit": RateLimitConfig,
}


def _build_section(name: str, cls, values: dict):
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{name}' must be an object.")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    return cls(**values)


def config_from_dict(j: dict) -> EngineConfig:
    """
    Build an EngineConfig from a parsed JSON document.

    Args:
        j: Mapping with optional sections analysis, sampler, fingerprint
            and rate_limit

    Returns:
        EngineConfig with defaults for everything not given
    """
    if not isinstance(j, dict):
        raise ValueError("Config document must be a JSON object.")
    unknown = sorted(set(j) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown config sections: {', '.join(unknown)}")
    sections = {
        name: _build_section(name, cls, j[name])
        for name, cls in _SECTIONS.items()
        if name in j
    }
    return EngineConfig(**sections)


def load_config(path: str) -> EngineConfig:
    """Load engine configuration from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            j = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid config JSON: {exc}") from exc
    return config_from_dict(j)


def with_device(config: EngineConfig, device) -> EngineConfig:
    """Return a copy of config with the analysis device replaced."""
    analysis = replace(config.analysis, device=ComputingDevice.parse(device))
    return replace(config, analysis=analysis)
