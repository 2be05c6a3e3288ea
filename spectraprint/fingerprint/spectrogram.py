"""
Spectrogram peak picking for signatures.

Samples are pushed in hops of ``hop_size``. Every hop produces one power
spectrum of the last ``fft_size`` samples; a spread copy (max over nearby
bins and recent frames) is kept beside it. Once enough frames exist, the
frame ``frame_delay`` hops back is searched for peaks that dominate the
spread history around it.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
import numpy as np

from spectraprint.config import FingerprintConfig, SamplerConfig
from spectraprint.dsp.filters import LowPassFilter
from spectraprint.dsp.ring import Ring
from spectraprint.dsp.windowing import hann_open
from spectraprint.fingerprint.sampler import UniformSampler
from spectraprint.fingerprint.signature import FrequencyPeak, Signature
from spectraprint.types import NUM_BANDS, SampleEvent

logger = logging.getLogger(__name__)

POWER_SCALE = float(1 << 17)
POWER_FLOOR = 1e-10
MAGNITUDE_SCALE = 1477.3
MAGNITUDE_OFFSET = 6144.0
BIN_SUBDIVISIONS = 64


@dataclass(frozen=True)
class SpectralPeaks:
    """Peaks found in one block of samples, grouped by frequency band."""
    sample_rate: int
    num_samples: int
    peaks_by_band: tuple[tuple[FrequencyPeak, ...], ...]

    def to_signature(self) -> Signature:
        return Signature(self.sample_rate, self.num_samples, self.peaks_by_band)

    def __str__(self) -> str:
        counts = ", ".join(str(len(b)) for b in self.peaks_by_band)
        return (
            f"SpectralPeaks(sample_rate={self.sample_rate}, "
            f"num_samples={self.num_samples}, peaks=[{counts}])"
        )


def peak_magnitude(power: float, floor: float) -> float:
    """Log-scaled magnitude of a power value."""
    return math.log(max(floor, power)) * MAGNITUDE_SCALE + MAGNITUDE_OFFSET


class SpectrogramProcessor:
    """
    Incremental spectrogram and peak detector.

    Args:
        sample_rate: Sample rate of the pushed samples
        config: FingerprintConfig (defaults if None)
    """

    def __init__(self, sample_rate: int, config: FingerprintConfig | None = None):
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive.")
        self.config = config or FingerprintConfig()
        self.sample_rate = int(sample_rate)
        cfg = self.config
        self.n_bins = cfg.fft_size // 2 + 1
        zeros = np.zeros(self.n_bins, dtype=np.float64)
        self._samples = Ring(cfg.fft_size, 0.0, dtype=np.float64)
        self._fft_outputs = Ring(cfg.history_size, zeros)
        self._spread_outputs = Ring(cfg.history_size, zeros)
        self._window = hann_open(cfg.fft_size)
        self._frame = np.zeros(cfg.fft_size, dtype=np.float64)
        self._bins = np.arange(cfg.min_bin, cfg.max_bin)
        self._bin_hz = np.arange(self.n_bins) * self.sample_rate / float(cfg.fft_size)
        self.total_samples = 0
        self.frames_written = 0
        self._peaks: list[list[FrequencyPeak]] = [[] for _ in range(NUM_BANDS)]
        self._lowpass = (
            LowPassFilter(cfg.lowpass_cutoff_hz, self.sample_rate)
            if cfg.lowpass_cutoff_hz is not None else None
        )

    def process_samples(self, samples: np.ndarray) -> None:
        """Push samples; every complete hop produces one spectrum frame."""
        x = np.asarray(samples, dtype=np.float64)
        if x.ndim != 1:
            raise ValueError("process_samples expects mono 1D samples.")
        if self._lowpass is not None and x.size:
            x = self._lowpass.process(x)
        hop = self.config.hop_size
        for start in range(0, x.size, hop):
            chunk = x[start:start + hop]
            self._samples.append(chunk)
            self.total_samples += chunk.size
            if chunk.size < hop or self.total_samples < self.config.fft_size:
                continue
            self._do_fft()
            if self.frames_written >= self.config.frame_delay:
                self._do_peak_recognition()

    def _do_fft(self) -> None:
        cfg = self.config
        self._samples.slice(self._frame, 0)
        scaled = np.round(self._frame * cfg.sample_scale) * self._window
        spec = np.fft.rfft(scaled)
        power = np.maximum((spec.real ** 2 + spec.imag ** 2) / POWER_SCALE, POWER_FLOOR)
        self._fft_outputs.append([power])

        spread = power.copy()
        spread[:-2] = np.maximum(np.maximum(power[:-2], power[1:-1]), power[2:])
        self._spread_outputs.append([spread])
        for offset in cfg.spread_offsets:
            older = self._spread_outputs.at(offset)
            self._spread_outputs.set_at(offset, np.maximum(older, spread))
        self.frames_written += 1

    def _band_indices(self, hz: np.ndarray) -> np.ndarray:
        """Band of each frequency, -1 outside the edges; the top edge is inclusive."""
        edges = np.asarray(self.config.band_edges_hz, dtype=np.float64)
        hz = np.asarray(hz, dtype=np.float64)
        idx = np.searchsorted(edges, hz, side="right") - 1
        idx = np.where(hz == edges[-1], NUM_BANDS - 1, idx)
        return np.where((hz < edges[0]) | (hz > edges[-1]), -1, idx)

    def _band_of(self, hz: float) -> int | None:
        band = int(self._band_indices(np.array([hz]))[0])
        return None if band < 0 else band

    def _do_peak_recognition(self) -> None:
        cfg = self.config
        fft_m = self._fft_outputs.at(-cfg.frame_delay)
        spread_m = self._spread_outputs.at(-cfg.spread_delay)
        b = self._bins
        m = fft_m[b]

        keep = (m >= cfg.min_magnitude) & (m >= spread_m[b - 1])
        if not keep.any():
            return

        neighbor_max = np.zeros_like(m)
        for off in cfg.neighbor_offsets:
            idx = b + off
            valid = (idx >= 0) & (idx < self.n_bins)
            vals = np.where(valid, spread_m[np.clip(idx, 0, self.n_bins - 1)], 0.0)
            neighbor_max = np.maximum(neighbor_max, vals)
        keep &= m > neighbor_max

        other_max = neighbor_max
        for off in cfg.time_offsets:
            other_max = np.maximum(other_max, self._spread_outputs.at(off)[b - 1])
        keep &= m > other_max

        if cfg.relative_threshold > 0.0:
            keep &= self._relative_mask(fft_m, b, m)

        pass_number = self.frames_written - cfg.frame_delay
        floor = cfg.min_magnitude
        for bin_ in b[keep]:
            bin_ = int(bin_)
            before = peak_magnitude(fft_m[bin_ - 1], floor)
            peak = peak_magnitude(fft_m[bin_], floor)
            after = peak_magnitude(fft_m[bin_ + 1], floor)
            curvature = 2.0 * peak - after - before
            variation = int(32.0 * (after - before) / curvature) if curvature != 0 else 0
            refined = bin_ * BIN_SUBDIVISIONS + variation
            hz = refined * self.sample_rate / float(cfg.fft_size * BIN_SUBDIVISIONS)
            band = self._band_of(hz)
            if band is None:
                continue
            self._peaks[band].append(FrequencyPeak(pass_number, int(peak), refined))

    def _relative_mask(self, fft_m: np.ndarray, b: np.ndarray, m: np.ndarray) -> np.ndarray:
        """Require each candidate to reach a fraction of its band's strongest bin."""
        all_idx = self._band_indices(self._bin_hz)
        band_idx = all_idx[b]
        mask = np.zeros(b.size, dtype=bool)
        for band in range(NUM_BANDS):
            in_band = all_idx == band
            if not in_band.any():
                continue
            limit = self.config.relative_threshold * float(np.max(fft_m[in_band]))
            sel = band_idx == band
            mask[sel] = m[sel] >= limit
        return mask

    @property
    def peak_count(self) -> int:
        return sum(len(band) for band in self._peaks)

    def extract_peaks(self) -> SpectralPeaks:
        """Snapshot of the peaks found so far."""
        return SpectralPeaks(
            sample_rate=self.sample_rate,
            num_samples=self.total_samples,
            peaks_by_band=tuple(tuple(band) for band in self._peaks),
        )


def build_signature(event: SampleEvent, config: FingerprintConfig | None = None) -> Signature:
    """
    Build a signature from one sampled window.

    The window is pushed through a fresh SpectrogramProcessor, which low-pass
    filters it when configured.
    """
    config = config or FingerprintConfig()
    proc = SpectrogramProcessor(event.sample_rate, config)
    proc.process_samples(np.asarray(event.data, dtype=np.float64))
    sig = proc.extract_peaks().to_signature()
    logger.debug(
        "sample %d/%d: %d frames, %d peaks",
        event.sample_index + 1, event.total_samples, proc.frames_written, sig.peak_count
    )
    return sig


def signatures_for_file(
    source,
    sampler_config: SamplerConfig | None = None,
    config: FingerprintConfig | None = None,
    cancel_token=None
) -> list[Signature]:
    """
    Sample a path or stream and build one signature per window.

    Returns:
        Signatures in window order; fewer than requested when cancelled
    """
    sampler_config = sampler_config or SamplerConfig()
    sampler = UniformSampler(
        sample_duration=sampler_config.sample_duration,
        sample_count=sampler_config.sample_count,
        sample_rate=sampler_config.sample_rate,
        cancel_token=cancel_token,
    )
    signatures: list[Signature] = []
    sampler.process(source, lambda event: signatures.append(build_signature(event, config)))
    return signatures
