"""DSP modules for SpectraPrint."""

from spectraprint.dsp.fft import CpuBackend, GpuBackend, create_backend
from spectraprint.dsp.filters import LowPassFilter, lowpass, lowpass_alpha
from spectraprint.dsp.ring import Ring
from spectraprint.dsp.windowing import hann, hann_open

__all__ = [
    "CpuBackend",
    "GpuBackend",
    "create_backend",
    "LowPassFilter",
    "lowpass",
    "lowpass_alpha",
    "Ring",
    "hann",
    "hann_open",
]
