"""
SpectraPrint - Audio Descriptors and Acoustic Fingerprints

Turns decoded audio into spectral descriptors for recommendation and into
compact peak signatures for song identification.
"""
from spectraprint.version import __version__
from spectraprint.types import (
    ComputingDevice,
    AudioBuffer,
    AudioDescription,
    AudioStat,
    AnalysisParameter,
    AnalysisResult,
    SampleEvent,
)
from spectraprint.errors import (
    SpectraPrintError,
    AudioDecodeError,
    SignatureFormatError,
    DeviceBackendError,
)

__all__ = [
    "__version__",
    "ComputingDevice",
    "AudioBuffer",
    "AudioDescription",
    "AudioStat",
    "AnalysisParameter",
    "AnalysisResult",
    "SampleEvent",
    "SpectraPrintError",
    "AudioDecodeError",
    "SignatureFormatError",
    "DeviceBackendError",
]
