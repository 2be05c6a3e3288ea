"""Exception types raised by SpectraPrint."""
from __future__ import annotations


class SpectraPrintError(Exception):
    """Base class for SpectraPrint errors."""


class AudioDecodeError(SpectraPrintError, ValueError):
    """Audio could not be decoded; fatal for the current file."""


class SignatureFormatError(SpectraPrintError, ValueError):
    """Signature bytes are malformed."""


class DeviceBackendError(SpectraPrintError, RuntimeError):
    """The FFT backend failed while transforming frames."""
