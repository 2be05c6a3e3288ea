from __future__ import annotations

import base64
import struct

import pytest

from spectraprint.errors import SignatureFormatError
from spectraprint.fingerprint.signature import (
    SHAZAM_MAGIC1,
    FrequencyPeak,
    Signature,
    signature_from_peaks,
)


def _signature(sample_rate: int = 16000) -> Signature:
    return signature_from_peaks(sample_rate, 48000, [
        [FrequencyPeak(0, 30000, 2000), FrequencyPeak(3, 31000, 2100)],
        [],
        [FrequencyPeak(10, 28000, 8192), FrequencyPeak(400, 29000, 8200)],
        [FrequencyPeak(5, 27000, 30000)],
        [],
    ])


def test_encode_layout():
    data = Signature.empty(16000, 100).encode()
    assert len(data) == 8 + 5 * 4
    assert struct.unpack_from("<ii", data, 0) == (16000, 100)
    sig = _signature()
    assert len(sig.encode()) == 8 + 5 * 4 + sig.peak_count * 12


def test_round_trip():
    sig = _signature()
    assert Signature.decode(sig.encode()) == sig


def test_decode_rejects_truncated_data():
    data = _signature().encode()
    with pytest.raises(SignatureFormatError):
        Signature.decode(data[:-1])
    with pytest.raises(SignatureFormatError):
        Signature.decode(data[:6])
    with pytest.raises(SignatureFormatError):
        Signature.decode(data[:8 + 4 * 2])


def test_decode_rejects_trailing_bytes():
    with pytest.raises(SignatureFormatError):
        Signature.decode(_signature().encode() + b"\x00")


def test_decode_rejects_inflated_count():
    data = bytearray(Signature.empty(8000).encode())
    struct.pack_into("<I", data, 8, 1000)
    with pytest.raises(SignatureFormatError):
        Signature.decode(bytes(data))


def test_signature_requires_five_bands():
    with pytest.raises(ValueError):
        Signature(16000, 0, ((),) * 4)


def test_shazam_round_trip():
    sig = _signature()
    data = sig.encode_shazam()
    assert struct.unpack_from("<I", data, 0)[0] == SHAZAM_MAGIC1
    assert len(data) % 4 == 0
    assert Signature.decode_shazam(data) == sig


@pytest.mark.parametrize("rate", [8000, 11025, 16000, 32000, 44100])
def test_shazam_supported_rates(rate):
    sig = Signature.empty(rate, 1234)
    assert Signature.decode_shazam(sig.encode_shazam()) == sig


def test_shazam_rejects_unsupported_rate():
    with pytest.raises(SignatureFormatError):
        Signature.empty(22050).encode_shazam()


def test_shazam_detects_corruption():
    data = bytearray(_signature().encode_shazam())
    data[-8] ^= 0xFF
    with pytest.raises(SignatureFormatError):
        Signature.decode_shazam(bytes(data))


def test_shazam_detects_bad_magic():
    data = bytearray(_signature().encode_shazam())
    data[0] ^= 0x01
    with pytest.raises(SignatureFormatError):
        Signature.decode_shazam(bytes(data))


def test_shazam_rejects_unordered_peaks():
    sig = signature_from_peaks(16000, 0, [
        [FrequencyPeak(5, 1, 1), FrequencyPeak(2, 1, 1)], [], [], [], []
    ])
    with pytest.raises(SignatureFormatError):
        sig.encode_shazam()


def test_shazam_rejects_header_out_of_range():
    with pytest.raises(SignatureFormatError):
        Signature.empty(16000, -10**6).encode_shazam()
    with pytest.raises(SignatureFormatError):
        Signature.empty(16000, 2**32).encode_shazam()


def test_signature_properties():
    sig = _signature()
    assert sig.peak_count == 5
    assert sig.duration_seconds == pytest.approx(3.0)
    assert base64.b64decode(base64.b64encode(sig.encode())) == sig.encode()
