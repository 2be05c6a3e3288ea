"""
Peak signatures and their binary encodings.

Two layouts are supported:

* the native layout (``encode``/``decode``), little-endian::

      int32 sample_rate, int32 num_samples,
      5 x (uint32 count, count x (int32 pass, int32 magnitude, int32 bin))

* the identification service layout (``encode_shazam``/``decode_shazam``),
  a 48-byte header with CRC32, followed by byte-packed band sections.
"""
from __future__ import annotations
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, Sequence

from spectraprint.errors import SignatureFormatError
from spectraprint.types import NUM_BANDS

_HEADER = struct.Struct("<ii")
_COUNT = struct.Struct("<I")
_PEAK = struct.Struct("<iii")
_U32 = struct.Struct("<I")
_PACKED_PEAK = struct.Struct("<BHH")

SHAZAM_MAGIC1 = 0xCAFE2580
SHAZAM_MAGIC2 = 0x94119C00
SHAZAM_FIXED = 0x007C0000
SHAZAM_CONTENTS = 0x40000000
SHAZAM_BAND_BASE = 0x60030040
SHAZAM_HEADER_SIZE = 48

SAMPLE_RATE_CODES = {8000: 1, 11025: 2, 16000: 3, 32000: 4, 44100: 5}
_CODE_SAMPLE_RATES = {v: k for k, v in SAMPLE_RATE_CODES.items()}


@dataclass(frozen=True)
class FrequencyPeak:
    pass_: int
    magnitude: int
    bin: int


def _sample_offset(sample_rate: int) -> int:
    return int(sample_rate * 0.24)


@dataclass(frozen=True)
class Signature:
    sample_rate: int
    num_samples: int
    peaks_by_band: tuple[tuple[FrequencyPeak, ...], ...]

    def __post_init__(self):
        bands = tuple(tuple(band) for band in self.peaks_by_band)
        if len(bands) != NUM_BANDS:
            raise ValueError(f"Signature needs exactly {NUM_BANDS} bands, got {len(bands)}.")
        object.__setattr__(self, "peaks_by_band", bands)

    @classmethod
    def empty(cls, sample_rate: int, num_samples: int = 0) -> "Signature":
        return cls(sample_rate, num_samples, tuple(() for _ in range(NUM_BANDS)))

    @property
    def peak_count(self) -> int:
        return sum(len(band) for band in self.peaks_by_band)

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.num_samples / float(self.sample_rate)

    def encode(self) -> bytes:
        """Serialise to the native binary layout."""
        try:
            parts = [_HEADER.pack(self.sample_rate, self.num_samples)]
            for band in self.peaks_by_band:
                parts.append(_COUNT.pack(len(band)))
                parts.extend(_PEAK.pack(p.pass_, p.magnitude, p.bin) for p in band)
        except struct.error as exc:
            raise SignatureFormatError(f"Value does not fit in 32 bits: {exc}") from exc
        return b"".join(parts)

    @classmethod
    def decode(cls, data: bytes) -> "Signature":
        """
        Parse the native binary layout.

        Raises:
            SignatureFormatError: truncated data, per-band counts that do not
                match the byte length, or trailing bytes
        """
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise SignatureFormatError("Signature shorter than its header.")
        sample_rate, num_samples = _HEADER.unpack_from(data, 0)
        offset = _HEADER.size
        bands = []
        for band in range(NUM_BANDS):
            if offset + _COUNT.size > len(data):
                raise SignatureFormatError(f"Missing count for band {band}.")
            (count,) = _COUNT.unpack_from(data, offset)
            offset += _COUNT.size
            end = offset + count * _PEAK.size
            if end > len(data):
                raise SignatureFormatError(
                    f"Band {band} declares {count} peaks but only "
                    f"{len(data) - offset} bytes remain."
                )
            bands.append(tuple(
                FrequencyPeak(*fields) for fields in _PEAK.iter_unpack(data[offset:end])
            ))
            offset = end
        if offset != len(data):
            raise SignatureFormatError(f"{len(data) - offset} trailing bytes after last band.")
        return cls(sample_rate, num_samples, tuple(bands))

    def encode_shazam(self) -> bytes:
        """Serialise to the identification service's signature layout."""
        code = SAMPLE_RATE_CODES.get(int(self.sample_rate))
        if code is None:
            raise SignatureFormatError(f"Unsupported sample rate: {self.sample_rate}")

        contents = bytearray()
        for band_id, band in enumerate(self.peaks_by_band):
            if not band:
                continue
            packed = bytearray()
            last_pass = 0
            try:
                for peak in band:
                    if peak.pass_ < last_pass:
                        raise SignatureFormatError("Peaks must be ordered by pass.")
                    if peak.pass_ - last_pass >= 255:
                        packed.append(0xFF)
                        packed += _U32.pack(peak.pass_)
                        last_pass = peak.pass_
                    packed += _PACKED_PEAK.pack(peak.pass_ - last_pass, peak.magnitude, peak.bin)
                    last_pass = peak.pass_
            except struct.error as exc:
                raise SignatureFormatError(f"Peak does not fit the packed layout: {exc}") from exc
            contents += _U32.pack(SHAZAM_BAND_BASE + band_id)
            contents += _U32.pack(len(packed))
            contents += packed
            contents += b"\x00" * ((4 - len(packed) % 4) % 4)

        size = len(contents) + 8
        try:
            header = struct.pack(
                "<12I",
                SHAZAM_MAGIC1,
                0,
                size,
                SHAZAM_MAGIC2,
                0, 0, 0,
                code << 27,
                0, 0,
                self.num_samples + _sample_offset(self.sample_rate),
                SHAZAM_FIXED,
            )
        except struct.error as exc:
            raise SignatureFormatError(f"Header does not fit the layout: {exc}") from exc
        buf = bytearray(header)
        buf += _U32.pack(SHAZAM_CONTENTS)
        buf += _U32.pack(size)
        buf += contents
        _U32.pack_into(buf, 4, zlib.crc32(bytes(buf[8:])) & 0xFFFFFFFF)
        return bytes(buf)

    @classmethod
    def decode_shazam(cls, data: bytes) -> "Signature":
        """Parse the identification service's signature layout."""
        data = bytes(data)
        if len(data) < SHAZAM_HEADER_SIZE + 8:
            raise SignatureFormatError("Signature shorter than its header.")
        fields = struct.unpack_from("<12I", data, 0)
        magic1, checksum, size, magic2 = fields[:4]
        if magic1 != SHAZAM_MAGIC1:
            raise SignatureFormatError("Bad magic number 1.")
        if checksum != zlib.crc32(data[8:]) & 0xFFFFFFFF:
            raise SignatureFormatError("Bad checksum.")
        if size != len(data) - SHAZAM_HEADER_SIZE:
            raise SignatureFormatError("Bad length.")
        if magic2 != SHAZAM_MAGIC2:
            raise SignatureFormatError("Bad magic number 2.")
        sample_rate = _CODE_SAMPLE_RATES.get(fields[7] >> 27)
        if sample_rate is None:
            raise SignatureFormatError(f"Unknown sample rate code: {fields[7] >> 27}")
        num_samples = fields[10] - _sample_offset(sample_rate)
        if fields[11] != SHAZAM_FIXED:
            raise SignatureFormatError("Bad magic number 3.")
        contents_magic, size2 = struct.unpack_from("<II", data, SHAZAM_HEADER_SIZE)
        if contents_magic != SHAZAM_CONTENTS:
            raise SignatureFormatError("Bad magic number 4.")
        if size2 != len(data) - SHAZAM_HEADER_SIZE:
            raise SignatureFormatError("Bad second length.")

        bands: list[list[FrequencyPeak]] = [[] for _ in range(NUM_BANDS)]
        pos = SHAZAM_HEADER_SIZE + 8
        try:
            while pos < len(data):
                band_info, band_size = struct.unpack_from("<II", data, pos)
                pos += 8
                band_id = band_info - SHAZAM_BAND_BASE
                if not 0 <= band_id < NUM_BANDS:
                    raise SignatureFormatError(f"Unknown band tag: {band_info:#x}")
                end = pos + band_size
                if end > len(data):
                    raise SignatureFormatError(f"Band {band_id} overruns the buffer.")
                last_pass = 0
                while pos < end:
                    delta = data[pos]
                    if delta == 0xFF:
                        (last_pass,) = _U32.unpack_from(data, pos + 1)
                        pos += 5
                        continue
                    _, magnitude, bin_ = _PACKED_PEAK.unpack_from(data, pos)
                    pos += _PACKED_PEAK.size
                    last_pass += delta
                    bands[band_id].append(FrequencyPeak(last_pass, magnitude, bin_))
                if pos != end:
                    raise SignatureFormatError(f"Band {band_id} size mismatch.")
                pos += (4 - band_size % 4) % 4
        except struct.error as exc:
            raise SignatureFormatError(f"Truncated band data: {exc}") from exc
        return cls(sample_rate, num_samples, tuple(tuple(b) for b in bands))


def signature_from_peaks(
    sample_rate: int,
    num_samples: int,
    peaks_by_band: Sequence[Iterable[FrequencyPeak]]
) -> Signature:
    """Build a Signature from per-band peak iterables."""
    return Signature(int(sample_rate), int(num_samples), tuple(tuple(b) for b in peaks_by_band))
