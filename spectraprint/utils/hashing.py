"""Content checksums used as comparison keys for library files."""
from __future__ import annotations
import hashlib

MEDIA_CRC_POLY = 0x1BF52


def _build_crc_table(poly: int) -> tuple[int, ...]:
    table = []
    for i in range(256):
        c = i
        for _ in range(8):
            if c & 1:
                c = (c >> 1) ^ poly
            else:
                c >>= 1
        table.append(c & 0xFFFFFFFF)
    return tuple(table)


MEDIA_CRC_TABLE = _build_crc_table(MEDIA_CRC_POLY)


def media_crc32(
    data: bytes,
    initial: int = 0,
    start: int = 0,
    end: int | None = None
) -> int:
    """
    Fold bytes data[start:end] into a 32-bit checksum.

    Not a cryptographic hash. Seeding ``initial`` with a previous result
    continues the computation, so a range may be hashed in pieces.

    Args:
        data: Byte buffer
        initial: Running checksum to continue from
        start: First byte offset (inclusive)
        end: Last byte offset (exclusive); defaults to len(data)

    Returns:
        Unsigned 32-bit checksum
    """
    if end is None:
        end = len(data)
    table = MEDIA_CRC_TABLE
    result = initial & 0xFFFFFFFF
    for byte in memoryview(data)[start:end]:
        result = ((result << 8) ^ table[(byte ^ (result >> 24)) & 0xFF]) & 0xFFFFFFFF
    return result


def media_crc32_file(path: str, chunk_size: int = 65536) -> int:
    """Compute the media checksum of a file, chunk by chunk."""
    crc = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            crc = media_crc32(chunk, crc)
    return crc


def crc_hex(value: int) -> str:
    """Render a checksum as 8 lowercase hex digits."""
    return f"{value & 0xFFFFFFFF:08x}"


def sha256_hex_file(path: str) -> str:
    """Compute SHA256 hash of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()
