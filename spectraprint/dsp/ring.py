"""Fixed-capacity circular buffer."""
from __future__ import annotations
from typing import Any, Iterable
import numpy as np


class Ring:
    """
    Circular buffer that wraps writes and reads around a cursor.

    The cursor always points at the next slot to be written, so ``at(-1)`` is
    the newest value and ``at(0)`` the oldest once the ring has filled up.
    Writes never grow the buffer: old values are overwritten.

    Args:
        size: Number of slots (>= 1)
        default: Initial value of every slot
        dtype: When given, slots live in a numpy array of this dtype;
            otherwise a plain list holds arbitrary objects.
    """

    def __init__(self, size: int, default: Any = 0.0, dtype=None):
        size = int(size)
        if size < 1:
            raise ValueError("Ring size must be at least 1.")
        if dtype is not None:
            self._buf = np.full(size, default, dtype=dtype)
        else:
            self._buf = [default] * size
        self._dtype = dtype
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._buf)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def buffer(self):
        """Underlying storage in physical order."""
        return self._buf

    def mod_index(self, offset: int) -> int:
        """Physical index of a signed offset relative to the cursor."""
        return (self._cursor + int(offset)) % len(self._buf)

    def at(self, offset: int):
        return self._buf[self.mod_index(offset)]

    def set_at(self, offset: int, value) -> None:
        self._buf[self.mod_index(offset)] = value

    def append(self, values: Iterable) -> None:
        """Write values at the cursor, wrapping at the physical end."""
        if self._dtype is not None:
            values = np.asarray(values, dtype=self._dtype).ravel()
        else:
            values = list(values)
        size = len(self._buf)
        total = len(values)
        if total > size:
            skip = total - size
            self._cursor = (self._cursor + skip) % size
            values = values[skip:]
        pos = 0
        while pos < len(values):
            room = size - self._cursor
            chunk = values[pos:pos + room]
            n = len(chunk)
            self._buf[self._cursor:self._cursor + n] = chunk
            pos += n
            self._cursor = (self._cursor + n) % size

    def slice(self, dest, offset: int):
        """
        Copy ``len(dest)`` consecutive values starting at ``offset`` into dest.

        The ring is not modified; repeated calls with the same offset yield the
        same values.
        """
        size = len(self._buf)
        if isinstance(dest, np.ndarray) and self._dtype is not None:
            idx = (self._cursor + int(offset) + np.arange(dest.shape[0])) % size
            dest[:] = self._buf[idx]
            return dest
        for i in range(len(dest)):
            dest[i] = self._buf[self.mod_index(offset + i)]
        return dest

    def to_list(self) -> list:
        """Values in logical order, oldest first."""
        return [self.at(i) for i in range(len(self._buf))]
