"""
Little-Endian Field Reader
===========================

:class:`FieldReader` decodes fixed-width little-endian integers and
fixed-length byte spans from an immutable buffer.  It is the only place
in Carapace that checks byte ranges: every structure decoder reads
through it, and every read outside the buffer raises
:class:`~carapace.core.errors.OutOfBoundsError`.
"""

from __future__ import annotations

import struct
from typing import Union

from carapace.core.errors import OutOfBoundsError

BufferLike = Union[bytes, bytearray, memoryview]

_INT_FORMATS: dict[int, str] = {1: "<B", 2: "<H", 4: "<I", 8: "<Q"}


class FieldReader:
    """Bounds-checked reader over a read-only byte buffer.

    The buffer is copied into ``bytes`` once on construction, so callers
    may pass a ``bytearray`` or ``memoryview`` without the reader ever
    observing later mutation.

    Usage::

        reader = FieldReader(data)
        e_lfanew = reader.u32(0x3C)
        machine, nsects = reader.unpack("<HH", e_lfanew + 4)
    """

    __slots__ = ("_data",)

    def __init__(self, data: BufferLike) -> None:
        self._data: bytes = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytes:
        return self._data

    # ------------------------------------------------------------------ #
    #  Bounds
    # ------------------------------------------------------------------ #

    def check(self, offset: int, width: int) -> None:
        """Raise :class:`OutOfBoundsError` unless ``[offset, offset+width)``
        lies inside the buffer.
        """
        if offset < 0 or width < 0 or offset + width > len(self._data):
            raise OutOfBoundsError(offset, width, len(self._data))

    # ------------------------------------------------------------------ #
    #  Scalar reads
    # ------------------------------------------------------------------ #

    def uint(self, offset: int, width: int) -> int:
        """Read an unsigned little-endian integer of 1, 2, 4 or 8 bytes."""
        fmt = _INT_FORMATS.get(width)
        if fmt is None:
            raise ValueError(f"Unsupported integer width: {width}")
        self.check(offset, width)
        return struct.unpack_from(fmt, self._data, offset)[0]

    def u8(self, offset: int) -> int:
        return self.uint(offset, 1)

    def u16(self, offset: int) -> int:
        return self.uint(offset, 2)

    def u32(self, offset: int) -> int:
        return self.uint(offset, 4)

    def u64(self, offset: int) -> int:
        return self.uint(offset, 8)

    def raw(self, offset: int, length: int) -> bytes:
        """Return *length* bytes starting at *offset*."""
        self.check(offset, length)
        return self._data[offset:offset + length]

    # ------------------------------------------------------------------ #
    #  Structured reads
    # ------------------------------------------------------------------ #

    def unpack(self, fmt: str, offset: int) -> tuple:
        """Unpack a :mod:`struct` format at *offset* after a bounds check.

        Args:
            fmt: Struct format; must carry an explicit byte-order prefix.
            offset: File offset of the first byte.

        Returns:
            The unpacked tuple.
        """
        self.check(offset, struct.calcsize(fmt))
        return struct.unpack_from(fmt, self._data, offset)

    def cstring(self, offset: int, limit: int = 256) -> bytes:
        """Read a NUL-terminated byte string of at most *limit* bytes.

        The terminator is not included.  A string that reaches *limit* or
        the end of the buffer without a NUL is returned as-is.
        """
        self.check(offset, 1)
        end = min(offset + limit, len(self._data))
        nul = self._data.find(b"\x00", offset, end)
        return self._data[offset:nul if nul != -1 else end]
