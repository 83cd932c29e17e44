"""Tests for the bounds-checked little-endian field reader."""

import pytest

from carapace.core.errors import DecodeError, OutOfBoundsError
from carapace.parsers.fields import FieldReader


class TestIntegerReads:
    """Fixed-width little-endian integer decoding."""

    def test_widths(self):
        reader = FieldReader(bytes(range(1, 9)))
        assert reader.u8(0) == 0x01
        assert reader.u16(0) == 0x0201
        assert reader.u32(0) == 0x04030201
        assert reader.u64(0) == 0x0807060504030201

    def test_offset_read(self):
        reader = FieldReader(b"\x00\x00\x4c\x01")
        assert reader.u16(2) == 0x14C

    def test_unsupported_width(self):
        with pytest.raises(ValueError):
            FieldReader(b"\x00" * 8).uint(0, 3)

    def test_read_ending_exactly_at_end(self):
        reader = FieldReader(b"\xff" * 4)
        assert reader.u32(0) == 0xFFFFFFFF


class TestBounds:
    """Reads outside the buffer raise OutOfBoundsError."""

    def test_overrun(self):
        reader = FieldReader(b"\x00" * 4)
        with pytest.raises(OutOfBoundsError) as info:
            reader.u32(1)
        assert info.value.offset == 1
        assert info.value.width == 4
        assert info.value.length == 4

    def test_negative_offset(self):
        with pytest.raises(OutOfBoundsError):
            FieldReader(b"\x00" * 4).u8(-1)

    def test_is_decode_error(self):
        with pytest.raises(DecodeError):
            FieldReader(b"").u8(0)

    def test_unpack_checks_whole_format(self):
        reader = FieldReader(b"\x00" * 19)
        with pytest.raises(OutOfBoundsError):
            reader.unpack("<HHIIIHH", 0)


class TestSpans:
    """Raw spans and NUL-terminated strings."""

    def test_raw(self):
        reader = FieldReader(b"MZ\x90\x00")
        assert reader.raw(0, 2) == b"MZ"

    def test_raw_overrun(self):
        with pytest.raises(OutOfBoundsError):
            FieldReader(b"MZ").raw(1, 2)

    def test_cstring(self):
        reader = FieldReader(b"xxKERNEL32.dll\x00junk")
        assert reader.cstring(2) == b"KERNEL32.dll"

    def test_cstring_unterminated_stops_at_end(self):
        assert FieldReader(b"abc").cstring(0) == b"abc"

    def test_cstring_limit(self):
        assert FieldReader(b"abcdef\x00").cstring(0, limit=3) == b"abc"

    def test_cstring_start_out_of_range(self):
        with pytest.raises(OutOfBoundsError):
            FieldReader(b"abc").cstring(3)


class TestImmutability:
    """The reader copies its input once."""

    def test_later_mutation_not_observed(self):
        buf = bytearray(b"\x01\x00")
        reader = FieldReader(buf)
        buf[0] = 0xFF
        assert reader.u16(0) == 1
        assert isinstance(reader.data, bytes)

    def test_accepts_memoryview(self):
        reader = FieldReader(memoryview(b"\x34\x12"))
        assert reader.u16(0) == 0x1234
        assert len(reader) == 2
