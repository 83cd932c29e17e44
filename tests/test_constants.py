"""Tests for the closed code-to-name tables."""

from carapace.parsers.constants import (
    dll_characteristic_names,
    file_characteristic_names,
    machine_name,
    section_flag_names,
    subsystem_name,
)


class TestEnumerations:
    """Single-valued code lookups."""

    def test_machine_names(self):
        assert machine_name(0x14C) == "i386"
        assert machine_name(0x8664) == "amd64"
        assert machine_name(0xAA64) == "arm64"

    def test_unknown_machine(self):
        assert machine_name(0x1234) == "unknown(0x1234)"

    def test_subsystems(self):
        assert subsystem_name(2) == "windows_gui"
        assert subsystem_name(3) == "windows_console"
        assert subsystem_name(99) == "unknown(0x63)"


class TestFlagSets:
    """Bit-set decoding in table order."""

    def test_file_characteristics(self):
        assert file_characteristic_names(0x0102) == [
            "EXECUTABLE_IMAGE",
            "32BIT_MACHINE",
        ]
        assert "DLL" in file_characteristic_names(0x2102)

    def test_undocumented_bit(self):
        # 0x0040 is reserved in the COFF characteristics.
        assert file_characteristic_names(0x0042) == [
            "EXECUTABLE_IMAGE",
            "unknown(0x40)",
        ]

    def test_dll_characteristics(self):
        assert dll_characteristic_names(0x8140) == [
            "DYNAMIC_BASE",
            "NX_COMPAT",
            "TERMINAL_SERVER_AWARE",
        ]

    def test_empty(self):
        assert dll_characteristic_names(0) == []


class TestSectionFlags:
    """Section characteristics, including the alignment nibble."""

    def test_text_section(self):
        assert section_flag_names(0x60000020) == [
            "CNT_CODE",
            "MEM_EXECUTE",
            "MEM_READ",
        ]

    def test_data_section(self):
        assert section_flag_names(0xC0000040) == [
            "CNT_INITIALIZED_DATA",
            "MEM_READ",
            "MEM_WRITE",
        ]

    def test_alignment(self):
        assert section_flag_names(0x00300000) == ["ALIGN_4BYTES"]
        assert section_flag_names(0x00100000) == ["ALIGN_1BYTES"]
        assert section_flag_names(0x00E00000) == ["ALIGN_8192BYTES"]

    def test_invalid_alignment(self):
        assert section_flag_names(0x00F00000) == ["unknown(0xf00000)"]
