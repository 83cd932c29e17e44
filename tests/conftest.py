"""Shared fixtures: a synthetic PE image builder."""

import struct
from typing import NamedTuple

import pytest

from shared.config import CarapaceConfig
from shared.logger import CarapaceLogger


class SectionLayout(NamedTuple):
    name: bytes
    virtual_address: int
    virtual_size: int
    pointer_to_raw_data: int
    size_of_raw_data: int
    characteristics: int


PE_OFFSET = 0x80
OPT_OFFSET = PE_OFFSET + 24
PE32_OPT_SIZE = 96 + 16 * 8
SECTION_TABLE_OFFSET = OPT_OFFSET + PE32_OPT_SIZE  # 0x178

TEXT = SectionLayout(b".text\x00\x00\x00", 0x1000, 0x30, 0x200, 0x200, 0x60000020)
IDATA = SectionLayout(b".idata\x00\x00", 0x2000, 0x50, 0x400, 0x200, 0xC0000040)
DEFAULT_SECTIONS = (TEXT, IDATA)

IMPORT_RVA = 0x2000
DLL_NAME = b"KERNEL32.dll"
# (orig_first_thunk, time_date_stamp, forward_chain, name_rva, first_thunk)
DEFAULT_IMPORTS = ((0x2040, 0, 0, 0x2080, 0x2048),)


def build_pe(
    *,
    mz=b"MZ",
    machine=0x14C,
    pe32plus=False,
    sections=DEFAULT_SECTIONS,
    rva_count=16,
    size_of_opt_header=None,
    directories=None,
    imports=DEFAULT_IMPORTS,
    import_offset=0x400,
    time_date_stamp=0x5F5E1000,
    characteristics=0x0102,
):
    """Assemble a PE image with a DOS stub and ``e_lfanew`` of 0x80.

    Args:
        directories: ``{index: (rva, size)}``; defaults to an import
            directory at ``IMPORT_RVA`` sized for one descriptor plus null.
        imports: Descriptors written at *import_offset*, followed by the
            DLL name at ``import_offset + 0x80``.
    """
    opt_fixed = 112 if pe32plus else 96
    if size_of_opt_header is None:
        size_of_opt_header = opt_fixed + 16 * 8
    if directories is None:
        directories = {1: (IMPORT_RVA, 20 * (len(imports) + 1))}

    section_table = OPT_OFFSET + size_of_opt_header
    size = max(
        [section_table + 40 * len(sections), 0x200]
        + [s.pointer_to_raw_data + s.size_of_raw_data for s in sections]
    )
    buf = bytearray(size)

    struct.pack_into(
        "<2s13H8s2H20sI", buf, 0,
        mz, 0x90, 3, 0, 4, 0, 0xFFFF, 0, 0xB8, 0, 0, 0, 0x40, 0,
        b"\x00" * 8, 0, 0, b"\x00" * 20, PE_OFFSET,
    )
    buf[PE_OFFSET:PE_OFFSET + 4] = b"PE\x00\x00"
    struct.pack_into(
        "<HHIIIHH", buf, PE_OFFSET + 4,
        machine, len(sections), time_date_stamp, 0, 0,
        size_of_opt_header, characteristics,
    )

    if pe32plus:
        struct.pack_into(
            "<HBBIIIII", buf, OPT_OFFSET,
            0x20B, 14, 29, 0x200, 0x200, 0, 0x1000, 0x1000,
        )
        struct.pack_into(
            "<QIIHHHHHHIIIIHHQQQQII", buf, OPT_OFFSET + 24,
            0x140000000, 0x1000, 0x200, 6, 0, 0, 0, 6, 0, 0,
            0x3000, 0x200, 0, 3, 0x8160,
            0x100000, 0x1000, 0x100000, 0x1000, 0, rva_count,
        )
    else:
        struct.pack_into(
            "<HBBIIIIII", buf, OPT_OFFSET,
            0x10B, 14, 29, 0x200, 0x200, 0, 0x1000, 0x1000, 0x2000,
        )
        struct.pack_into(
            "<IIIHHHHHHIIIIHHIIIIII", buf, OPT_OFFSET + 28,
            0x400000, 0x1000, 0x200, 6, 0, 0, 0, 6, 0, 0,
            0x3000, 0x200, 0, 3, 0x8140,
            0x100000, 0x1000, 0x100000, 0x1000, 0, rva_count,
        )

    dd_offset = OPT_OFFSET + opt_fixed
    for index, (rva, dsize) in directories.items():
        struct.pack_into("<II", buf, dd_offset + 8 * index, rva, dsize)

    for i, sec in enumerate(sections):
        struct.pack_into(
            "<8sIIIIIIHHI", buf, section_table + 40 * i,
            sec.name, sec.virtual_size, sec.virtual_address,
            sec.size_of_raw_data, sec.pointer_to_raw_data,
            0, 0, 0, 0, sec.characteristics,
        )

    if imports and import_offset + 0x80 + len(DLL_NAME) < size:
        for i, desc in enumerate(imports):
            struct.pack_into("<IIIII", buf, import_offset + 20 * i, *desc)
        name_at = import_offset + 0x80
        buf[name_at:name_at + len(DLL_NAME)] = DLL_NAME

    return bytes(buf)


@pytest.fixture
def pe_bytes():
    """A well-formed PE32 image with .text, .idata and one import."""
    return build_pe()


@pytest.fixture
def build():
    """The :func:`build_pe` factory."""
    return build_pe


@pytest.fixture
def config():
    return CarapaceConfig()


@pytest.fixture
def quiet_logger():
    return CarapaceLogger("tests", log_level="DEBUG", console_output=False)
