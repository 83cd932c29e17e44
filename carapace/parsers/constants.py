"""
PE/COFF Constant Tables
========================

Magic values, structure sizes, and the closed code-to-name tables for
machine types, subsystems, COFF file characteristics, DLL
characteristics and section characteristics.

Lookups never fail: files in the wild carry undocumented and
vendor-specific codes, which render as ``unknown(0x...)``.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Magic numbers and fixed sizes
# ---------------------------------------------------------------------------

MZ_MAGIC: bytes = b"MZ"
PE_MAGIC: bytes = b"PE\x00\x00"

PE32_MAGIC: int = 0x10B
PE32PLUS_MAGIC: int = 0x20B
ROM_MAGIC: int = 0x107

DOS_HEADER_SIZE: int = 64
PE_SIGNATURE_SIZE: int = 4
COFF_HEADER_SIZE: int = 20
OPTIONAL_HEADER_PE32_SIZE: int = 96
OPTIONAL_HEADER_PE32PLUS_SIZE: int = 112
DATA_DIRECTORY_SIZE: int = 8
DATA_DIRECTORY_COUNT: int = 16
SECTION_HEADER_SIZE: int = 40
IMPORT_DESCRIPTOR_SIZE: int = 20


# ---------------------------------------------------------------------------
# Machine types (COFF header)
# ---------------------------------------------------------------------------

MACHINE_TYPES: dict[int, str] = {
    0x0000: "unspecified",
    0x014C: "i386",
    0x0162: "r3000",
    0x0166: "r4000",
    0x0168: "r10000",
    0x0169: "wcemipsv2",
    0x0184: "alpha",
    0x01A2: "sh3",
    0x01A3: "sh3dsp",
    0x01A4: "sh3e",
    0x01A6: "sh4",
    0x01A8: "sh5",
    0x01C0: "arm",
    0x01C2: "thumb",
    0x01C4: "armnt",
    0x01D3: "am33",
    0x01F0: "powerpc",
    0x01F1: "powerpcfp",
    0x0200: "ia64",
    0x0266: "mips16",
    0x0284: "alpha64",
    0x0366: "mipsfpu",
    0x0466: "mipsfpu16",
    0x0520: "tricore",
    0x0CEF: "cef",
    0x0EBC: "ebc",
    0x5032: "riscv32",
    0x5064: "riscv64",
    0x5128: "riscv128",
    0x6232: "loongarch32",
    0x6264: "loongarch64",
    0x8664: "amd64",
    0x9041: "m32r",
    0xAA64: "arm64",
    0xC0EE: "cee",
}


# ---------------------------------------------------------------------------
# Subsystems (optional header)
# ---------------------------------------------------------------------------

SUBSYSTEMS: dict[int, str] = {
    0: "unspecified",
    1: "native",
    2: "windows_gui",
    3: "windows_console",
    5: "os2_console",
    7: "posix_console",
    8: "native_win9x_driver",
    9: "windows_ce_gui",
    10: "efi_application",
    11: "efi_boot_service_driver",
    12: "efi_runtime_driver",
    13: "efi_rom",
    14: "xbox",
    16: "windows_boot_application",
}


# ---------------------------------------------------------------------------
# COFF file characteristics
# ---------------------------------------------------------------------------

FILE_CHARACTERISTICS: tuple[tuple[int, str], ...] = (
    (0x0001, "RELOCS_STRIPPED"),
    (0x0002, "EXECUTABLE_IMAGE"),
    (0x0004, "LINE_NUMS_STRIPPED"),
    (0x0008, "LOCAL_SYMS_STRIPPED"),
    (0x0010, "AGGRESSIVE_WS_TRIM"),
    (0x0020, "LARGE_ADDRESS_AWARE"),
    (0x0080, "BYTES_REVERSED_LO"),
    (0x0100, "32BIT_MACHINE"),
    (0x0200, "DEBUG_STRIPPED"),
    (0x0400, "REMOVABLE_RUN_FROM_SWAP"),
    (0x0800, "NET_RUN_FROM_SWAP"),
    (0x1000, "SYSTEM"),
    (0x2000, "DLL"),
    (0x4000, "UP_SYSTEM_ONLY"),
    (0x8000, "BYTES_REVERSED_HI"),
)

IMAGE_FILE_DLL: int = 0x2000


# ---------------------------------------------------------------------------
# DLL characteristics (optional header)
# ---------------------------------------------------------------------------

DLL_CHARACTERISTICS: tuple[tuple[int, str], ...] = (
    (0x0020, "HIGH_ENTROPY_VA"),
    (0x0040, "DYNAMIC_BASE"),
    (0x0080, "FORCE_INTEGRITY"),
    (0x0100, "NX_COMPAT"),
    (0x0200, "NO_ISOLATION"),
    (0x0400, "NO_SEH"),
    (0x0800, "NO_BIND"),
    (0x1000, "APPCONTAINER"),
    (0x2000, "WDM_DRIVER"),
    (0x4000, "GUARD_CF"),
    (0x8000, "TERMINAL_SERVER_AWARE"),
)


# ---------------------------------------------------------------------------
# Section characteristics
# ---------------------------------------------------------------------------

IMAGE_SCN_CNT_CODE: int = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA: int = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA: int = 0x00000080
IMAGE_SCN_ALIGN_MASK: int = 0x00F00000
IMAGE_SCN_MEM_EXECUTE: int = 0x20000000
IMAGE_SCN_MEM_READ: int = 0x40000000
IMAGE_SCN_MEM_WRITE: int = 0x80000000

# GPREL/MEM_FARDATA and MEM_PURGEABLE/MEM_16BIT share values; the
# first name of each pair is used.
SECTION_FLAGS: tuple[tuple[int, str], ...] = (
    (0x00000008, "TYPE_NO_PAD"),
    (IMAGE_SCN_CNT_CODE, "CNT_CODE"),
    (IMAGE_SCN_CNT_INITIALIZED_DATA, "CNT_INITIALIZED_DATA"),
    (IMAGE_SCN_CNT_UNINITIALIZED_DATA, "CNT_UNINITIALIZED_DATA"),
    (0x00000100, "LNK_OTHER"),
    (0x00000200, "LNK_INFO"),
    (0x00000800, "LNK_REMOVE"),
    (0x00001000, "LNK_COMDAT"),
    (0x00004000, "NO_DEFER_SPEC_EXC"),
    (0x00008000, "GPREL"),
    (0x00020000, "MEM_PURGEABLE"),
    (0x00040000, "MEM_LOCKED"),
    (0x00080000, "MEM_PRELOAD"),
    (0x01000000, "LNK_NRELOC_OVFL"),
    (0x02000000, "MEM_DISCARDABLE"),
    (0x04000000, "MEM_NOT_CACHED"),
    (0x08000000, "MEM_NOT_PAGED"),
    (0x10000000, "MEM_SHARED"),
    (IMAGE_SCN_MEM_EXECUTE, "MEM_EXECUTE"),
    (IMAGE_SCN_MEM_READ, "MEM_READ"),
    (IMAGE_SCN_MEM_WRITE, "MEM_WRITE"),
)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def _unknown(code: int) -> str:
    return f"unknown(0x{code:x})"


def machine_name(code: int) -> str:
    """Return the symbolic machine name for a COFF ``machine`` code."""
    return MACHINE_TYPES.get(code, _unknown(code))


def subsystem_name(code: int) -> str:
    """Return the symbolic subsystem name for an optional-header code."""
    return SUBSYSTEMS.get(code, _unknown(code))


def _flag_names(value: int, table: tuple[tuple[int, str], ...]) -> list[str]:
    names = [name for bit, name in table if value & bit]
    known = 0
    for bit, _ in table:
        known |= bit
    leftover = value & ~known
    if leftover:
        names.append(_unknown(leftover))
    return names


def file_characteristic_names(value: int) -> list[str]:
    """Decode COFF ``characteristics`` into flag names, in table order."""
    return _flag_names(value, FILE_CHARACTERISTICS)


def dll_characteristic_names(value: int) -> list[str]:
    """Decode optional-header ``dll_characteristics`` into flag names."""
    return _flag_names(value, DLL_CHARACTERISTICS)


def section_flag_names(value: int) -> list[str]:
    """Decode section ``characteristics`` into flag names.

    The alignment nibble (bits 20-23) is an enumerated value rather than a
    set of flags and decodes to a single ``ALIGN_<n>BYTES`` entry.
    """
    align = (value & IMAGE_SCN_ALIGN_MASK) >> 20
    names = _flag_names(value & ~IMAGE_SCN_ALIGN_MASK, SECTION_FLAGS)
    if 1 <= align <= 14:
        names.append(f"ALIGN_{1 << (align - 1)}BYTES")
    elif align:
        names.append(_unknown(value & IMAGE_SCN_ALIGN_MASK))
    return names
