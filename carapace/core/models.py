"""
Carapace Data Models
=====================

Immutable pydantic records for every structure the decoder produces:
DOS header, COFF header, optional header with its data directories,
section headers and import descriptors.

Each record is produced once per decode call and never mutated
(``frozen=True``).  Byte fields stay raw ``bytes`` in Python and
serialise to hex strings in JSON mode.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (1994). Peering Inside the PE: A Tour of the Win32
      Portable Executable File Format. Microsoft Systems Journal.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from carapace.parsers.constants import (
    DATA_DIRECTORY_COUNT,
    IMAGE_FILE_DLL,
    MZ_MAGIC,
    PE32PLUS_MAGIC,
    dll_characteristic_names,
    file_characteristic_names,
    machine_name,
    section_flag_names,
    subsystem_name,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class DirectoryEntry(enum.IntEnum):
    """Fixed positions of the 16 optional-header data directories."""
    EXPORT = 0
    IMPORT = 1
    RESOURCE = 2
    EXCEPTION = 3
    CERTIFICATE = 4
    RELOCATION = 5
    DEBUG = 6
    ARCHITECTURE = 7
    GLOBAL_PTR = 8
    TLS = 9
    LOAD_CONFIG = 10
    BOUND_IMPORT = 11
    IMPORT_ADDRESS_TABLE = 12
    DELAY_IMPORT_DESCRIPTOR = 13
    COM_RUNTIME_HEADER = 14
    RESERVED = 15


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# DOS header
# ---------------------------------------------------------------------------

class DosHeader(_Record):
    """The 64-byte MS-DOS stub header at file offset 0.

    Only ``signature`` and ``pe_offset`` (``e_lfanew``) matter to a PE
    loader; the remaining fields are legacy real-mode values.
    """
    signature: bytes
    last_page_size: int
    file_num_pages: int
    num_reloc_items: int
    header_num_paragraphs: int
    min_extra_paragraphs: int
    max_extra_paragraphs: int
    initial_rel_ss: int
    initial_sp: int
    checksum: int
    initial_ip: int
    initial_rel_cs: int
    reloc_tbl_address: int
    overlay_num: int
    reserved1: bytes
    oem_id: int
    oem_info: int
    reserved2: bytes
    pe_offset: int

    @property
    def has_valid_signature(self) -> bool:
        return self.signature == MZ_MAGIC

    @field_serializer("signature", "reserved1", "reserved2", when_used="json")
    def _hex(self, value: bytes) -> str:
        return value.hex()


# ---------------------------------------------------------------------------
# COFF file header
# ---------------------------------------------------------------------------

class CoffHeader(_Record):
    """The 20-byte COFF file header following ``PE\\0\\0``."""
    machine: int
    number_of_sections: int
    time_date_stamp: int
    pointer_to_symbol_table: int
    number_of_symbols: int
    size_of_opt_header: int
    characteristics: int

    @property
    def machine_name(self) -> str:
        return machine_name(self.machine)

    @property
    def characteristic_names(self) -> list[str]:
        return file_characteristic_names(self.characteristics)

    @property
    def is_dll(self) -> bool:
        return bool(self.characteristics & IMAGE_FILE_DLL)

    @property
    def timestamp(self) -> Optional[datetime]:
        """Link time as a UTC datetime, or ``None`` when the stamp is zero.

        Reproducible builds often store a hash here, so out-of-range
        values also yield ``None``.
        """
        if self.time_date_stamp == 0:
            return None
        try:
            return datetime.fromtimestamp(self.time_date_stamp, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None


# ---------------------------------------------------------------------------
# Data directories and optional header
# ---------------------------------------------------------------------------

class DataDirectory(_Record):
    """A ``(virtual_address, size)`` pair locating an optional table.

    An all-zero entry means the table is absent; that is normal and not
    an error.
    """
    index: int = Field(ge=0, lt=DATA_DIRECTORY_COUNT)
    virtual_address: int = 0
    size: int = 0

    @property
    def entry(self) -> DirectoryEntry:
        return DirectoryEntry(self.index)

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def present(self) -> bool:
        return self.virtual_address != 0 or self.size != 0


class OptionalHeader(_Record):
    """The PE optional header (PE32, ROM or PE32+ layout).

    ``base_of_data`` only exists in the PE32 layout and is ``None`` for
    PE32+.  ``image_base`` and the stack/heap sizes are 64-bit in PE32+.
    ``data_directories`` always holds exactly 16 entries in index order.
    """
    magic: int
    major_linker_version: int
    minor_linker_version: int
    size_of_code: int
    size_of_initialized_data: int
    size_of_uninitialized_data: int
    address_of_entry_point: int
    base_of_code: int
    base_of_data: Optional[int]
    image_base: int
    section_alignment: int
    file_alignment: int
    major_os_version: int
    minor_os_version: int
    major_image_version: int
    minor_image_version: int
    major_subsystem_version: int
    minor_subsystem_version: int
    win32_version_value: int
    size_of_image: int
    size_of_headers: int
    checksum: int
    subsystem: int
    dll_characteristics: int
    size_of_stack_reserve: int
    size_of_stack_commit: int
    size_of_heap_reserve: int
    size_of_heap_commit: int
    loader_flags: int
    number_of_rva_and_sizes: int
    data_directories: tuple[DataDirectory, ...]

    @field_validator("data_directories")
    @classmethod
    def _sixteen_in_order(
        cls, value: tuple[DataDirectory, ...]
    ) -> tuple[DataDirectory, ...]:
        if len(value) != DATA_DIRECTORY_COUNT:
            raise ValueError(
                f"expected {DATA_DIRECTORY_COUNT} data directories, got {len(value)}"
            )
        if [d.index for d in value] != list(range(DATA_DIRECTORY_COUNT)):
            raise ValueError("data directories must be in index order")
        return value

    @property
    def is_pe32plus(self) -> bool:
        return self.magic == PE32PLUS_MAGIC

    @property
    def subsystem_name(self) -> str:
        return subsystem_name(self.subsystem)

    @property
    def dll_characteristic_names(self) -> list[str]:
        return dll_characteristic_names(self.dll_characteristics)


# ---------------------------------------------------------------------------
# Section header
# ---------------------------------------------------------------------------

class SectionHeader(_Record):
    """A 40-byte section table record.

    ``name`` is the raw 8-byte field: not necessarily NUL-terminated, and
    a ``/nnn`` string-table reference for long names is left unresolved.
    """
    name: bytes
    virtual_size: int
    virtual_address: int
    size_of_raw_data: int
    pointer_to_raw_data: int
    pointer_to_relocations: int
    pointer_to_line_numbers: int
    num_of_relocations: int
    num_of_line_numbers: int
    characteristics: int

    @property
    def display_name(self) -> str:
        return self.name.split(b"\x00", 1)[0].decode("ascii", errors="replace")

    @property
    def flag_names(self) -> list[str]:
        return section_flag_names(self.characteristics)

    def contains_rva(self, rva: int) -> bool:
        span = max(self.virtual_size, self.size_of_raw_data)
        return self.virtual_address <= rva < self.virtual_address + span

    @field_serializer("name", when_used="json")
    def _hex(self, value: bytes) -> str:
        return value.hex()


# ---------------------------------------------------------------------------
# Import descriptor
# ---------------------------------------------------------------------------

class ImportDescriptor(_Record):
    """One ``IMAGE_IMPORT_DESCRIPTOR``; all-zero marks the table end."""
    orig_first_thunk: int
    time_date_stamp: int
    forward_chain: int
    name_rva: int
    first_thunk: int

    @property
    def is_null(self) -> bool:
        return not (
            self.orig_first_thunk
            or self.time_date_stamp
            or self.forward_chain
            or self.name_rva
            or self.first_thunk
        )


# ---------------------------------------------------------------------------
# Partial results
# ---------------------------------------------------------------------------

class PartialImage(_Record):
    """Headers decoded before a header-chain failure.

    Attached to :class:`~carapace.core.errors.DecodeError` as ``partial``.
    """
    dos_header: Optional[DosHeader] = None
    coff_header: Optional[CoffHeader] = None
    optional_header: Optional[OptionalHeader] = None
