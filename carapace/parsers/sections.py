"""
PE Section Table Decoder
=========================

Decodes the ``number_of_sections`` contiguous 40-byte section headers
that follow the optional header, and maps Relative Virtual Addresses to
file offsets through the decoded table.
"""

from __future__ import annotations

from typing import Sequence

from shared.config import DecoderConfig
from shared.logger import CarapaceLogger

from carapace.core.errors import (
    MalformedOffsetError,
    OutOfBoundsError,
    SectionCountError,
    TruncatedSectionTableError,
)
from carapace.core.models import SectionHeader
from carapace.parsers.constants import SECTION_HEADER_SIZE
from carapace.parsers.fields import FieldReader

_SECTION_FMT = "<8sIIIIIIHHI"


def decode_section_table(
    reader: FieldReader,
    offset: int,
    count: int,
    config: DecoderConfig,
    log: CarapaceLogger,
) -> tuple[SectionHeader, ...]:
    """Decode *count* section headers starting at *offset*.

    Args:
        reader: Image reader.
        offset: File offset of the first section header, i.e. the optional
            header offset plus the declared ``size_of_opt_header``.
        count: ``number_of_sections`` from the COFF header.
        config: Decoder settings (``max_sections``).
        log: Logger.

    Returns:
        Section headers in file order; empty when *count* is zero.

    Raises:
        SectionCountError: *count* exceeds ``config.max_sections``.
        TruncatedSectionTableError: The table runs past the end of the image.
    """
    if count > config.max_sections:
        raise SectionCountError(
            f"Section count {count} exceeds the limit of {config.max_sections}",
            offset,
        )
    if count == 0:
        return ()

    table_size = count * SECTION_HEADER_SIZE
    try:
        reader.check(offset, table_size)
    except OutOfBoundsError as exc:
        raise TruncatedSectionTableError(
            f"Section table of {count} entries at 0x{offset:x} needs "
            f"0x{table_size:x} bytes but the image is 0x{len(reader):x} bytes",
            offset,
        ) from exc

    log.debug("Section table at 0x%x, %d entries", offset, count, offset=offset, count=count)

    sections: list[SectionHeader] = []
    for i in range(count):
        (
            name,
            virtual_size,
            virtual_address,
            size_of_raw_data,
            pointer_to_raw_data,
            pointer_to_relocations,
            pointer_to_line_numbers,
            num_of_relocations,
            num_of_line_numbers,
            characteristics,
        ) = reader.unpack(_SECTION_FMT, offset + i * SECTION_HEADER_SIZE)
        sections.append(SectionHeader(
            name=name,
            virtual_size=virtual_size,
            virtual_address=virtual_address,
            size_of_raw_data=size_of_raw_data,
            pointer_to_raw_data=pointer_to_raw_data,
            pointer_to_relocations=pointer_to_relocations,
            pointer_to_line_numbers=pointer_to_line_numbers,
            num_of_relocations=num_of_relocations,
            num_of_line_numbers=num_of_line_numbers,
            characteristics=characteristics,
        ))
    return tuple(sections)


def rva_to_offset(
    sections: Sequence[SectionHeader], rva: int, image_length: int
) -> int:
    """Convert a Relative Virtual Address to a file offset.

    The first section whose virtual range contains *rva* maps it to
    ``pointer_to_raw_data + (rva - virtual_address)``.  Addresses below the
    lowest section address lie in the headers, which are mapped 1:1.

    Raises:
        MalformedOffsetError: *rva* is not backed by file data, including
            the zero-filled tail of a section past ``size_of_raw_data``.
    """
    for sec in sections:
        if sec.contains_rva(rva):
            delta = rva - sec.virtual_address
            if delta >= sec.size_of_raw_data:
                raise MalformedOffsetError(
                    f"RVA 0x{rva:x} lies in the uninitialised tail of section "
                    f"{sec.display_name!r} and is not backed by file data",
                    rva,
                )
            offset = sec.pointer_to_raw_data + delta
            if offset < image_length:
                return offset
            raise MalformedOffsetError(
                f"RVA 0x{rva:x} maps to 0x{offset:x} in section "
                f"{sec.display_name!r}, past the end of the image",
                offset,
            )

    header_end = min((s.virtual_address for s in sections), default=image_length)
    if 0 <= rva < min(header_end, image_length):
        return rva
    raise MalformedOffsetError(f"RVA 0x{rva:x} is not mapped by any section", rva)
