"""
PE Header Chain Decoder
========================

Decodes the fixed prefix of a PE file in dependency order:

    DOS header (offset 0)
      -> PE signature at ``pe_offset``
      -> COFF header at ``pe_offset + 4``
      -> optional header at ``pe_offset + 24``
      -> 16 data directories after the optional header's fixed fields

Each structure's location is computed from a field of the previous
structure and validated against the buffer before decoding.  A start
offset outside the buffer is a :class:`MalformedOffsetError`; a
structure that starts inside but runs off the end surfaces as
:class:`OutOfBoundsError` from the field reader.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
"""

from __future__ import annotations

import struct
from typing import NamedTuple

from shared.config import DecoderConfig
from shared.logger import CarapaceLogger

from carapace.core.errors import (
    DecodeError,
    InvalidSignatureError,
    MalformedOffsetError,
)
from carapace.core.models import (
    CoffHeader,
    DataDirectory,
    DosHeader,
    OptionalHeader,
    PartialImage,
)
from carapace.parsers.constants import (
    COFF_HEADER_SIZE,
    DATA_DIRECTORY_COUNT,
    DATA_DIRECTORY_SIZE,
    DOS_HEADER_SIZE,
    MZ_MAGIC,
    OPTIONAL_HEADER_PE32PLUS_SIZE,
    OPTIONAL_HEADER_PE32_SIZE,
    PE32_MAGIC,
    PE32PLUS_MAGIC,
    PE_MAGIC,
    PE_SIGNATURE_SIZE,
    ROM_MAGIC,
)
from carapace.parsers.fields import FieldReader


# ---------------------------------------------------------------------------
# On-disk layouts
# ---------------------------------------------------------------------------

_DOS_FMT = "<2s13H8s2H20sI"
_COFF_FMT = "<HHIIIHH"

# Optional header: standard fields, then Windows-specific fields.
_PE32_STD_FMT = "<HBBIIIIII"
_PE32_WIN_FMT = "<IIIHHHHHHIIIIHHIIIIII"
_PE32PLUS_STD_FMT = "<HBBIIIII"
_PE32PLUS_WIN_FMT = "<QIIHHHHHHIIIIHHQQQQII"

_OPT_WIN_FIELDS = (
    "image_base", "section_alignment", "file_alignment",
    "major_os_version", "minor_os_version",
    "major_image_version", "minor_image_version",
    "major_subsystem_version", "minor_subsystem_version",
    "win32_version_value", "size_of_image", "size_of_headers",
    "checksum", "subsystem", "dll_characteristics",
    "size_of_stack_reserve", "size_of_stack_commit",
    "size_of_heap_reserve", "size_of_heap_commit",
    "loader_flags", "number_of_rva_and_sizes",
)


class HeaderChain(NamedTuple):
    """Result of a successful header-chain decode."""
    dos_header: DosHeader
    coff_header: CoffHeader
    optional_header: OptionalHeader
    optional_header_offset: int

    @property
    def section_table_offset(self) -> int:
        # The declared size, not the decoder's fixed layout, is the stride.
        return self.optional_header_offset + self.coff_header.size_of_opt_header


def locate(reader: FieldReader, offset: int, what: str) -> int:
    """Validate that a computed structure offset lies inside the buffer."""
    if offset < 0 or offset >= len(reader):
        raise MalformedOffsetError(
            f"{what} offset 0x{offset:x} is outside the "
            f"0x{len(reader):x}-byte image",
            offset,
        )
    return offset


# ---------------------------------------------------------------------------
# Individual structures
# ---------------------------------------------------------------------------

def decode_dos_header(
    reader: FieldReader, strict: bool, log: CarapaceLogger
) -> DosHeader:
    """Decode the 64-byte DOS header at offset 0.

    Raises:
        InvalidSignatureError: Signature is not ``MZ`` and *strict* is set.
        OutOfBoundsError: The buffer is shorter than the header.
    """
    signature = reader.raw(0, 2)
    if signature != MZ_MAGIC:
        if strict:
            raise InvalidSignatureError(
                f"No MZ header - magic is: {signature!r}", 0
            )
        log.warning("DOS signature is %r, expected 'MZ'; continuing", signature)

    fields = reader.unpack(_DOS_FMT, 0)
    (
        signature,
        last_page_size, file_num_pages, num_reloc_items,
        header_num_paragraphs, min_extra_paragraphs, max_extra_paragraphs,
        initial_rel_ss, initial_sp, checksum, initial_ip, initial_rel_cs,
        reloc_tbl_address, overlay_num,
        reserved1, oem_id, oem_info, reserved2, pe_offset,
    ) = fields
    return DosHeader(
        signature=signature,
        last_page_size=last_page_size,
        file_num_pages=file_num_pages,
        num_reloc_items=num_reloc_items,
        header_num_paragraphs=header_num_paragraphs,
        min_extra_paragraphs=min_extra_paragraphs,
        max_extra_paragraphs=max_extra_paragraphs,
        initial_rel_ss=initial_rel_ss,
        initial_sp=initial_sp,
        checksum=checksum,
        initial_ip=initial_ip,
        initial_rel_cs=initial_rel_cs,
        reloc_tbl_address=reloc_tbl_address,
        overlay_num=overlay_num,
        reserved1=reserved1,
        oem_id=oem_id,
        oem_info=oem_info,
        reserved2=reserved2,
        pe_offset=pe_offset,
    )


def verify_pe_signature(reader: FieldReader, pe_offset: int) -> None:
    """Check for ``PE\\0\\0`` at *pe_offset*.

    Raises:
        MalformedOffsetError: *pe_offset* points into the DOS header or
            past the end of the image.
        InvalidSignatureError: The four bytes there are not ``PE\\0\\0``.
    """
    if pe_offset < DOS_HEADER_SIZE:
        raise MalformedOffsetError(
            f"PE offset 0x{pe_offset:x} overlaps the DOS header", pe_offset
        )
    locate(reader, pe_offset, "PE signature")
    signature = reader.raw(pe_offset, PE_SIGNATURE_SIZE)
    if signature != PE_MAGIC:
        raise InvalidSignatureError(
            f"No PE header signature: {signature!r}, not a PE executable",
            pe_offset,
        )


def decode_coff_header(reader: FieldReader, offset: int) -> CoffHeader:
    """Decode the 20-byte COFF file header at *offset*."""
    locate(reader, offset, "COFF header")
    (
        machine,
        number_of_sections,
        time_date_stamp,
        pointer_to_symbol_table,
        number_of_symbols,
        size_of_opt_header,
        characteristics,
    ) = reader.unpack(_COFF_FMT, offset)
    return CoffHeader(
        machine=machine,
        number_of_sections=number_of_sections,
        time_date_stamp=time_date_stamp,
        pointer_to_symbol_table=pointer_to_symbol_table,
        number_of_symbols=number_of_symbols,
        size_of_opt_header=size_of_opt_header,
        characteristics=characteristics,
    )


def decode_data_directories(
    reader: FieldReader, offset: int, declared: int, honor_count: bool
) -> tuple[DataDirectory, ...]:
    """Decode the data-directory array into exactly 16 entries.

    Args:
        reader: Image reader.
        offset: File offset of the first entry.
        declared: ``number_of_rva_and_sizes`` from the optional header.
        honor_count: Read only the first ``min(declared, 16)`` entries and
            zero-fill the rest; otherwise read all 16.
    """
    count = min(declared, DATA_DIRECTORY_COUNT) if honor_count else DATA_DIRECTORY_COUNT
    entries: list[DataDirectory] = []
    for index in range(DATA_DIRECTORY_COUNT):
        if index < count:
            rva, size = reader.unpack("<II", offset + index * DATA_DIRECTORY_SIZE)
            entries.append(DataDirectory(index=index, virtual_address=rva, size=size))
        else:
            entries.append(DataDirectory(index=index))
    return tuple(entries)


def decode_optional_header(
    reader: FieldReader,
    offset: int,
    config: DecoderConfig,
    log: CarapaceLogger,
) -> OptionalHeader:
    """Decode the optional header at *offset*, PE32 or PE32+ by magic.

    Raises:
        InvalidSignatureError: Unknown magic while ``config.strict`` is set.
    """
    locate(reader, offset, "optional header")
    magic = reader.u16(offset)

    if magic == PE32PLUS_MAGIC:
        std_fmt, win_fmt = _PE32PLUS_STD_FMT, _PE32PLUS_WIN_FMT
        fixed_size = OPTIONAL_HEADER_PE32PLUS_SIZE
    else:
        if magic not in (PE32_MAGIC, ROM_MAGIC):
            if config.strict:
                raise InvalidSignatureError(
                    f"Unknown optional header magic 0x{magic:x}", offset
                )
            log.warning(
                "Unknown optional header magic 0x%x; decoding as PE32", magic
            )
        std_fmt, win_fmt = _PE32_STD_FMT, _PE32_WIN_FMT
        fixed_size = OPTIONAL_HEADER_PE32_SIZE

    std = reader.unpack(std_fmt, offset)
    win_offset = offset + struct.calcsize(std_fmt)
    win = dict(zip(_OPT_WIN_FIELDS, reader.unpack(win_fmt, win_offset)))

    dd_offset = offset + fixed_size
    log.debug(
        "Data directories at 0x%x (declared %d)",
        dd_offset,
        win["number_of_rva_and_sizes"],
        offset=dd_offset,
    )
    directories = decode_data_directories(
        reader, dd_offset, win["number_of_rva_and_sizes"], config.honor_rva_count
    )

    return OptionalHeader(
        magic=std[0],
        major_linker_version=std[1],
        minor_linker_version=std[2],
        size_of_code=std[3],
        size_of_initialized_data=std[4],
        size_of_uninitialized_data=std[5],
        address_of_entry_point=std[6],
        base_of_code=std[7],
        base_of_data=std[8] if len(std) > 8 else None,
        data_directories=directories,
        **win,
    )


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

def decode_header_chain(
    reader: FieldReader, config: DecoderConfig, log: CarapaceLogger
) -> HeaderChain:
    """Decode DOS, COFF and optional headers in dependency order.

    On failure the raised :class:`DecodeError` carries a
    :class:`PartialImage` with every header decoded before the failing
    step.
    """
    decoded: dict[str, object] = {}
    try:
        with log.operation("header_chain"):
            dos = decode_dos_header(reader, config.strict, log)
            decoded["dos_header"] = dos

            verify_pe_signature(reader, dos.pe_offset)
            coff_offset = dos.pe_offset + PE_SIGNATURE_SIZE
            log.debug("COFF header at 0x%x", coff_offset, offset=coff_offset)
            coff = decode_coff_header(reader, coff_offset)
            decoded["coff_header"] = coff

            opt_offset = coff_offset + COFF_HEADER_SIZE
            log.debug("Optional header at 0x%x", opt_offset, offset=opt_offset)
            optional = decode_optional_header(reader, opt_offset, config, log)
            decoded["optional_header"] = optional
    except DecodeError as exc:
        exc.partial = PartialImage(**decoded)
        raise

    return HeaderChain(dos, coff, optional, opt_offset)
