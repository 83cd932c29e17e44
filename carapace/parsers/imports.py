"""
PE Import Descriptor Walker
============================

Walks the ``IMAGE_IMPORT_DESCRIPTOR`` array located by the Import data
directory.

Termination policy: the array is NUL-terminated (an all-zero
descriptor ends it), and the directory's ``size`` is only a ceiling of
``size // 20`` descriptors.  The size field does not reliably equal the
entry count in real images, so it is never used as the count.
"""

from __future__ import annotations

from typing import Sequence

from shared.config import DecoderConfig
from shared.logger import CarapaceLogger

from carapace.core.models import DataDirectory, ImportDescriptor, SectionHeader
from carapace.parsers.constants import IMPORT_DESCRIPTOR_SIZE
from carapace.parsers.fields import FieldReader
from carapace.parsers.sections import rva_to_offset

_DESCRIPTOR_FMT = "<IIIII"


def _resolve(
    reader: FieldReader,
    sections: Sequence[SectionHeader],
    rva: int,
    translate: bool,
) -> int:
    if translate:
        return rva_to_offset(sections, rva, len(reader))
    return rva


def walk_import_descriptors(
    reader: FieldReader,
    directory: DataDirectory,
    sections: Sequence[SectionHeader],
    config: DecoderConfig,
    log: CarapaceLogger,
) -> tuple[ImportDescriptor, ...]:
    """Decode import descriptors until the null entry or the size ceiling.

    Args:
        reader: Image reader.
        directory: The Import data directory entry.
        sections: Decoded section table, used for RVA translation.
        config: ``translate_rva`` selects RVA translation or direct file
            offsets.
        log: Logger.

    Returns:
        Descriptors in table order, without the terminating null entry.
        An absent directory, or one with a zero address, yields an empty
        tuple.

    Raises:
        MalformedOffsetError: The directory RVA is not mapped by a section.
        OutOfBoundsError: A descriptor runs past the end of the image.
    """
    if not directory.present:
        return ()
    if directory.virtual_address == 0:
        log.warning(
            "Import directory has size %d but no address; treating it as absent",
            directory.size,
        )
        return ()

    start = _resolve(reader, sections, directory.virtual_address, config.translate_rva)
    ceiling = directory.size // IMPORT_DESCRIPTOR_SIZE
    log.debug(
        "Import descriptors at 0x%x (RVA 0x%x), at most %d",
        start, directory.virtual_address, ceiling,
        offset=start,
    )

    descriptors: list[ImportDescriptor] = []
    for i in range(ceiling):
        fields = reader.unpack(_DESCRIPTOR_FMT, start + i * IMPORT_DESCRIPTOR_SIZE)
        descriptor = ImportDescriptor(
            orig_first_thunk=fields[0],
            time_date_stamp=fields[1],
            forward_chain=fields[2],
            name_rva=fields[3],
            first_thunk=fields[4],
        )
        if descriptor.is_null:
            break
        descriptors.append(descriptor)
    else:
        if ceiling:
            log.warning(
                "Import table reached its %d-entry size limit without a "
                "null terminator", ceiling,
            )
    return tuple(descriptors)


def read_import_name(
    reader: FieldReader,
    descriptor: ImportDescriptor,
    sections: Sequence[SectionHeader],
    config: DecoderConfig,
) -> str:
    """Return the DLL name a descriptor's ``name_rva`` points to."""
    offset = _resolve(reader, sections, descriptor.name_rva, config.translate_rva)
    raw = reader.cstring(offset, config.max_name_length)
    return raw.decode("ascii", errors="replace")
