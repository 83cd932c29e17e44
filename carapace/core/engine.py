"""
Carapace Decode Session
========================

:func:`decode` runs the header chain and the section table decoder once
over an immutable byte buffer and returns a :class:`PEImage`.  Import
descriptors are decoded on demand by :meth:`PEImage.imports`, which
never alters the already-decoded headers.

Usage::

    image = decode(raw_bytes)
    print(image.coff_header.machine_name)
    for sec in image.sections:
        print(sec.display_name, hex(sec.virtual_address))
    for desc in image.imports():
        print(image.import_name(desc))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from shared.config import CarapaceConfig
from shared.logger import CarapaceLogger

from carapace.core.errors import DecodeError, ImageUnreadableError, InvalidDirectoryIndexError
from carapace.core.models import (
    CoffHeader,
    DataDirectory,
    DirectoryEntry,
    DosHeader,
    ImportDescriptor,
    OptionalHeader,
    PartialImage,
    SectionHeader,
)
from carapace.parsers.constants import DATA_DIRECTORY_COUNT
from carapace.parsers.fields import BufferLike, FieldReader
from carapace.parsers.headers import decode_header_chain
from carapace.parsers.imports import read_import_name, walk_import_descriptors
from carapace.parsers.sections import decode_section_table, rva_to_offset


class PEImage:
    """Decoded view of one PE file.

    Instances are built by :func:`decode`; every attribute is a frozen
    record and the source buffer is never modified, so an image may be
    shared between threads.
    """

    __slots__ = (
        "_reader", "_config", "_logger",
        "_dos_header", "_coff_header", "_optional_header",
        "_section_table_offset", "_sections",
    )

    def __init__(
        self,
        reader: FieldReader,
        config: CarapaceConfig,
        logger: CarapaceLogger,
    ) -> None:
        self._reader = reader
        self._config = config
        self._logger = logger

        chain = decode_header_chain(reader, config.decoder, logger)
        self._dos_header = chain.dos_header
        self._coff_header = chain.coff_header
        self._optional_header = chain.optional_header
        self._section_table_offset = chain.section_table_offset

        try:
            with logger.operation("section_table"):
                self._sections = decode_section_table(
                    reader,
                    self._section_table_offset,
                    self._coff_header.number_of_sections,
                    config.decoder,
                    logger,
                )
        except DecodeError as exc:
            exc.partial = PartialImage(
                dos_header=self._dos_header,
                coff_header=self._coff_header,
                optional_header=self._optional_header,
            )
            raise

    # ------------------------------------------------------------------ #
    #  Decoded headers
    # ------------------------------------------------------------------ #

    @property
    def data(self) -> bytes:
        return self._reader.data

    @property
    def dos_header(self) -> DosHeader:
        return self._dos_header

    @property
    def coff_header(self) -> CoffHeader:
        return self._coff_header

    @property
    def optional_header(self) -> OptionalHeader:
        return self._optional_header

    @property
    def data_directories(self) -> tuple[DataDirectory, ...]:
        return self._optional_header.data_directories

    @property
    def sections(self) -> tuple[SectionHeader, ...]:
        return self._sections

    @property
    def section_table_offset(self) -> int:
        return self._section_table_offset

    # ------------------------------------------------------------------ #
    #  Data directory index
    # ------------------------------------------------------------------ #

    def directory(self, index: Union[DirectoryEntry, int]) -> DataDirectory:
        """Return the data directory at *index*.

        Absent tables come back as zero entries with ``present == False``.

        Raises:
            InvalidDirectoryIndexError: *index* is not an integer in 0..15.
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidDirectoryIndexError(index)
        if not 0 <= index < DATA_DIRECTORY_COUNT:
            raise InvalidDirectoryIndexError(index)
        return self.data_directories[index]

    # ------------------------------------------------------------------ #
    #  Imports (on demand)
    # ------------------------------------------------------------------ #

    def imports(self) -> tuple[ImportDescriptor, ...]:
        """Walk the import descriptor table.

        Raises:
            MalformedOffsetError: The import directory RVA is unmapped.
            OutOfBoundsError: A descriptor runs past the end of the image.
        """
        with self._logger.operation("imports"):
            return walk_import_descriptors(
                self._reader,
                self.directory(DirectoryEntry.IMPORT),
                self._sections,
                self._config.decoder,
                self._logger,
            )

    def import_name(self, descriptor: ImportDescriptor) -> str:
        """Resolve the DLL name referenced by *descriptor*."""
        return read_import_name(
            self._reader, descriptor, self._sections, self._config.decoder
        )

    def named_imports(self) -> list[tuple[ImportDescriptor, Optional[str]]]:
        """Walk the import table and resolve each DLL name.

        A name that cannot be resolved is logged and paired with ``None``;
        the descriptor itself is kept.

        Raises:
            DecodeError: The descriptor table itself cannot be walked.
        """
        pairs: list[tuple[ImportDescriptor, Optional[str]]] = []
        for descriptor in self.imports():
            try:
                name: Optional[str] = self.import_name(descriptor)
            except DecodeError as exc:
                self._logger.warning(
                    "Import name at RVA 0x%x unresolved: %s",
                    descriptor.name_rva, exc,
                )
                name = None
            pairs.append((descriptor, name))
        return pairs

    def rva_to_offset(self, rva: int) -> int:
        """Map an RVA to a file offset through the section table."""
        return rva_to_offset(self._sections, rva, len(self._reader))

    # ------------------------------------------------------------------ #
    #  Serialisation
    # ------------------------------------------------------------------ #

    def to_dict(self, imports: bool = False) -> dict[str, Any]:
        """Convert the image to a JSON-compatible dictionary.

        Args:
            imports: Also walk and include the import table.  A table that
                cannot be walked is reported under ``imports_error``; a
                single unresolvable DLL name becomes ``null``.
        """
        coff = self._coff_header
        opt = self._optional_header
        result: dict[str, Any] = {
            "size": len(self._reader),
            "dos_header": self._dos_header.model_dump(mode="json"),
            "coff_header": {
                **coff.model_dump(mode="json"),
                "machine_name": coff.machine_name,
                "characteristic_names": coff.characteristic_names,
            },
            "optional_header": {
                **opt.model_dump(mode="json", exclude={"data_directories"}),
                "subsystem_name": opt.subsystem_name,
                "dll_characteristic_names": opt.dll_characteristic_names,
            },
            "data_directories": [
                {**d.model_dump(mode="json"), "name": d.name}
                for d in self.data_directories
            ],
            "sections": [
                {
                    **s.model_dump(mode="json"),
                    "display_name": s.display_name,
                    "flag_names": s.flag_names,
                }
                for s in self._sections
            ],
        }
        if imports:
            try:
                result["imports"] = [
                    {**d.model_dump(mode="json"), "name": name}
                    for d, name in self.named_imports()
                ]
            except DecodeError as exc:
                result["imports_error"] = str(exc)
        return result

    def __repr__(self) -> str:
        return (
            f"<PEImage machine={self._coff_header.machine_name} "
            f"sections={len(self._sections)} size={len(self._reader)}>"
        )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def decode(
    data: BufferLike,
    config: CarapaceConfig | None = None,
    logger: CarapaceLogger | None = None,
) -> PEImage:
    """Decode PE headers and the section table from raw bytes.

    Args:
        data: Complete file contents.
        config: Carapace configuration.  Defaults are used if not provided.
        logger: Logger instance.  A new one is created if not provided.

    Raises:
        DecodeError: Any header-chain or section-table failure.  The
            exception's ``partial`` holds the headers decoded before it.
    """
    config = config or CarapaceConfig()
    logger = logger or CarapaceLogger.from_config("decoder", config)
    reader = FieldReader(data)
    with logger.timed(f"decode of {len(reader)} bytes"):
        return PEImage(reader, config, logger)


def load_image(
    path: str | Path,
    config: CarapaceConfig | None = None,
    logger: CarapaceLogger | None = None,
) -> PEImage:
    """Read *path* and decode it.

    Raises:
        ImageUnreadableError: The file cannot be opened or read.
        DecodeError: The contents are not a decodable PE image.
    """
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise ImageUnreadableError(str(path), exc.strerror or str(exc)) from exc
    return decode(data, config=config, logger=logger)
