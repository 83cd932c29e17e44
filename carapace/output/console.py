"""
Carapace Console Output
========================

Rich-powered terminal rendering of decoded PE structures: one table per
header, a data-directory table, the section table and the import
descriptors.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from shared.console import CarapaceConsole

from carapace.core.engine import PEImage
from carapace.core.models import (
    CoffHeader,
    DataDirectory,
    DosHeader,
    ImportDescriptor,
    OptionalHeader,
    PartialImage,
    SectionHeader,
)


def _hex(value: int) -> str:
    return f"0x{value:x}"


def _flags(names: list[str]) -> str:
    return " | ".join(names) if names else "-"


class ImageConsoleOutput:
    """Render decoded PE structures to a :class:`CarapaceConsole`."""

    def __init__(self, console: CarapaceConsole | None = None) -> None:
        self._con = console or CarapaceConsole()

    def display(
        self,
        image: PEImage,
        imports: Sequence[tuple[ImportDescriptor, str | None]] | None = None,
    ) -> None:
        """Render every decoded structure of *image*.

        Args:
            image: Decoded image.
            imports: ``(descriptor, dll_name)`` pairs, or ``None`` to skip
                the import table.  An unresolved name shows as ``?``.
        """
        self._con.info(
            f"{image.coff_header.machine_name} image, "
            f"{len(image.data)} bytes, {len(image.sections)} section(s)"
        )
        self.dos_header(image.dos_header)
        self.coff_header(image.coff_header)
        self.optional_header(image.optional_header)
        self.data_directories(image.data_directories)
        self.sections(image.sections)
        if imports is not None:
            self.imports(imports)

    def display_partial(self, partial: PartialImage) -> None:
        """Render whatever headers decoded before a failure."""
        if partial.dos_header is not None:
            self.dos_header(partial.dos_header)
        if partial.coff_header is not None:
            self.coff_header(partial.coff_header)
        if partial.optional_header is not None:
            self.optional_header(partial.optional_header)
            self.data_directories(partial.optional_header.data_directories)

    # ------------------------------------------------------------------ #
    #  Individual structures
    # ------------------------------------------------------------------ #

    def dos_header(self, dos: DosHeader) -> None:
        self._con.section("DOS Header")
        pairs: list[tuple[str, Any]] = [("signature", repr(dos.signature))]
        for name in (
            "last_page_size", "file_num_pages", "num_reloc_items",
            "header_num_paragraphs", "min_extra_paragraphs",
            "max_extra_paragraphs", "initial_rel_ss", "initial_sp",
            "checksum", "initial_ip", "initial_rel_cs", "reloc_tbl_address",
            "overlay_num", "oem_id", "oem_info", "pe_offset",
        ):
            pairs.append((name, _hex(getattr(dos, name))))
        self._con.key_values("IMAGE_DOS_HEADER", pairs)

    def coff_header(self, coff: CoffHeader) -> None:
        self._con.section("COFF File Header")
        stamp = coff.timestamp
        self._con.key_values("IMAGE_FILE_HEADER", [
            ("machine", f"{_hex(coff.machine)} ({coff.machine_name})"),
            ("number_of_sections", coff.number_of_sections),
            ("time_date_stamp", f"{_hex(coff.time_date_stamp)}"
                + (f" ({stamp.isoformat()})" if stamp else "")),
            ("pointer_to_symbol_table", _hex(coff.pointer_to_symbol_table)),
            ("number_of_symbols", coff.number_of_symbols),
            ("size_of_opt_header", _hex(coff.size_of_opt_header)),
            ("characteristics", f"{_hex(coff.characteristics)} "
                f"({_flags(coff.characteristic_names)})"),
        ])

    def optional_header(self, opt: OptionalHeader) -> None:
        self._con.section("Optional Header")
        pairs: list[tuple[str, Any]] = []
        for name, value in opt:
            if name == "data_directories":
                continue
            if value is None:
                pairs.append((name, "-"))
            elif name == "subsystem":
                pairs.append((name, f"{value} ({opt.subsystem_name})"))
            elif name == "dll_characteristics":
                pairs.append((name, f"{_hex(value)} "
                    f"({_flags(opt.dll_characteristic_names)})"))
            else:
                pairs.append((name, _hex(value)))
        kind = "PE32+" if opt.is_pe32plus else "PE32"
        self._con.key_values(f"IMAGE_OPTIONAL_HEADER ({kind})", pairs)

    def data_directories(self, directories: Sequence[DataDirectory]) -> None:
        self._con.section("Data Directories")
        self._con.table(
            "IMAGE_DATA_DIRECTORY",
            ("#", "Name", "VirtualAddress", "Size"),
            [
                (d.index, d.name, _hex(d.virtual_address), _hex(d.size))
                for d in directories
            ],
            styles=("dim", "bold", "", ""),
        )

    def sections(self, sections: Sequence[SectionHeader]) -> None:
        self._con.section("Section Headers")
        if not sections:
            self._con.info("No sections.")
            return
        self._con.table(
            "IMAGE_SECTION_HEADER",
            ("Name", "VirtSize", "VirtAddr", "RawSize", "RawPtr",
             "Relocs", "Characteristics"),
            [
                (
                    s.display_name,
                    _hex(s.virtual_size),
                    _hex(s.virtual_address),
                    _hex(s.size_of_raw_data),
                    _hex(s.pointer_to_raw_data),
                    s.num_of_relocations,
                    f"{_hex(s.characteristics)} {_flags(s.flag_names)}",
                )
                for s in sections
            ],
            styles=("bold",),
        )

    def imports(self, imports: Sequence[tuple[ImportDescriptor, str | None]]) -> None:
        self._con.section("Import Descriptors")
        if not imports:
            self._con.info("No imports.")
            return
        self._con.table(
            "IMAGE_IMPORT_DESCRIPTOR",
            ("DLL", "OrigFirstThunk", "TimeDateStamp", "ForwardChain",
             "Name", "FirstThunk"),
            [
                (
                    "?" if name is None else name,
                    _hex(d.orig_first_thunk),
                    _hex(d.time_date_stamp),
                    _hex(d.forward_chain),
                    _hex(d.name_rva),
                    _hex(d.first_thunk),
                )
                for d, name in imports
            ],
            styles=("bold",),
        )
