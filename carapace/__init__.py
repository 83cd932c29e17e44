"""
Carapace -- PE Container Decoder
=================================

Carapace decodes the headers of Windows Portable Executable files:
the DOS stub header, the COFF file header, the PE32/PE32+ optional
header with its 16 data directories, the section table and the import
descriptor table.

Decoding is read-only and works on an in-memory byte buffer; every
structure is an immutable pydantic record.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
    - Pietrek, M. (1994). Peering Inside the PE.
"""

from carapace.core.engine import PEImage, decode, load_image
from carapace.core.errors import (
    CarapaceError,
    DecodeError,
    ImageUnreadableError,
    InvalidDirectoryIndexError,
    InvalidSignatureError,
    MalformedOffsetError,
    OutOfBoundsError,
    SectionCountError,
    TruncatedSectionTableError,
)
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

__version__ = "1.0.0"
__all__ = [
    "PEImage",
    "decode",
    "load_image",
    "CarapaceError",
    "DecodeError",
    "ImageUnreadableError",
    "InvalidDirectoryIndexError",
    "InvalidSignatureError",
    "MalformedOffsetError",
    "OutOfBoundsError",
    "SectionCountError",
    "TruncatedSectionTableError",
    "CoffHeader",
    "DataDirectory",
    "DirectoryEntry",
    "DosHeader",
    "ImportDescriptor",
    "OptionalHeader",
    "PartialImage",
    "SectionHeader",
]
