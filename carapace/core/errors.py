"""Exception hierarchy for the Carapace PE decoder."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from carapace.core.models import PartialImage


class CarapaceError(Exception):
    """Base exception for Carapace errors."""


class ImageUnreadableError(CarapaceError):
    """The image file could not be opened or read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to read {path}: {reason}")
        self.path = path
        self.reason = reason


class DecodeError(CarapaceError):
    """A structure could not be decoded from the image bytes.

    Attributes:
        offset:  File offset the failing step was working at, if known.
        partial: Structures that decoded successfully before the failure.
                 Filled in by the decode session, ``None`` until then.
    """

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.offset = offset
        self.partial: Optional[PartialImage] = None


class InvalidSignatureError(DecodeError):
    """DOS ``MZ``, ``PE\\0\\0`` or optional-header magic mismatch."""


class MalformedOffsetError(DecodeError):
    """A computed offset is negative or lands outside the buffer."""


class OutOfBoundsError(DecodeError):
    """A field read would run past the end of the buffer."""

    def __init__(self, offset: int, width: int, length: int) -> None:
        super().__init__(
            f"Read of {width} byte(s) at offset 0x{offset:x} exceeds "
            f"buffer length 0x{length:x}",
            offset,
        )
        self.width = width
        self.length = length


class TruncatedSectionTableError(DecodeError):
    """The declared section count needs more bytes than the file has."""


class SectionCountError(DecodeError):
    """``number_of_sections`` exceeds the configured sanity bound."""


class InvalidDirectoryIndexError(CarapaceError, IndexError):
    """Data directory index outside 0..15."""

    def __init__(self, index: object) -> None:
        super().__init__(f"Data directory index out of range: {index!r}")
        self.index = index
