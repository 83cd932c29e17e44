"""Tests for the data directory index."""

import pytest

from carapace import decode
from carapace.core.errors import InvalidDirectoryIndexError
from carapace.core.models import DataDirectory, DirectoryEntry


@pytest.fixture
def image(pe_bytes, quiet_logger):
    return decode(pe_bytes, logger=quiet_logger)


class TestDirectoryLookup:
    """``PEImage.directory`` over the 16 fixed slots."""

    def test_matches_array(self, image):
        for i in range(16):
            assert image.directory(i) == image.data_directories[i]

    def test_import_entry(self, image):
        entry = image.directory(DirectoryEntry.IMPORT)
        assert entry.index == 1
        assert entry.virtual_address == 0x2000
        assert entry.size == 40
        assert entry.present
        assert entry.name == "IMPORT"
        assert entry.entry is DirectoryEntry.IMPORT

    def test_absent_entries(self, image):
        export = image.directory(DirectoryEntry.EXPORT)
        assert export == DataDirectory(index=0)
        assert not export.present
        assert not image.directory(15).present

    def test_names_in_order(self, image):
        names = [d.name for d in image.data_directories]
        assert names[0] == "EXPORT"
        assert names[4] == "CERTIFICATE"
        assert names[14] == "COM_RUNTIME_HEADER"


class TestInvalidIndex:
    """Indices outside 0..15 are rejected."""

    @pytest.mark.parametrize("index", [-1, 16, 1000])
    def test_out_of_range(self, image, index):
        with pytest.raises(InvalidDirectoryIndexError) as info:
            image.directory(index)
        assert info.value.index == index

    @pytest.mark.parametrize("index", [True, "1", 1.0, None])
    def test_wrong_type(self, image, index):
        with pytest.raises(InvalidDirectoryIndexError):
            image.directory(index)

    def test_is_index_error(self, image):
        with pytest.raises(IndexError):
            image.directory(16)


class TestDirectoryRecord:
    """Validation on the DataDirectory model itself."""

    def test_index_bounds(self):
        with pytest.raises(ValueError):
            DataDirectory(index=16)

    def test_frozen(self):
        entry = DataDirectory(index=2, virtual_address=0x4000, size=0x100)
        with pytest.raises(ValueError):
            entry.size = 0
