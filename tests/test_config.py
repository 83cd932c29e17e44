"""Tests for TOML configuration loading."""

import pytest

from shared.config import CarapaceConfig, DecoderConfig


class TestDefaults:

    def test_decoder_defaults(self):
        decoder = DecoderConfig()
        assert decoder.strict is True
        assert decoder.max_sections == 4096
        assert decoder.honor_rva_count is True
        assert decoder.translate_rva is True

    def test_to_dict(self):
        data = CarapaceConfig().to_dict()
        assert data["decoder"]["strict"] is True
        assert data["global_settings"]["log_level"] == "WARNING"


class TestLoad:
    """Loading ``carapace.toml`` files."""

    def test_sections(self, tmp_path):
        path = tmp_path / "carapace.toml"
        path.write_text(
            "[global]\n"
            'log_level = "DEBUG"\n'
            "\n"
            "[decoder]\n"
            "strict = false\n"
            "max_sections = 96\n"
        )
        config = CarapaceConfig.load(path)
        assert config.global_settings.log_level == "DEBUG"
        assert config.decoder.strict is False
        assert config.decoder.max_sections == 96
        assert config.decoder.translate_rva is True

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "carapace.toml"
        path.write_text("[decoder]\nfuture_option = 1\n[other]\nx = 2\n")
        config = CarapaceConfig.load(path)
        assert config.decoder == DecoderConfig()

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CarapaceConfig.load(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "carapace.toml"
        path.write_text("[decoder\n")
        with pytest.raises(ValueError):
            CarapaceConfig.load(path)
