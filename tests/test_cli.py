"""Tests for the ``carapace`` command."""

import json

import pytest
from click.testing import CliRunner

from carapace.cli import carapace_cli

from conftest import PE_OFFSET


@pytest.fixture
def runner():
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def pe_file(tmp_path, pe_bytes):
    path = tmp_path / "sample.exe"
    path.write_bytes(pe_bytes)
    return path


class TestRender:
    """Rich table output."""

    def test_valid_file(self, runner, pe_file):
        result = runner.invoke(carapace_cli, [str(pe_file)])
        assert result.exit_code == 0, result.output
        assert "i386" in result.output
        assert ".text" in result.output
        assert ".idata" in result.output
        assert "KERNEL32.dll" in result.output
        assert "IMPORT" in result.output
        assert "windows_console" in result.output

    def test_no_imports(self, runner, pe_file):
        result = runner.invoke(carapace_cli, [str(pe_file), "--no-imports"])
        assert result.exit_code == 0
        assert "KERNEL32.dll" not in result.output
        assert ".text" in result.output

    def test_bad_import_table_is_a_warning(self, runner, tmp_path, build):
        path = tmp_path / "badimp.exe"
        path.write_bytes(build(directories={1: (0x9000, 40)}))
        result = runner.invoke(carapace_cli, [str(path)])
        assert result.exit_code == 0
        assert "Import table could not be decoded" in result.output
        assert ".idata" in result.output


    def test_unresolved_name_shown_as_placeholder(self, runner, tmp_path, build):
        imports = ((0x2040, 0, 0, 0x2080, 0x2048), (0x2044, 0, 0, 0x9000, 0x204C))
        path = tmp_path / "badname.exe"
        path.write_bytes(build(imports=imports))
        result = runner.invoke(carapace_cli, [str(path)])
        assert result.exit_code == 0
        assert "KERNEL32.dll" in result.output
        assert "0x9000" in result.output
        assert "unresolved" in result.output


class TestJson:
    """``--json`` output."""

    def test_json(self, runner, pe_file):
        result = runner.invoke(carapace_cli, [str(pe_file), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["coff_header"]["machine"] == 0x14C
        assert data["dos_header"]["pe_offset"] == PE_OFFSET
        assert [s["display_name"] for s in data["sections"]] == [".text", ".idata"]
        assert data["imports"][0]["name"] == "KERNEL32.dll"

    def test_json_no_imports(self, runner, pe_file):
        result = runner.invoke(carapace_cli, [str(pe_file), "--json", "--no-imports"])
        assert "imports" not in json.loads(result.output)


class TestFailures:
    """Non-zero exits for unreadable or undecodable inputs."""

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(carapace_cli, [str(tmp_path / "absent.exe")])
        assert result.exit_code == 1
        assert "Failed to read" in result.output

    def test_not_a_pe(self, runner, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello world, this is not an executable" * 4)
        result = runner.invoke(carapace_cli, [str(path)])
        assert result.exit_code == 1
        assert "No MZ header" in result.output

    def test_partial_rendered(self, runner, tmp_path, pe_bytes):
        buf = bytearray(pe_bytes)
        buf[PE_OFFSET:PE_OFFSET + 4] = b"PX\x00\x00"
        path = tmp_path / "broken.exe"
        path.write_bytes(bytes(buf))
        result = runner.invoke(carapace_cli, [str(path)])
        assert result.exit_code == 1
        assert "No PE header" in result.output
        assert "DOS Header" in result.output

    def test_missing_config(self, runner, pe_file, tmp_path):
        result = runner.invoke(
            carapace_cli, [str(pe_file), "-c", str(tmp_path / "none.toml")]
        )
        assert result.exit_code == 1
        assert "Cannot load configuration" in result.output


class TestFlags:
    """Decoder switches exposed as options."""

    def test_lenient(self, runner, tmp_path, build):
        path = tmp_path / "zm.exe"
        path.write_bytes(build(mz=b"ZM"))
        assert runner.invoke(carapace_cli, [str(path)]).exit_code == 1
        result = runner.invoke(carapace_cli, [str(path), "--lenient"])
        assert result.exit_code == 0
        assert ".text" in result.output

    def test_raw_offsets(self, runner, pe_file):
        result = runner.invoke(carapace_cli, [str(pe_file), "--raw-offsets", "--json"])
        assert result.exit_code == 0
        assert "imports_error" in json.loads(result.output)

    def test_config_file(self, runner, tmp_path, build):
        path = tmp_path / "zm.exe"
        path.write_bytes(build(mz=b"ZM"))
        cfg = tmp_path / "carapace.toml"
        cfg.write_text('[global]\nlog_level = "ERROR"\n[decoder]\nstrict = false\n')
        result = runner.invoke(carapace_cli, [str(path), "-c", str(cfg)])
        assert result.exit_code == 0
