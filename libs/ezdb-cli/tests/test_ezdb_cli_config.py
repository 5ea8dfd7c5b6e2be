"""Tests for config-file loading and override merging."""

import json

import pytest
from ezdb_cli.config import build_run_config, load_config_file
from pydantic import ValidationError


def _write(tmp_path, data):
    path = tmp_path / "ezdb.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadConfigFile:
    def test_reads_object(self, tmp_path):
        path = _write(tmp_path, {"connection": "Server=db01", "masks": ["Sales"]})
        assert load_config_file(path)["masks"] == ["Sales"]

    def test_rejects_invalid_json(self, tmp_path):
        path = tmp_path / "ezdb.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_config_file(path)

    def test_rejects_non_object(self, tmp_path):
        with pytest.raises(ValueError, match="JSON object"):
            load_config_file(_write(tmp_path, ["Sales"]))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "missing.json")


class TestBuildRunConfig:
    def test_overrides_only(self):
        config = build_run_config(overrides={"connection": "Server=db01", "masks": ["Sales.*.*"]})
        assert config.connection == "Server=db01"
        assert config.masks == ["Sales.*.*"]
        assert config.assembly_prefix == "Noctusoft.EzDbEF"

    def test_file_values_kept_when_not_overridden(self, tmp_path):
        path = _write(
            tmp_path,
            {"connection": "Server=db01", "masks": ["HR"], "assembly_prefix": "Acme", "build": {"configuration": "Debug"}},
        )
        config = build_run_config(path, {"connection": None, "masks": [], "max_workers": None})
        assert config.masks == ["HR"]
        assert config.assembly_prefix == "Acme"
        assert config.build.configuration == "Debug"

    def test_explicit_overrides_win(self, tmp_path):
        path = _write(tmp_path, {"connection": "Server=db01", "masks": ["HR"], "max_workers": 2})
        config = build_run_config(path, {"connection": "Server=db02", "masks": ["Sales"], "max_workers": 4})
        assert config.connection == "Server=db02"
        assert config.masks == ["Sales"]
        assert config.max_workers == 4

    def test_dotted_override_merges_into_section(self, tmp_path):
        path = _write(tmp_path, {"connection": "Server=db01", "build": {"configuration": "Debug"}})
        config = build_run_config(path, {"build.skip_build": True})
        assert config.build.skip_build is True
        assert config.build.configuration == "Debug"

    def test_false_override_is_applied(self, tmp_path):
        path = _write(tmp_path, {"connection": "Server=db01", "generate_api": True})
        assert build_run_config(path, {"generate_api": False}).generate_api is False

    def test_unknown_key_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            build_run_config(_write(tmp_path, {"connection": "Server=db01", "colour": "blue"}))

    def test_connection_required(self):
        with pytest.raises(ValidationError):
            build_run_config(overrides={"masks": ["Sales"]})
