"""Tests for the run configuration model."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ezdb_core.config import BuildSettings, RunConfig, ScaffoldOptions


def test_defaults():
    config = RunConfig(connection="db01")
    assert config.masks == []
    assert config.assembly_prefix == "Noctusoft.EzDbEF"
    assert config.package_version == "1.0.0"
    assert config.max_workers == 1
    assert config.connect_timeout == 5.0
    assert config.scaffold == ScaffoldOptions()
    assert config.build == BuildSettings()


def test_derived_directories():
    config = RunConfig(connection="db01", output_path=Path("/tmp/out"))
    assert config.solution_dir == Path("/tmp/out/src")
    assert config.artifacts_dir == Path("/tmp/out/artifacts")


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        RunConfig.model_validate({"connection": "db01", "db-masks": ["x"]})


@pytest.mark.parametrize("version", ["1.0", "1.0.0", "2.1.3.4", "1.0.0-beta1"])
def test_valid_versions(version):
    assert RunConfig(connection="db01", package_version=version).package_version == version


@pytest.mark.parametrize("version", ["", "v1", "1", "1.0.0 beta"])
def test_invalid_versions(version):
    with pytest.raises(ValidationError):
        RunConfig(connection="db01", package_version=version)


@pytest.mark.parametrize("prefix", ["Acme", "Acme.Data", "_x.y1"])
def test_valid_prefixes(prefix):
    assert RunConfig(connection="db01", assembly_prefix=prefix).assembly_prefix == prefix


@pytest.mark.parametrize("prefix", ["", "Acme.", "1Acme", "Acme Data", "../evil"])
def test_invalid_prefixes(prefix):
    with pytest.raises(ValidationError):
        RunConfig(connection="db01", assembly_prefix=prefix)


def test_workers_must_be_positive():
    with pytest.raises(ValidationError):
        RunConfig(connection="db01", max_workers=0)
