"""Run configuration loading — JSON config file plus command-line overrides."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ezdb_core.config import RunConfig


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON config file into a plain dict.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data


def _apply_override(data: dict[str, Any], key: str, value: Any) -> None:
    # Dotted keys address nested sections, e.g. "build.skip_build".
    *sections, leaf = key.split(".")
    target = data
    for section in sections:
        target = target.setdefault(section, {})
    target[leaf] = value


def build_run_config(config_file: Path | None = None, overrides: dict[str, Any] | None = None) -> RunConfig:
    """Merge the config file (if any) with explicit overrides into a ``RunConfig``.

    Overrides whose value is ``None`` were not given on the command line
    and leave the file value (or the default) in place. Empty lists count
    as not given, so ``--mask`` flags only replace file masks when present.

    Raises:
        pydantic.ValidationError: If the merged values are invalid.
    """
    data = load_config_file(config_file) if config_file is not None else {}
    for key, value in (overrides or {}).items():
        if value is None or (isinstance(value, (list, tuple)) and not value):
            continue
        _apply_override(data, key, value)
    return RunConfig.model_validate(data)
