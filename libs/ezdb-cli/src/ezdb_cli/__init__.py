"""ezdb-cli — Typer-based CLI for ezdbgen."""

from ezdb_cli.config import build_run_config, load_config_file
from ezdb_cli.log_setup import configure_logging

__all__ = [
    "build_run_config",
    "configure_logging",
    "load_config_file",
]
