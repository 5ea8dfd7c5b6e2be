"""Logging setup for command-line runs.

Console output at INFO (DEBUG with ``--verbose``) and a daily log file that
always captures DEBUG. Both handlers scrub credentials from every record.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from ezdb_core.security import CredentialRedactFilter

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Marks handlers installed here so repeated calls replace rather than stack them.
_HANDLER_ATTR = "_ezdb_handler"


def log_file_name(day: date | None = None) -> str:
    """``ezdb_log_YYYY-MM-DD.txt`` for *day* (today by default)."""
    return f"ezdb_log_{(day or date.today()).isoformat()}.txt"


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> Path | None:
    """Install the console handler and, when *log_dir* is given, the file handler.

    Returns:
        The log file path, or ``None`` when no file handler was installed.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(logging.DEBUG)

    redact = CredentialRedactFilter()

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.addFilter(redact)
    setattr(console, _HANDLER_ATTR, True)
    root.addHandler(console)

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / log_file_name()
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.addFilter(redact)
    setattr(file_handler, _HANDLER_ATTR, True)
    root.addHandler(file_handler)
    return log_path
