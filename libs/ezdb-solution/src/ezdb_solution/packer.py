"""Project packer — bundle a generated tree into one text file and back."""

from __future__ import annotations

import logging
from pathlib import Path

from ezdb_core.security import validate_output_path

logger = logging.getLogger(__name__)

START_MARKER = "<<START_FILE>>"
END_MARKER = "<<END_FILE>>"

PACKED_EXTENSIONS = frozenset({".csproj", ".cs", ".config", ".json"})


def _should_include(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in PACKED_EXTENSIONS


def pack_project(directory: Path, output_file: Path) -> list[str]:
    """Concatenate every packable file under *directory* into *output_file*.

    Files are visited in sorted path order, each framed by a
    ``<<START_FILE>> relative/path`` line and an ``<<END_FILE>>`` line.

    Returns:
        The relative paths that were packed.

    Raises:
        NotADirectoryError: If *directory* does not exist.
    """
    if not directory.is_dir():
        raise NotADirectoryError(f"Not a directory: {directory}")
    output_resolved = output_file.resolve()

    packed: list[str] = []
    chunks: list[str] = []
    for path in sorted(directory.rglob("*")):
        if not _should_include(path) or path.resolve() == output_resolved:
            continue
        relative = path.relative_to(directory).as_posix()
        content = path.read_text(encoding="utf-8-sig")
        if not content.endswith("\n"):
            content += "\n"
        chunks.append(f"{START_MARKER} {relative}\n{content}{END_MARKER}\n")
        packed.append(relative)
        logger.debug("Packed %s", relative)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text("".join(chunks), encoding="utf-8", newline="\n")
    logger.info("Packed %d file(s) from %s into %s", len(packed), directory, output_file)
    return packed


def unpack_project(packed_file: Path, directory: Path) -> list[Path]:
    """Restore the files framed in *packed_file* under *directory*.

    Returns:
        The written paths, in file order.

    Raises:
        ValueError: If a framed path escapes *directory* or a frame is not closed.
    """
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    current: Path | None = None
    buffer: list[str] = []

    for line in packed_file.read_text(encoding="utf-8-sig").splitlines(keepends=True):
        if current is None:
            if line.startswith(START_MARKER):
                relative = line[len(START_MARKER) :].strip()
                current = validate_output_path(directory, directory / relative)
                buffer = []
            continue
        if line.rstrip("\r\n") == END_MARKER:
            current.parent.mkdir(parents=True, exist_ok=True)
            current.write_text("".join(buffer), encoding="utf-8", newline="")
            written.append(current)
            logger.debug("Unpacked %s", current)
            current = None
        else:
            buffer.append(line)

    if current is not None:
        raise ValueError(f"Unterminated file block for {current} in {packed_file}")
    logger.info("Unpacked %d file(s) into %s", len(written), directory)
    return written
