"""Solution manifest — ordered build units and the solution-document codec.

The document is the Visual Studio ``.sln`` text format. Unit declaration
blocks are inserted directly before the ``Global`` marker and each unit gets
one active-configuration and one build-enabled line per configuration in the
``ProjectConfigurationPlatforms`` section, which is created on first use.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator
from pathlib import Path

from ezdb_core.errors import DuplicateUnitError, ManifestFormatError
from pydantic import BaseModel, Field

from ezdb_solution.models import BuildUnit, UnitKind, new_identifier

logger = logging.getLogger(__name__)

# Project type GUID of SDK-style C# projects.
PROJECT_TYPE_GUID = "9A19103F-16F7-4668-BE54-9A1E7A4F7556"

SOLUTION_SIGNATURE = "Microsoft Visual Studio Solution File"
GLOBAL_MARKER = "Global"
END_GLOBAL_SECTION = "\tEndGlobalSection"
PROJECT_CONFIG_SECTION = "\tGlobalSection(ProjectConfigurationPlatforms) = postSolution"
SOLUTION_PROPERTIES_SECTION = "GlobalSection(SolutionProperties)"

_PROJECT_RE = re.compile(
    r'^Project\("\{(?P<type>[0-9A-Fa-f-]+)\}"\)\s*=\s*"(?P<name>[^"]*)",\s*"(?P<path>[^"]*)",\s*'
    r'"\{(?P<identifier>[0-9A-Fa-f-]+)\}"\s*$'
)
_FORMAT_RE = re.compile(r"Format Version (?P<version>[\d.]+)")
_SETTING_RE = re.compile(r"^(?P<key>VisualStudioVersion|MinimumVisualStudioVersion)\s*=\s*(?P<value>\S+)\s*$")
_SETTING_FIELDS = {
    "VisualStudioVersion": "visual_studio_version",
    "MinimumVisualStudioVersion": "minimum_visual_studio_version",
}
_PLATFORM_RE = re.compile(r"^\s*(?P<configuration>[^|=\s]+)\|(?P<platform>[^=]+?)\s*=")
_IDENTIFIER_RE = re.compile(r"^[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}$")


class SolutionConfig(BaseModel):
    """Manifest-level platform and version strings."""

    format_version: str = Field(default="12.00", description="Solution file format version.")
    visual_studio_version: str = Field(default="17.0.31903.59")
    minimum_visual_studio_version: str = Field(default="10.0.40219.1")
    configurations: list[str] = Field(default_factory=lambda: ["Debug", "Release"], min_length=1)
    platform: str = Field(default="Any CPU", min_length=1)

    model_config = {"extra": "forbid"}

    @property
    def major_version(self) -> str:
        return self.visual_studio_version.split(".", 1)[0]


def _normalize_identifier(value: str) -> str:
    identifier = value.strip().strip("{}").upper()
    if not _IDENTIFIER_RE.match(identifier):
        raise ValueError(f"Invalid unit identifier: {value!r}")
    return identifier


def document_skeleton(config: SolutionConfig) -> list[str]:
    """Header plus an empty global block, one entry per line."""
    lines = [
        f"{SOLUTION_SIGNATURE}, Format Version {config.format_version}",
        f"# Visual Studio Version {config.major_version}",
        f"VisualStudioVersion = {config.visual_studio_version}",
        f"MinimumVisualStudioVersion = {config.minimum_visual_studio_version}",
        GLOBAL_MARKER,
        "\tGlobalSection(SolutionConfigurationPlatforms) = preSolution",
    ]
    for configuration in config.configurations:
        platform = f"{configuration}|{config.platform}"
        lines.append(f"\t\t{platform} = {platform}")
    lines += [
        END_GLOBAL_SECTION,
        "\tGlobalSection(SolutionProperties) = preSolution",
        "\t\tHideSolutionNode = FALSE",
        END_GLOBAL_SECTION,
        "EndGlobal",
    ]
    return lines


def insert_unit(lines: list[str], unit: BuildUnit, config: SolutionConfig) -> None:
    """Insert *unit*'s declaration and configuration lines into *lines* in place.

    The declaration pair goes directly before the first line starting with
    ``Global``. Configuration lines are appended at the end of the
    ``ProjectConfigurationPlatforms`` section, which is created just before
    the solution properties section when missing.
    """
    insert_at = next((i for i, line in enumerate(lines) if line.startswith(GLOBAL_MARKER)), len(lines))
    lines[insert_at:insert_at] = [
        f'Project("{{{PROJECT_TYPE_GUID}}}") = "{unit.name}", "{unit.relative_path}", "{{{unit.identifier}}}"',
        "EndProject",
    ]

    section = next((i for i, line in enumerate(lines) if line.strip() == PROJECT_CONFIG_SECTION.strip()), -1)
    if section == -1:
        section = next(
            (i for i, line in enumerate(lines) if line.strip().startswith(SOLUTION_PROPERTIES_SECTION)),
            len(lines) - 1,
        )
        lines[section:section] = [PROJECT_CONFIG_SECTION, END_GLOBAL_SECTION]

    section_end = next(i for i in range(section + 1, len(lines)) if lines[i].strip() == END_GLOBAL_SECTION.strip())
    entries = []
    for configuration in config.configurations:
        platform = f"{configuration}|{config.platform}"
        entries.append(f"\t\t{{{unit.identifier}}}.{platform}.ActiveCfg = {platform}")
        entries.append(f"\t\t{{{unit.identifier}}}.{platform}.Build.0 = {platform}")
    lines[section_end:section_end] = entries


class SolutionManifest:
    """Ordered, append-only set of build units.

    Registration is serialised through a lock so concurrent generation
    workers can share one manifest. Unit names are unique, compared
    case-insensitively.

    Usage::

        manifest = SolutionManifest()
        manifest.register_unit("Acme.DAL.Sales", UnitKind.LIBRARY, "DAL/Sales/Acme.DAL.Sales.csproj")
        manifest.save(Path("output/src/db01.sln"))
    """

    def __init__(
        self,
        config: SolutionConfig | None = None,
        *,
        known_identifiers: dict[str, str] | None = None,
    ) -> None:
        self.config = config or SolutionConfig()
        self._units: list[BuildUnit] = []
        self._lock = threading.Lock()
        # Identifiers to reuse for same-named units, e.g. from a previous run.
        self._known_identifiers = {name.casefold(): ident for name, ident in (known_identifiers or {}).items()}

    @property
    def units(self) -> tuple[BuildUnit, ...]:
        with self._lock:
            return tuple(self._units)

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self) -> Iterator[BuildUnit]:
        return iter(self.units)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def get(self, name: str) -> BuildUnit | None:
        key = name.casefold()
        return next((u for u in self.units if u.name.casefold() == key), None)

    def library_units(self) -> list[BuildUnit]:
        return [u for u in self.units if u.kind is UnitKind.LIBRARY]

    def register_unit(
        self,
        name: str,
        kind: UnitKind,
        relative_path: str,
        *,
        identifier: str | None = None,
    ) -> BuildUnit:
        """Append a new unit and return it.

        Raises:
            DuplicateUnitError: If a unit with the same name (ignoring case) exists.
        """
        key = name.casefold()
        with self._lock:
            if any(u.name.casefold() == key for u in self._units):
                raise DuplicateUnitError(name)
            chosen = identifier or self._known_identifiers.get(key) or new_identifier()
            unit = BuildUnit(
                identifier=_normalize_identifier(chosen),
                name=name,
                relative_path=relative_path.replace("\\", "/"),
                kind=kind,
            )
            self._units.append(unit)
        logger.debug("Registered unit %s {%s} at %s", unit.name, unit.identifier, unit.relative_path)
        return unit

    # -- serialisation -----------------------------------------------------

    def to_document(self) -> str:
        """Render the solution document. Stable for an unchanged manifest."""
        lines = document_skeleton(self.config)
        for unit in self.units:
            insert_unit(lines, unit, self.config)
        return "\n".join(lines) + "\n"

    @classmethod
    def parse(cls, document: str) -> SolutionManifest:
        """Rebuild a manifest from a solution document.

        Unit kind is inferred from the root directory of each project path.

        Raises:
            ManifestFormatError: If the document is not a solution file or a
                declaration block is malformed.
        """
        lines = document.lstrip("\ufeff").splitlines()
        first = next((line for line in lines if line.strip()), "")
        if not first.startswith(SOLUTION_SIGNATURE):
            raise ManifestFormatError("Document is not a solution file (missing signature line)")

        config_values: dict[str, object] = {}
        format_match = _FORMAT_RE.search(first)
        if format_match:
            config_values["format_version"] = format_match.group("version")

        declarations: list[tuple[str, str, str]] = []
        configurations: list[str] = []
        platform: str | None = None
        in_platforms = False
        open_project: str | None = None
        for number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if line.startswith("Project("):
                if open_project is not None:
                    raise ManifestFormatError(f"Line {number}: project {open_project!r} is missing EndProject")
                match = _PROJECT_RE.match(line.rstrip())
                if match is None:
                    raise ManifestFormatError(f"Line {number}: malformed project declaration")
                declarations.append((match.group("name"), match.group("path"), match.group("identifier")))
                open_project = match.group("name")
            elif stripped == "EndProject":
                if open_project is None:
                    raise ManifestFormatError(f"Line {number}: EndProject without a project declaration")
                open_project = None
            elif setting := _SETTING_RE.match(line):
                config_values[_SETTING_FIELDS[setting.group("key")]] = setting.group("value")
            elif stripped.startswith("GlobalSection(SolutionConfigurationPlatforms)"):
                in_platforms = True
            elif in_platforms and stripped == "EndGlobalSection":
                in_platforms = False
            elif in_platforms and (entry := _PLATFORM_RE.match(line)):
                configurations.append(entry.group("configuration"))
                platform = entry.group("platform").strip()
        if open_project is not None:
            raise ManifestFormatError(f"Project {open_project!r} is missing EndProject")

        if configurations:
            config_values["configurations"] = configurations
        if platform:
            config_values["platform"] = platform

        manifest = cls(SolutionConfig(**config_values))
        for name, path, identifier in declarations:
            kind = UnitKind.API if path.replace("\\", "/").startswith(f"{UnitKind.API.value}/") else UnitKind.LIBRARY
            try:
                manifest.register_unit(name, kind, path, identifier=identifier)
            except (DuplicateUnitError, ValueError) as exc:
                raise ManifestFormatError(str(exc)) from exc
        return manifest

    def save(self, path: Path) -> Path:
        """Write the document to *path*, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_document(), encoding="utf-8", newline="\n")
        logger.info("Saved solution with %d unit(s) to %s", len(self), path)
        return path

    @classmethod
    def load(cls, path: Path) -> SolutionManifest:
        """Read a solution document from *path*.

        Raises:
            ManifestFormatError: If the file is not a parseable solution.
        """
        return cls.parse(path.read_text(encoding="utf-8-sig"))


def previous_identifiers(path: Path) -> dict[str, str]:
    """Unit identifiers recorded in an existing solution file, keyed by name.

    A missing or unreadable file yields an empty mapping so the next run
    simply assigns fresh identifiers.
    """
    if not path.is_file():
        return {}
    try:
        manifest = SolutionManifest.load(path)
    except ManifestFormatError as exc:
        logger.warning("Ignoring unreadable solution %s: %s", path, exc)
        return {}
    return {unit.name: unit.identifier for unit in manifest}
