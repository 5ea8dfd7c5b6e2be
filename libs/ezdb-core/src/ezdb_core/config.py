"""Run configuration — every recognised option with its default."""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_ASSEMBLY_PREFIX = "Noctusoft.EzDbEF"
DEFAULT_PACKAGE_VERSION = "1.0.0"

_VERSION_RE = re.compile(r"^\d+(\.\d+){1,3}(-[0-9A-Za-z.-]+)?$")
_PREFIX_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class ScaffoldOptions(BaseModel):
    """Options handed to the introspection collaborator for every unit."""

    use_data_annotations: bool = Field(default=True, description="Emit attributes instead of fluent configuration.")
    use_nullable_reference_types: bool = Field(default=True, description="Annotate nullable reference types with '?'.")
    use_database_names: bool = Field(default=True, description="Keep table/column names verbatim.")
    context_suffix: str = Field(default="Context", min_length=1, description="Suffix of the entry-point class.")
    models_dir: str = Field(default="Models", min_length=1, description="Unit subdirectory receiving artifacts.")

    model_config = {"extra": "forbid"}


class BuildSettings(BaseModel):
    """Compile/package toolchain settings."""

    dotnet: str = Field(default="dotnet", min_length=1, description="Toolchain executable.")
    configuration: str = Field(default="Release", min_length=1, description="Build configuration name.")
    target_framework: str = Field(default="net8.0", min_length=1, description="Target framework moniker.")
    ef_core_version: str = Field(default="8.0.0", min_length=1, description="EF Core package version referenced.")
    timeout_seconds: float = Field(default=600.0, gt=0, description="Upper bound for one toolchain invocation.")
    skip_build: bool = Field(default=False, description="Generate the solution without compiling or packaging.")

    model_config = {"extra": "forbid"}


class RunConfig(BaseModel):
    """Everything one generation run needs."""

    connection: str = Field(min_length=1, description="Connection URL, ADO-style string, or server name.")
    masks: list[str] = Field(default_factory=list, description="Raw include/exclude masks.")
    output_path: Path = Field(default=Path("output"), description="Root of the generated tree.")
    assembly_prefix: str = Field(default=DEFAULT_ASSEMBLY_PREFIX, description="Prefix of generated unit names.")
    package_version: str = Field(default=DEFAULT_PACKAGE_VERSION, description="Version stamped into every unit.")
    generate_api: bool = Field(default=False, description="Also generate an API unit referencing every library.")
    verbose: bool = Field(default=False, description="Enable debug console logging.")
    max_workers: int = Field(default=1, ge=1, description="Concurrent per-unit generation/build workers.")
    connect_timeout: float = Field(default=5.0, gt=0, description="Connectivity check bound, in seconds.")
    command_timeout: float = Field(default=30.0, gt=0, description="Inventory query and per-unit scaffold bound.")
    scaffold: ScaffoldOptions = Field(default_factory=ScaffoldOptions)
    build: BuildSettings = Field(default_factory=BuildSettings)

    model_config = {"extra": "forbid"}

    @field_validator("package_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not _VERSION_RE.match(v):
            raise ValueError(f"Invalid package version {v!r}; expected e.g. '1.0.0' or '1.2.0-beta1'")
        return v

    @field_validator("assembly_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not _PREFIX_RE.match(v):
            raise ValueError(f"Invalid assembly prefix {v!r}; expected dot-separated identifiers")
        return v

    @property
    def solution_dir(self) -> Path:
        return self.output_path / "src"

    @property
    def artifacts_dir(self) -> Path:
        return self.output_path / "artifacts"
