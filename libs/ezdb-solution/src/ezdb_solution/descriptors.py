"""Build-unit descriptors — project files and API entry points as template functions.

Every function takes typed inputs and returns the document text; nothing
here touches the filesystem.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from ezdb_core.config import BuildSettings
from ezdb_core.security import redact_connection_string
from ezdb_introspect.templating import cs_string, safe_identifier, safe_namespace
from jinja2 import PackageLoader, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

# EF Core provider package and DbContextOptionsBuilder method per SQLAlchemy backend.
EF_PROVIDERS: dict[str, tuple[str, str]] = {
    "mssql": ("Microsoft.EntityFrameworkCore.SqlServer", "UseSqlServer"),
    "postgresql": ("Npgsql.EntityFrameworkCore.PostgreSQL", "UseNpgsql"),
    "sqlite": ("Microsoft.EntityFrameworkCore.Sqlite", "UseSqlite"),
    "mysql": ("Pomelo.EntityFrameworkCore.MySql", "UseMySql"),
    "mariadb": ("Pomelo.EntityFrameworkCore.MySql", "UseMySql"),
}
DEFAULT_BACKEND = "mssql"

SWASHBUCKLE_VERSION = "6.5.0"


def _get_template_env() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        loader=PackageLoader("ezdb_solution", "templates"),
        autoescape=select_autoescape(enabled_extensions=("csproj.j2",), default_for_string=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["cs_string"] = cs_string
    env.filters["safe_identifier"] = safe_identifier
    env.filters["safe_namespace"] = safe_namespace
    return env


_env = _get_template_env()


def ef_provider(backend: str) -> tuple[str, str]:
    """Return ``(package, options_method)`` for *backend*, defaulting to SQL Server."""
    return EF_PROVIDERS.get(backend, EF_PROVIDERS[DEFAULT_BACKEND])


def file_version(package_version: str) -> str:
    """Numeric part of a package version, usable as an assembly version."""
    return package_version.split("-", 1)[0]


@dataclass(frozen=True)
class ApiContext:
    """One library context wired into the API unit."""

    database: str
    namespace: str
    context_name: str


def render_library_project(
    unit_name: str,
    database: str,
    package_version: str,
    *,
    root_namespace: str,
    settings: BuildSettings | None = None,
    backend: str = DEFAULT_BACKEND,
    models_dir: str = "Models",
    nullable: bool = True,
) -> str:
    """Project file for one database's data-access library."""
    settings = settings or BuildSettings()
    package, _ = ef_provider(backend)
    return _env.get_template("library.csproj.j2").render(
        unit_name=unit_name,
        database=database,
        root_namespace=root_namespace,
        package_version=package_version,
        file_version=file_version(package_version),
        settings=settings,
        provider_package=package,
        models_dir=models_dir.replace("/", "\\"),
        nullable=nullable,
    )


def render_api_project(
    unit_name: str,
    package_version: str,
    references: list[str],
    *,
    settings: BuildSettings | None = None,
    backend: str = DEFAULT_BACKEND,
) -> str:
    """Project file for the API unit.

    Args:
        references: Library project paths relative to the API project directory.
    """
    settings = settings or BuildSettings()
    package, _ = ef_provider(backend)
    return _env.get_template("api.csproj.j2").render(
        unit_name=unit_name,
        root_namespace=unit_name,
        package_version=package_version,
        file_version=file_version(package_version),
        settings=settings,
        provider_package=package,
        swashbuckle_version=SWASHBUCKLE_VERSION,
        references=[ref.replace("/", "\\") for ref in references],
    )


def render_api_program(title: str, contexts: list[ApiContext], *, backend: str = DEFAULT_BACKEND) -> str:
    """``Program.cs`` registering one DbContext per library."""
    _, method = ef_provider(backend)
    return _env.get_template("Program.cs.j2").render(title=title, contexts=contexts, provider_method=method)


def render_app_settings(connection_strings: dict[str, str]) -> str:
    """``appsettings.json`` with one named connection string per database.

    Credentials are masked; operators fill them in at deployment.
    """
    document = {
        "Logging": {"LogLevel": {"Default": "Information", "Microsoft.AspNetCore": "Warning"}},
        "AllowedHosts": "*",
        "ConnectionStrings": {name: redact_connection_string(value) for name, value in connection_strings.items()},
    }
    return json.dumps(document, indent=2) + "\n"
