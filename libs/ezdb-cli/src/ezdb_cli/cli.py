"""ezdb CLI — Typer entry point for database-to-solution generation."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from ezdb_codegen.pipeline import run, select_databases
from ezdb_core.errors import EzDbError
from ezdb_core.security import redact_connection_string
from ezdb_solution.packer import pack_project, unpack_project
from pydantic import ValidationError

from ezdb_cli.config import build_run_config
from ezdb_cli.log_setup import configure_logging

app = typer.Typer(name="ezdb", help="Generate EF Core data-access projects for every matching database on a server.")

MASKS_HELP = """\
Mask patterns select databases, schemas and tables as database.schema.table.
'*' matches any run of characters and '?' exactly one. A leading '-' turns a
mask into an exclusion; exclusions always win over inclusions. Masks with
fewer than three parts are padded with '*'. Without any mask every user
database is selected; otherwise at least one inclusion must match. System
databases (master, tempdb, model, msdb) are never selected.

Examples:
  Sales.*.*            every schema and table of Sales
  Sales.dbo.*          every table in the dbo schema of Sales
  Sales.dbo.Customers  only the Customers table of Sales
  Sales.dbo.customer*  tables of Sales.dbo whose name starts with 'customer'
  -Sales.dbo.system*   drop tables of Sales.dbo starting with 'system'
  -Archive*            drop every database whose name starts with 'Archive'

Usage:
  ezdb generate -c "Server=db01;Integrated Security=True" -m "Sales.*.*" -m "-Sales.dbo.system*"
  ezdb select -c "postgresql+asyncpg://user:pw@db01/postgres" -m "crm*"
"""


def _config_or_exit(config_file: Path | None, overrides: dict):
    try:
        return build_run_config(config_file, overrides)
    except (ValidationError, ValueError, FileNotFoundError) as exc:
        typer.echo(f"Invalid configuration: {redact_connection_string(str(exc))}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def generate(
    connection: str = typer.Option(None, "--connection", "-c", help="Server connection string or URL."),
    mask: list[str] = typer.Option(None, "--mask", "-m", help="Include/exclude mask (repeatable)."),
    output: Path = typer.Option(None, "--output", "-o", help="Output directory. Defaults to ./output."),
    assembly_prefix: str = typer.Option(None, "--assembly-prefix", help="Prefix of generated project names."),
    package_version: str = typer.Option(None, "--package-version", help="Version stamped into every project."),
    generate_api: bool = typer.Option(None, "--generate-api/--no-generate-api", help="Also generate an API project."),
    workers: int = typer.Option(None, "--workers", "-w", help="Databases processed concurrently."),
    skip_build: bool = typer.Option(None, "--skip-build/--build", help="Write the solution without building it."),
    config_file: Path = typer.Option(None, "--config", help="JSON file with run options."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output on the console."),
) -> None:
    """Generate, build and package one project per selected database.

    Examples:

        ezdb generate -c "Server=db01;Integrated Security=True" -m "Sales.*.*"

        ezdb generate --config ezdb.json --skip-build
    """
    config = _config_or_exit(
        config_file,
        {
            "connection": connection,
            "masks": mask,
            "output_path": output,
            "assembly_prefix": assembly_prefix,
            "package_version": package_version,
            "generate_api": generate_api,
            "max_workers": workers,
            "verbose": verbose or None,
            "build.skip_build": skip_build,
        },
    )
    configure_logging(config.verbose, config.output_path)

    try:
        report = asyncio.run(run(config))
    except EzDbError as exc:
        typer.echo(f"Generation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not report.selected:
        typer.echo("No databases matched the given masks.")
        raise typer.Exit(code=0)

    typer.echo(f"Selected {len(report.selected)} database(s): {', '.join(report.selected)}")
    for line in report.summary_lines():
        typer.echo(f"  {line}")
    if report.solution_path is not None:
        typer.echo(f"Solution written to {report.solution_path}")
    raise typer.Exit(code=report.exit_code)


@app.command()
def select(
    connection: str = typer.Option(None, "--connection", "-c", help="Server connection string or URL."),
    mask: list[str] = typer.Option(None, "--mask", "-m", help="Include/exclude mask (repeatable)."),
    config_file: Path = typer.Option(None, "--config", help="JSON file with run options."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output on the console."),
) -> None:
    """List the databases a generate run would process, without generating."""
    config = _config_or_exit(config_file, {"connection": connection, "masks": mask, "verbose": verbose or None})
    configure_logging(config.verbose)

    try:
        selection = asyncio.run(select_databases(config))
    except EzDbError as exc:
        typer.echo(f"Selection failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not selection:
        typer.echo("No databases matched the given masks.")
        return
    for database in selection.databases:
        typer.echo(database)


@app.command()
def pack(
    directory: Path = typer.Argument(..., help="Project directory to pack."),
    output_file: Path = typer.Argument(..., help="Packed text file to write."),
) -> None:
    """Bundle every project source file under DIRECTORY into one text file."""
    try:
        packed = pack_project(directory, output_file)
    except NotADirectoryError as exc:
        typer.echo(f"Pack failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Packed {len(packed)} file(s) into {output_file}")


@app.command()
def unpack(
    packed_file: Path = typer.Argument(..., help="Packed text file."),
    directory: Path = typer.Argument(..., help="Directory to restore into."),
) -> None:
    """Restore the files bundled in PACKED_FILE under DIRECTORY."""
    if not packed_file.is_file():
        typer.echo(f"Unpack failed: {packed_file} not found", err=True)
        raise typer.Exit(code=1)
    try:
        written = unpack_project(packed_file, directory)
    except ValueError as exc:
        typer.echo(f"Unpack failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Unpacked {len(written)} file(s) into {directory}")


@app.command("masks-help")
def masks_help() -> None:
    """Explain the mask pattern language with examples."""
    typer.echo(MASKS_HELP)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
