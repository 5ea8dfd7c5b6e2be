"""Unit generation — one build unit per selected database.

Each database moves through::

    Selected -> DirectoryPrepared -> ArtifactsRequested -> ArtifactsWritten -> UnitRegistered -> Done

or ends in ``Failed``. Databases are processed concurrently on a bounded
pool, but units are registered into the manifest in selection order, so the
solution document does not depend on completion order.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ezdb_core.config import RunConfig
from ezdb_core.connection import ConnectionIdentity
from ezdb_core.errors import GenerationError
from ezdb_core.masks import CompiledMask
from ezdb_core.naming import context_name, identifier, unit_name
from ezdb_core.security import redact_connection_string, validate_output_path
from ezdb_core.selector import table_filter
from ezdb_introspect.providers.base import ScaffoldProvider, ScaffoldRequest
from ezdb_solution.descriptors import (
    ApiContext,
    render_api_program,
    render_api_project,
    render_app_settings,
    render_library_project,
)
from ezdb_solution.manifest import SolutionManifest
from ezdb_solution.models import BuildUnit, Stage, UnitKind, UnitOutcome

logger = logging.getLogger(__name__)

CANCELLED_DIAGNOSTIC = "cancelled before start"


class UnitState(str, Enum):
    """Lifecycle of one database's generation."""

    SELECTED = "selected"
    DIRECTORY_PREPARED = "directory_prepared"
    ARTIFACTS_REQUESTED = "artifacts_requested"
    ARTIFACTS_WRITTEN = "artifacts_written"
    UNIT_REGISTERED = "unit_registered"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UnitJob:
    """Work item and progress record for one database."""

    database: str
    unit_name: str
    namespace: str
    context_name: str
    directory: Path
    project_path: str
    state: UnitState = UnitState.SELECTED
    history: list[UnitState] = field(default_factory=lambda: [UnitState.SELECTED])
    files: list[Path] = field(default_factory=list)
    unit: BuildUnit | None = None
    error: GenerationError | None = None
    outcome: UnitOutcome | None = None

    def advance(self, state: UnitState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("[%s] -> %s", self.unit_name, state.value)

    def fail(self, error: GenerationError) -> None:
        self.error = error
        self.advance(UnitState.FAILED)
        self.outcome = UnitOutcome(
            unit=self.unit_name,
            stage=Stage.GENERATION,
            success=False,
            diagnostic=error.detail,
            database=self.database,
        )

    @property
    def succeeded(self) -> bool:
        return self.state is UnitState.DONE


@dataclass
class GenerationResult:
    """Jobs in selection order."""

    jobs: list[UnitJob] = field(default_factory=list)

    @property
    def outcomes(self) -> list[UnitOutcome]:
        return [job.outcome for job in self.jobs if job.outcome is not None]

    @property
    def succeeded(self) -> list[UnitJob]:
        return [job for job in self.jobs if job.succeeded]

    @property
    def failed(self) -> list[UnitJob]:
        return [job for job in self.jobs if job.state is UnitState.FAILED]


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _remove_tree(directory: Path) -> None:
    if directory.exists():
        shutil.rmtree(directory)
        logger.debug("Removed %s", directory)


def _reset_directory(directory: Path, models_dir: Path) -> None:
    _remove_tree(directory)
    models_dir.mkdir(parents=True)


def _write_all(outputs: list[tuple[Path, str]]) -> list[Path]:
    return [_write(path, content) for path, content in outputs]


class UnitGenerationOrchestrator:
    """Drives artifact generation and manifest registration for each database.

    Usage::

        orchestrator = UnitGenerationOrchestrator(manifest, ReflectionScaffolder(), identity, config)
        result = await orchestrator.generate(["Sales", "HR"], masks)
    """

    def __init__(
        self,
        manifest: SolutionManifest,
        provider: ScaffoldProvider,
        identity: ConnectionIdentity,
        config: RunConfig,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.manifest = manifest
        self.provider = provider
        self.identity = identity
        self.config = config
        self.cancel_event = cancel_event or asyncio.Event()
        self.solution_dir = config.solution_dir

    @property
    def library_prefix(self) -> str:
        return unit_name(self.config.assembly_prefix, UnitKind.LIBRARY.value)

    @property
    def api_unit_name(self) -> str:
        return unit_name(self.config.assembly_prefix, UnitKind.API.value)

    def plan(self, database: str) -> UnitJob:
        """Derive names and paths for *database* without touching disk."""
        name = unit_name(self.library_prefix, database)
        return UnitJob(
            database=database,
            unit_name=name,
            namespace=f"{self.library_prefix}.{identifier(database)}",
            context_name=context_name(database, self.config.scaffold.context_suffix),
            directory=self.solution_dir / UnitKind.LIBRARY.value / database,
            project_path=f"{UnitKind.LIBRARY.value}/{database}/{name}.csproj",
        )

    async def generate(self, databases: Sequence[str], masks: Sequence[CompiledMask] = ()) -> GenerationResult:
        """Generate and register one unit per database.

        Per-database failures are recorded on the returned jobs; they never
        stop sibling databases. Once ``cancel_event`` is set, databases not
        yet started are recorded as failed without being touched.

        Raises:
            DuplicateUnitError: If a derived unit name is already registered.
        """
        jobs = [self.plan(database) for database in databases]
        semaphore = asyncio.Semaphore(self.config.max_workers)

        async def _bounded(job: UnitJob) -> None:
            async with semaphore:
                if self.cancel_event.is_set():
                    job.fail(GenerationError(job.database, CANCELLED_DIAGNOSTIC))
                    logger.warning("Skipping %s: %s", job.database, CANCELLED_DIAGNOSTIC)
                    return
                await self._prepare_and_write(job, masks)

        tasks = [asyncio.create_task(_bounded(job)) for job in jobs]
        try:
            for job, task in zip(jobs, tasks):
                await task
                if job.state is UnitState.ARTIFACTS_WRITTEN:
                    self._register(job)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        result = GenerationResult(jobs=jobs)
        logger.info(
            "Generated %d of %d unit(s)%s",
            len(result.succeeded),
            len(jobs),
            f"; failed: {', '.join(j.database for j in result.failed)}" if result.failed else "",
        )
        return result

    async def _prepare_and_write(self, job: UnitJob, masks: Sequence[CompiledMask]) -> None:
        logger.info("Generating unit %s for database %s", job.unit_name, job.database)
        options = self.config.scaffold
        owns_directory = False
        try:
            libraries_dir = self.solution_dir / UnitKind.LIBRARY.value
            job.directory = validate_output_path(libraries_dir, job.directory)
            if job.directory.parent != libraries_dir.resolve():
                raise ValueError(f"Database name {job.database!r} is not a valid directory name")
            owns_directory = True
            models_dir = job.directory / options.models_dir
            await asyncio.to_thread(_reset_directory, job.directory, models_dir)
            job.advance(UnitState.DIRECTORY_PREPARED)

            request = ScaffoldRequest(
                database=job.database,
                connection_url=self.identity.for_database(job.database),
                namespace=job.namespace,
                context_name=job.context_name,
                options=options,
                table_filter=table_filter(job.database, masks),
            )
            job.advance(UnitState.ARTIFACTS_REQUESTED)
            result = await self.provider.scaffold(request)

            outputs = [
                (validate_output_path(models_dir, models_dir / artifact.relative_path), artifact.content)
                for artifact in result.all_artifacts
            ]
            project = render_library_project(
                job.unit_name,
                job.database,
                self.config.package_version,
                root_namespace=job.namespace,
                settings=self.config.build,
                backend=self.identity.backend,
                models_dir=options.models_dir,
                nullable=options.use_nullable_reference_types,
            )
            outputs.append((job.directory / f"{job.unit_name}.csproj", project))
            job.files.extend(await asyncio.to_thread(_write_all, outputs))
            job.advance(UnitState.ARTIFACTS_WRITTEN)
        except Exception as exc:
            detail = redact_connection_string(str(exc)) or type(exc).__name__
            error = GenerationError(job.database, detail, cause=exc)
            logger.error("%s", error, exc_info=logger.isEnabledFor(logging.DEBUG))
            job.fail(error)
            if owns_directory:
                await asyncio.to_thread(_remove_tree, job.directory)

    def _register(self, job: UnitJob) -> None:
        job.unit = self.manifest.register_unit(job.unit_name, UnitKind.LIBRARY, job.project_path)
        job.advance(UnitState.UNIT_REGISTERED)
        job.outcome = UnitOutcome(unit=job.unit_name, stage=Stage.GENERATION, success=True, database=job.database)
        job.unit.record(job.outcome)
        job.advance(UnitState.DONE)
        logger.info("Unit %s registered (%d file(s))", job.unit_name, len(job.files))

    # -- API unit ----------------------------------------------------------

    def generate_api(self, jobs: Sequence[UnitJob]) -> UnitOutcome:
        """Write and register the API unit referencing every generated library.

        Raises:
            DuplicateUnitError: If the API unit name is already registered.
        """
        name = self.api_unit_name
        directory = self.solution_dir / UnitKind.API.value
        libraries = [job for job in jobs if job.succeeded]
        logger.info("Generating API unit %s with %d reference(s)", name, len(libraries))
        try:
            _remove_tree(directory)
            references = [f"../{unit.relative_path}" for unit in self.manifest.library_units()]
            settings = self.config.build
            backend = self.identity.backend
            _write(
                directory / f"{name}.csproj",
                render_api_project(name, self.config.package_version, references, settings=settings, backend=backend),
            )
            contexts = [ApiContext(job.database, job.namespace, job.context_name) for job in libraries]
            _write(directory / "Program.cs", render_api_program(f"{name} API", contexts, backend=backend))
            connection_strings = {job.database: self.identity.redacted_for_database(job.database) for job in libraries}
            _write(directory / "appsettings.json", render_app_settings(connection_strings))
        except Exception as exc:
            detail = redact_connection_string(str(exc)) or type(exc).__name__
            logger.error("%s", GenerationError(name, detail))
            _remove_tree(directory)
            return UnitOutcome(unit=name, stage=Stage.GENERATION, success=False, diagnostic=detail)

        unit = self.manifest.register_unit(name, UnitKind.API, f"{UnitKind.API.value}/{name}.csproj")
        outcome = UnitOutcome(unit=name, stage=Stage.GENERATION, success=True)
        unit.record(outcome)
        return outcome
