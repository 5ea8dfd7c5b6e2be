"""Build orchestration — compile, then package, every registered unit."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from ezdb_core.config import BuildSettings
from ezdb_core.errors import CompileError, PackageError, UnitError
from ezdb_core.security import redact_connection_string
from ezdb_solution.manifest import SolutionManifest
from ezdb_solution.models import BuildUnit, Stage, UnitKind, UnitOutcome

logger = logging.getLogger(__name__)

# Keep diagnostics readable; toolchain output can run to megabytes.
_MAX_DIAGNOSTIC_CHARS = 2000

CANCELLED_DIAGNOSTIC = "cancelled before start"


def _describe(exc: Exception) -> str:
    return redact_connection_string(str(exc)) or type(exc).__name__


@dataclass(frozen=True)
class ToolResult:
    """Exit status and captured output of one toolchain invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def diagnostic(self) -> str:
        text = (self.stderr.strip() or self.stdout.strip()) or f"exit code {self.returncode}"
        if len(text) > _MAX_DIAGNOSTIC_CHARS:
            text = "..." + text[-_MAX_DIAGNOSTIC_CHARS:]
        return redact_connection_string(text)


class BuildToolchain(ABC):
    """Compile/package collaborator."""

    @abstractmethod
    async def compile(self, project: Path) -> ToolResult:
        """Compile the project file at *project*."""

    @abstractmethod
    async def package(self, project: Path, output_dir: Path) -> ToolResult:
        """Package an already compiled project into *output_dir*."""


class DotnetToolchain(BuildToolchain):
    """Runs the ``dotnet`` CLI as a subprocess."""

    def __init__(self, settings: BuildSettings | None = None) -> None:
        self.settings = settings or BuildSettings()

    async def compile(self, project: Path) -> ToolResult:
        return await self._run("build", str(project), "-c", self.settings.configuration, "--nologo")

    async def package(self, project: Path, output_dir: Path) -> ToolResult:
        output_dir.mkdir(parents=True, exist_ok=True)
        return await self._run(
            "pack", str(project), "-c", self.settings.configuration, "-o", str(output_dir), "--no-build", "--nologo"
        )

    async def _run(self, *args: str) -> ToolResult:
        command = [self.settings.dotnet, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return ToolResult(returncode=127, stderr=f"Toolchain executable not found: {self.settings.dotnet}")
        except OSError as exc:
            return ToolResult(returncode=126, stderr=f"Cannot run {self.settings.dotnet}: {exc}")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return ToolResult(
                returncode=-1,
                stderr=f"{args[0]} timed out after {self.settings.timeout_seconds}s",
            )
        return ToolResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


class BuildOrchestrator:
    """Compiles and packages every unit of a finished manifest.

    A compile failure skips packaging for that unit only. Library units are
    built before API units, since an API build compiles its references too.
    Outcomes are returned in manifest order regardless of completion order.
    """

    def __init__(
        self,
        toolchain: BuildToolchain,
        solution_dir: Path,
        artifacts_dir: Path,
        *,
        max_workers: int = 1,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self.toolchain = toolchain
        self.solution_dir = solution_dir
        self.artifacts_dir = artifacts_dir
        self.max_workers = max(1, max_workers)
        self.cancel_event = cancel_event or asyncio.Event()

    async def build(self, manifest: SolutionManifest) -> list[UnitOutcome]:
        units = manifest.units
        logger.info("Building %d unit(s)", len(units))
        semaphore = asyncio.Semaphore(self.max_workers)
        results: dict[str, list[UnitOutcome]] = {}

        async def _bounded(unit: BuildUnit) -> None:
            async with semaphore:
                results[unit.identifier] = await self._build_unit(unit)

        for kind in (UnitKind.LIBRARY, UnitKind.API):
            await asyncio.gather(*(_bounded(u) for u in units if u.kind is kind))

        outcomes = [outcome for unit in units for outcome in results[unit.identifier]]
        failed = [o for o in outcomes if not o.success]
        logger.info("Build finished: %d outcome(s), %d failed", len(outcomes), len(failed))
        return outcomes

    async def _build_unit(self, unit: BuildUnit) -> list[UnitOutcome]:
        if self.cancel_event.is_set():
            outcome = self._record(unit, Stage.COMPILE, CompileError(unit.name, CANCELLED_DIAGNOSTIC))
            return [outcome]

        project = self.solution_dir / unit.relative_path
        logger.info("Compiling %s", unit.name)
        try:
            result = await self.toolchain.compile(project)
        except Exception as exc:
            return [self._record(unit, Stage.COMPILE, CompileError(unit.name, _describe(exc), cause=exc))]
        if not result.ok:
            return [self._record(unit, Stage.COMPILE, CompileError(unit.name, result.diagnostic()))]
        compiled = self._record(unit, Stage.COMPILE)

        logger.info("Packaging %s", unit.name)
        try:
            result = await self.toolchain.package(project, self.artifacts_dir)
        except Exception as exc:
            return [compiled, self._record(unit, Stage.PACKAGE, PackageError(unit.name, _describe(exc), cause=exc))]
        if not result.ok:
            return [compiled, self._record(unit, Stage.PACKAGE, PackageError(unit.name, result.diagnostic()))]
        return [compiled, self._record(unit, Stage.PACKAGE)]

    @staticmethod
    def _record(unit: BuildUnit, stage: Stage, error: UnitError | None = None) -> UnitOutcome:
        if error is not None:
            logger.error("%s", error)
        outcome = UnitOutcome(
            unit=unit.name,
            stage=stage,
            success=error is None,
            diagnostic=error.detail if error is not None else None,
        )
        unit.record(outcome)
        return outcome
