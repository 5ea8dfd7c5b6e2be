"""Run pipeline — masks to packages in one call.

Mask parsing, identity parsing and inventory retrieval errors abort the run.
Everything after selection is per unit and ends up in the run report.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ezdb_core.config import RunConfig
from ezdb_core.connection import ConnectionIdentity
from ezdb_core.masks import compile_masks
from ezdb_core.naming import server_name
from ezdb_core.selector import SelectionResult, select
from ezdb_introspect.inventory import DatabaseInventory
from ezdb_introspect.providers.base import ScaffoldProvider
from ezdb_introspect.providers.reflection import ReflectionScaffolder
from ezdb_solution.manifest import SolutionManifest, previous_identifiers
from ezdb_solution.models import UnitOutcome

from ezdb_codegen.build import BuildOrchestrator, BuildToolchain, DotnetToolchain
from ezdb_codegen.engine import UnitGenerationOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Every unit's fate plus where the solution was written."""

    selected: list[str] = field(default_factory=list)
    outcomes: list[UnitOutcome] = field(default_factory=list)
    solution_path: Path | None = None
    built: bool = False

    @property
    def failures(self) -> list[UnitOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def summary_lines(self) -> list[str]:
        lines = [str(outcome) for outcome in self.outcomes]
        total = len(self.outcomes)
        lines.append(f"{total - len(self.failures)} of {total} step(s) succeeded")
        return lines


async def select_databases(config: RunConfig, *, inventory: DatabaseInventory | None = None) -> SelectionResult:
    """Compile masks, fetch the live inventory and apply the selection rules.

    Raises:
        MaskFormatError: If any mask is malformed. Raised before connecting.
        InvalidIdentityError: If the connection cannot be parsed.
        ConnectivityError: If the inventory cannot be retrieved.
    """
    masks = compile_masks(config.masks)
    if inventory is None:
        identity = ConnectionIdentity.parse(config.connection)
        inventory = DatabaseInventory(
            identity, connect_timeout=config.connect_timeout, command_timeout=config.command_timeout
        )
    candidates = await inventory.fetch()
    selection = select(candidates, masks)
    logger.info("Selected %d of %d database(s): %s", len(selection), len(candidates), ", ".join(selection.databases))
    return selection


async def run(
    config: RunConfig,
    *,
    inventory: DatabaseInventory | None = None,
    provider: ScaffoldProvider | None = None,
    toolchain: BuildToolchain | None = None,
    cancel_event: asyncio.Event | None = None,
) -> RunReport:
    """Generate, register, build and package one unit per selected database.

    Raises:
        MaskFormatError: If any mask is malformed.
        InvalidIdentityError: If the connection cannot be parsed.
        ConnectivityError: If the inventory cannot be retrieved.
        DuplicateUnitError: If two units derive the same name.
    """
    masks = compile_masks(config.masks)
    identity = ConnectionIdentity.parse(config.connection)
    if inventory is None:
        inventory = DatabaseInventory(
            identity, connect_timeout=config.connect_timeout, command_timeout=config.command_timeout
        )
    selection = await select_databases(config, inventory=inventory)
    report = RunReport(selected=selection.databases)
    if not selection:
        logger.warning("No databases matched; nothing to generate")
        return report

    solution_path = config.solution_dir / f"{server_name(identity)}.sln"
    manifest = SolutionManifest(known_identifiers=previous_identifiers(solution_path))
    cancel_event = cancel_event or asyncio.Event()

    orchestrator = UnitGenerationOrchestrator(
        manifest,
        provider or ReflectionScaffolder(timeout=config.command_timeout),
        identity,
        config,
        cancel_event=cancel_event,
    )
    generation = await orchestrator.generate(selection.databases, masks)
    report.outcomes.extend(generation.outcomes)

    if config.generate_api:
        if generation.succeeded:
            report.outcomes.append(orchestrator.generate_api(generation.jobs))
        else:
            logger.warning("Skipping API unit: no library unit was generated")

    report.solution_path = manifest.save(solution_path)

    if config.build.skip_build:
        logger.info("Skipping compile and package (skip_build)")
        return report
    if not len(manifest):
        logger.warning("No units registered; skipping build")
        return report

    builder = BuildOrchestrator(
        toolchain or DotnetToolchain(config.build),
        config.solution_dir,
        config.artifacts_dir,
        max_workers=config.max_workers,
        cancel_event=cancel_event,
    )
    report.outcomes.extend(await builder.build(manifest))
    report.built = True
    return report
