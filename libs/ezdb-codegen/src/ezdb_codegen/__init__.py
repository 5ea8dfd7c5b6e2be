"""ezdb-codegen — unit generation, build orchestration and the run pipeline."""

from ezdb_codegen.build import BuildOrchestrator, BuildToolchain, DotnetToolchain, ToolResult
from ezdb_codegen.engine import GenerationResult, UnitGenerationOrchestrator, UnitJob, UnitState
from ezdb_codegen.pipeline import RunReport, run, select_databases

__all__ = [
    "BuildOrchestrator",
    "BuildToolchain",
    "DotnetToolchain",
    "GenerationResult",
    "RunReport",
    "ToolResult",
    "UnitGenerationOrchestrator",
    "UnitJob",
    "UnitState",
    "run",
    "select_databases",
]
