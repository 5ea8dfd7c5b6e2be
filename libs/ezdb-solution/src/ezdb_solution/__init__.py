"""ezdb-solution — solution manifest, unit descriptors and project packing."""

from ezdb_solution.manifest import SolutionConfig, SolutionManifest, previous_identifiers
from ezdb_solution.models import BuildUnit, Stage, UnitKind, UnitOutcome
from ezdb_solution.packer import pack_project, unpack_project

__all__ = [
    "BuildUnit",
    "SolutionConfig",
    "SolutionManifest",
    "Stage",
    "UnitKind",
    "UnitOutcome",
    "pack_project",
    "previous_identifiers",
    "unpack_project",
]
