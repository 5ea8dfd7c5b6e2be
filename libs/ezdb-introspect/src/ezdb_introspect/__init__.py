"""ezdb-introspect — database inventory and per-database scaffolding."""

from ezdb_introspect.inventory import DatabaseInventory
from ezdb_introspect.providers import (
    ReflectionScaffolder,
    ScaffoldedArtifact,
    ScaffoldProvider,
    ScaffoldRequest,
    ScaffoldResult,
)

__all__ = [
    "DatabaseInventory",
    "ReflectionScaffolder",
    "ScaffoldProvider",
    "ScaffoldRequest",
    "ScaffoldResult",
    "ScaffoldedArtifact",
]
