"""Abstract base for introspection collaborators.

A scaffold provider is handed a database-scoped connection and a fixed
options bundle and returns named text artifacts. It never writes to disk;
materialising artifacts is the orchestrator's job.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from ezdb_core.config import ScaffoldOptions

TableFilter = Callable[[str | None, str], bool]


@dataclass(frozen=True)
class ScaffoldedArtifact:
    """One generated file, relative to the unit's source directory."""

    relative_path: str
    content: str


@dataclass(frozen=True)
class ScaffoldRequest:
    """Everything a provider needs to scaffold one database."""

    database: str
    connection_url: str
    namespace: str
    context_name: str
    options: ScaffoldOptions = field(default_factory=ScaffoldOptions)
    table_filter: TableFilter | None = None

    def keeps(self, schema: str | None, table: str) -> bool:
        return self.table_filter is None or self.table_filter(schema, table)


@dataclass
class ScaffoldResult:
    """Artifacts for one database plus the designated entry point."""

    entry_point: ScaffoldedArtifact
    artifacts: list[ScaffoldedArtifact] = field(default_factory=list)

    @property
    def all_artifacts(self) -> list[ScaffoldedArtifact]:
        return [*self.artifacts, self.entry_point]


class ScaffoldProvider(ABC):
    """Protocol for introspection collaborators."""

    @abstractmethod
    async def scaffold(self, request: ScaffoldRequest) -> ScaffoldResult:
        """Read the database schema and produce source artifacts.

        Args:
            request: Database-scoped connection, namespaces and options.

        Returns:
            ScaffoldResult with one artifact per generated file.
        """
