"""Object selection — evaluates an inventory against compiled masks.

Exclusion always wins: a candidate is selected only when it matches at least
one including mask and no excluding mask, whatever the order of the masks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from ezdb_core.masks import WILDCARD, CompiledMask

logger = logging.getLogger(__name__)

# System databases that are never selected, whatever the masks say.
RESERVED_DATABASES: frozenset[str] = frozenset({"master", "tempdb", "model", "msdb"})


def is_reserved(database: str) -> bool:
    return database.casefold() in RESERVED_DATABASES


@dataclass(frozen=True)
class CandidateObject:
    """One entry of the live inventory.

    Database-level inventories leave ``schema`` and ``table`` as ``*``.
    """

    database: str
    schema: str = WILDCARD
    table: str = WILDCARD

    def __str__(self) -> str:
        return f"{self.database}.{self.schema}.{self.table}"


@dataclass(frozen=True)
class SelectionResult:
    """Selected candidates in inventory order."""

    objects: tuple[CandidateObject, ...] = field(default_factory=tuple)

    @property
    def databases(self) -> list[str]:
        """Distinct database names, first occurrence order."""
        seen: set[str] = set()
        names: list[str] = []
        for obj in self.objects:
            key = obj.database.casefold()
            if key not in seen:
                seen.add(key)
                names.append(obj.database)
        return names

    def __iter__(self) -> Iterator[str]:
        return iter(self.databases)

    def __len__(self) -> int:
        return len(self.databases)

    def __contains__(self, database: object) -> bool:
        if not isinstance(database, str):
            return False
        return any(name.casefold() == database.casefold() for name in self.databases)


def is_selected(candidate: CandidateObject, masks: Sequence[CompiledMask]) -> bool:
    """Decide a single candidate. No state is shared between candidates."""
    if is_reserved(candidate.database):
        return False
    if not masks:
        return True

    matched_include = False
    matched_exclude = False
    for mask in masks:
        if not mask.matches(candidate.database, candidate.schema, candidate.table):
            continue
        if mask.excluded:
            matched_exclude = True
        else:
            matched_include = True
    return matched_include and not matched_exclude


def select(inventory: Iterable[CandidateObject], masks: Sequence[CompiledMask]) -> SelectionResult:
    """Filter *inventory* by *masks*, preserving inventory order."""
    selected: list[CandidateObject] = []
    for candidate in inventory:
        if is_selected(candidate, masks):
            logger.debug("Selected %s", candidate)
            selected.append(candidate)
        else:
            logger.debug("Skipped %s", candidate)
    return SelectionResult(objects=tuple(selected))


def table_filter(database: str, masks: Sequence[CompiledMask]) -> Callable[[str | None, str], bool] | None:
    """Build a ``(schema, table) -> bool`` predicate for one selected database.

    Returns None when no masks were given, meaning every table is kept.
    Tables without a schema are evaluated against the ``*`` schema.
    """
    if not masks:
        return None
    frozen_masks = tuple(masks)

    def _keep(schema: str | None, table: str) -> bool:
        return is_selected(CandidateObject(database, schema or WILDCARD, table), frozen_masks)

    return _keep
