"""Mask language — include/exclude wildcard patterns over ``database.schema.table``.

A raw mask has one to three dot-separated components; missing trailing
components default to ``*``. A leading ``-`` marks the mask as an exclusion.
Within a component ``*`` matches any run of characters and ``?`` matches
exactly one; everything else is literal. Matching is case-insensitive and
anchored at both ends.

>>> compile_mask("Sales").pattern
MaskPattern(database='Sales', schema='*', table='*', excluded=False)
>>> compile_mask("-Sales.dbo.system*").matches("sales", "DBO", "systemLog")
True
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from ezdb_core.errors import MaskFormatError

WILDCARD = "*"
EXCLUDE_PREFIX = "-"
_SEPARATOR = "."
_MAX_COMPONENTS = 3


@dataclass(frozen=True)
class MaskPattern:
    """A parsed, not yet compiled, mask."""

    database: str
    schema: str = WILDCARD
    table: str = WILDCARD
    excluded: bool = False

    @property
    def components(self) -> tuple[str, str, str]:
        return (self.database, self.schema, self.table)

    def __str__(self) -> str:
        prefix = EXCLUDE_PREFIX if self.excluded else ""
        return prefix + _SEPARATOR.join(self.components)


def wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a wildcard component into a case-insensitive regular expression.

    Only ``*`` and ``?`` are special. A name containing a literal ``*`` or
    ``?`` cannot be matched literally.
    """
    translated = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(translated, re.IGNORECASE | re.DOTALL)


def _covers_everything(pattern: str) -> bool:
    return bool(pattern) and set(pattern) == {WILDCARD}


@dataclass(frozen=True)
class CompiledMask:
    """A mask pattern together with one matcher per component.

    Compiled once, then reused for every candidate object.
    """

    pattern: MaskPattern
    matchers: tuple[re.Pattern[str], re.Pattern[str], re.Pattern[str]]

    @property
    def excluded(self) -> bool:
        return self.pattern.excluded

    def matches(self, database: str, schema: str = WILDCARD, table: str = WILDCARD) -> bool:
        """Return True if all three components match.

        A candidate component equal to ``*`` is unspecified (the candidate
        stands for every object in that scope). An including mask matches
        such a component unconditionally; an excluding mask only matches it
        when its own component is all wildcards, so that ``-Sales.dbo.log*``
        never removes the whole ``Sales`` database.
        """
        for component_pattern, matcher, value in zip(self.pattern.components, self.matchers, (database, schema, table)):
            if value == WILDCARD:
                if self.excluded and not _covers_everything(component_pattern):
                    return False
                continue
            if matcher.fullmatch(value) is None:
                return False
        return True

    def __str__(self) -> str:
        return str(self.pattern)


def parse_mask(raw: str) -> MaskPattern:
    """Split a raw mask into its components and exclusion flag.

    Raises:
        MaskFormatError: If the mask is empty, has more than three components,
            or contains an empty component.
    """
    text = raw.strip()
    excluded = text.startswith(EXCLUDE_PREFIX)
    if excluded:
        text = text[len(EXCLUDE_PREFIX) :]
    if not text:
        raise MaskFormatError(raw, "empty mask")

    parts = text.split(_SEPARATOR)
    if len(parts) > _MAX_COMPONENTS:
        raise MaskFormatError(raw, f"expected at most {_MAX_COMPONENTS} components, got {len(parts)}")
    if any(not part for part in parts):
        raise MaskFormatError(raw, "empty component")

    padded = parts + [WILDCARD] * (_MAX_COMPONENTS - len(parts))
    return MaskPattern(database=padded[0], schema=padded[1], table=padded[2], excluded=excluded)


def compile_mask(raw: str) -> CompiledMask:
    """Parse and compile a single raw mask."""
    pattern = parse_mask(raw)
    matchers = (
        wildcard_to_regex(pattern.database),
        wildcard_to_regex(pattern.schema),
        wildcard_to_regex(pattern.table),
    )
    return CompiledMask(pattern=pattern, matchers=matchers)


def compile_masks(raw_masks: Iterable[str]) -> list[CompiledMask]:
    """Compile every mask, failing on the first malformed one."""
    return [compile_mask(raw) for raw in raw_masks]
