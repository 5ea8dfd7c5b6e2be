"""Build units and the outcomes recorded against them."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field


class UnitKind(str, Enum):
    """Role of a build unit. The value is the unit's root directory."""

    LIBRARY = "DAL"
    API = "API"


class Stage(str, Enum):
    """Pipeline stage an outcome belongs to."""

    GENERATION = "generation"
    COMPILE = "compile"
    PACKAGE = "package"


def new_identifier() -> str:
    """A fresh upper-case GUID without braces."""
    return str(uuid.uuid4()).upper()


class UnitOutcome(BaseModel):
    """Result of one stage for one unit (or one database, before it became a unit)."""

    unit: str = Field(description="Unit name, derived even when the unit was never registered.")
    stage: Stage
    success: bool
    diagnostic: str | None = Field(default=None, description="Sanitised failure description.")
    database: str | None = Field(default=None, description="Source database, when the unit has one.")

    model_config = {"extra": "forbid", "frozen": True}

    def __str__(self) -> str:
        status = "ok" if self.success else "FAILED"
        text = f"{self.unit}: {self.stage.value} {status}"
        if self.diagnostic:
            text += f" ({self.diagnostic})"
        return text


class BuildUnit(BaseModel):
    """One independently buildable project in the solution.

    Only ``outcomes`` grows after registration; every other field is fixed.
    """

    identifier: str = Field(default_factory=new_identifier, description="Stable GUID, upper case, no braces.")
    name: str = Field(min_length=1, description="Unique (case-insensitive) display name.")
    relative_path: str = Field(min_length=1, description="Project file path relative to the solution directory.")
    kind: UnitKind = UnitKind.LIBRARY
    outcomes: list[UnitOutcome] = Field(default_factory=list)

    model_config = {"extra": "forbid", "frozen": True}

    def record(self, outcome: UnitOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def directory(self) -> str:
        """Directory part of ``relative_path``."""
        head, _, _ = self.relative_path.rpartition("/")
        return head
