"""Domain exceptions for ezdbgen.

Run-level errors (mask parsing, inventory retrieval) abort the whole run.
Per-unit errors (generation, compile, package) are captured by the
orchestrators and reported as unit outcomes instead of propagating.
"""

from __future__ import annotations


class EzDbError(Exception):
    """Base exception for all ezdbgen errors."""


class MaskFormatError(EzDbError):
    """Raised when a raw mask does not have 1, 2 or 3 dot-separated components.

    Attributes:
        mask: The raw mask as supplied by the operator.
    """

    def __init__(self, mask: str, detail: str | None = None) -> None:
        self.mask = mask
        msg = f"Invalid mask format: {mask!r}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class InvalidIdentityError(EzDbError, ValueError):
    """Raised when a connection identity or name yields an empty token."""


class ConnectivityError(EzDbError):
    """Raised when the target server or a database cannot be reached."""


class ConnectivityTimeoutError(ConnectivityError):
    """Raised when the connectivity check does not complete within its bound.

    Attributes:
        timeout: The bound, in seconds, that was exceeded.
    """

    def __init__(self, message: str, *, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(message)


class DuplicateUnitError(EzDbError):
    """Raised when a unit name is registered twice in one manifest.

    Names are compared case-insensitively.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Build unit {name!r} is already registered")


class ManifestFormatError(EzDbError):
    """Raised when a solution document cannot be parsed."""


class UnitError(EzDbError):
    """Base for failures scoped to a single build unit.

    Attributes:
        unit_name: The database or unit the failure belongs to.
        detail: A sanitised description of what went wrong.
    """

    stage = "unit"

    def __init__(self, unit_name: str, detail: str, *, cause: Exception | None = None) -> None:
        self.unit_name = unit_name
        self.detail = detail
        super().__init__(f"[{unit_name}] {self.stage} failed: {detail}")
        if cause is not None:
            self.__cause__ = cause


class GenerationError(UnitError):
    """Raised when the introspection collaborator fails for one database."""

    stage = "generation"


class CompileError(UnitError):
    """Raised when compiling a unit fails."""

    stage = "compile"


class PackageError(UnitError):
    """Raised when packaging a unit fails."""

    stage = "package"
