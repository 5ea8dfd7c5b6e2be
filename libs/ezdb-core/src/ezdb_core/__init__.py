"""ezdb-core — mask language, object selection and naming for ezdbgen."""

from ezdb_core.config import BuildSettings, RunConfig, ScaffoldOptions
from ezdb_core.connection import ConnectionIdentity
from ezdb_core.errors import (
    CompileError,
    ConnectivityError,
    ConnectivityTimeoutError,
    DuplicateUnitError,
    EzDbError,
    GenerationError,
    InvalidIdentityError,
    ManifestFormatError,
    MaskFormatError,
    PackageError,
)
from ezdb_core.masks import CompiledMask, MaskPattern, compile_mask, compile_masks
from ezdb_core.naming import context_name, server_name, unit_name
from ezdb_core.selector import RESERVED_DATABASES, CandidateObject, SelectionResult, select, table_filter

__all__ = [
    "RESERVED_DATABASES",
    "BuildSettings",
    "CandidateObject",
    "CompileError",
    "CompiledMask",
    "ConnectionIdentity",
    "ConnectivityError",
    "ConnectivityTimeoutError",
    "DuplicateUnitError",
    "EzDbError",
    "GenerationError",
    "InvalidIdentityError",
    "ManifestFormatError",
    "MaskFormatError",
    "MaskPattern",
    "PackageError",
    "RunConfig",
    "ScaffoldOptions",
    "SelectionResult",
    "compile_mask",
    "compile_masks",
    "context_name",
    "select",
    "server_name",
    "table_filter",
    "unit_name",
]
