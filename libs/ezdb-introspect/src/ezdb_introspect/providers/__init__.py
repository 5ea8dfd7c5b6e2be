"""Introspection collaborators."""

from ezdb_introspect.providers.base import ScaffoldedArtifact, ScaffoldProvider, ScaffoldRequest, ScaffoldResult
from ezdb_introspect.providers.reflection import ReflectionScaffolder

__all__ = [
    "ReflectionScaffolder",
    "ScaffoldProvider",
    "ScaffoldRequest",
    "ScaffoldResult",
    "ScaffoldedArtifact",
]
