"""Deterministic names for solutions, units and generated namespaces."""

from __future__ import annotations

import re

from ezdb_core.connection import ConnectionIdentity
from ezdb_core.errors import InvalidIdentityError

SERVER_PREFIX = "Server"
UNIT_SEPARATOR = "."

_NON_TOKEN_RE = re.compile(r"[^A-Za-z0-9_]")
_NON_IDENTIFIER_RE = re.compile(r"\W")


def server_name(identity: ConnectionIdentity | str) -> str:
    """Derive an identifier-safe token from a server data source.

    Backslashes (named instances) become underscores, a ``,port`` suffix is
    dropped, every other character outside ``[A-Za-z0-9_]`` is stripped, and
    ``Server`` is prepended when the token does not start with a letter.

    >>> server_name("db01\\\\SQL2019,1433")
    'db01_SQL2019'
    >>> server_name("10.0.0.5")
    'Server10005'

    Raises:
        InvalidIdentityError: If nothing is left after stripping.
    """
    data_source = identity.data_source if isinstance(identity, ConnectionIdentity) else identity
    token = data_source.replace("\\", "_").split(",")[0]
    token = _NON_TOKEN_RE.sub("", token)
    if not token:
        raise InvalidIdentityError(f"Cannot derive a server name from {data_source!r}")
    if not token[0].isalpha():
        token = SERVER_PREFIX + token
    return token


def unit_name(prefix: str, name: str) -> str:
    """Join a unit prefix and a database (or role) name.

    >>> unit_name("Acme.DAL", "Sales")
    'Acme.DAL.Sales'

    Raises:
        InvalidIdentityError: If either part is blank.
    """
    if not prefix.strip() or not name.strip():
        raise InvalidIdentityError(f"Unit name parts must not be empty (prefix={prefix!r}, name={name!r})")
    return f"{prefix}{UNIT_SEPARATOR}{name}"


def identifier(name: str) -> str:
    """Turn an arbitrary name into a C#-style identifier token."""
    token = _NON_IDENTIFIER_RE.sub("_", name)
    if not token:
        raise InvalidIdentityError("Identifier must not be empty")
    if token[0].isdigit():
        token = "_" + token
    return token


def context_name(database: str, suffix: str = "Context") -> str:
    """Name of the generated entry-point class for *database*."""
    return identifier(database) + suffix
