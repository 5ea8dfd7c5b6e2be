"""Live database inventory — which databases exist on the target server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ezdb_core.connection import ConnectionIdentity
from ezdb_core.errors import ConnectivityError, ConnectivityTimeoutError
from ezdb_core.security import redact_connection_string
from ezdb_core.selector import CandidateObject
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

# Bound for the initial reachability probe. Kept short and separate from the
# listing query bound so an unreachable host fails fast.
_CONNECT_TIMEOUT_SECONDS = 5.0
_COMMAND_TIMEOUT_SECONDS = 30.0

_MYSQL_LISTING = "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name"

# Per-dialect listing query and the column index holding the database name.
_LISTING_QUERIES: dict[str, tuple[str, int]] = {
    "mssql": (
        "SELECT name FROM sys.databases "
        "WHERE database_id > 4 AND name NOT LIKE 'System%' AND state = 0 "
        "ORDER BY name",
        0,
    ),
    "postgresql": (
        "SELECT datname FROM pg_database WHERE NOT datistemplate AND datallowconn ORDER BY datname",
        0,
    ),
    "mysql": (_MYSQL_LISTING, 0),
    "mariadb": (_MYSQL_LISTING, 0),
    "sqlite": ("PRAGMA database_list", 1),
}


def _dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for name in names:
        key = name.casefold()
        if key not in seen:
            seen.add(key)
            unique.append(name)
    return unique


class DatabaseInventory:
    """Lists the databases reachable through a connection identity.

    Usage::

        inventory = DatabaseInventory(ConnectionIdentity.parse("db01"))
        names = await inventory.list_databases()
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        *,
        connect_timeout: float = _CONNECT_TIMEOUT_SECONDS,
        command_timeout: float = _COMMAND_TIMEOUT_SECONDS,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
    ) -> None:
        self.identity = identity
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._engine_factory = engine_factory

    async def list_databases(self) -> list[str]:
        """Return database names in server order, deduplicated case-insensitively.

        Raises:
            ConnectivityTimeoutError: If the probe or the listing query exceeds its bound.
            ConnectivityError: If the server cannot be reached or queried.
        """
        backend = self.identity.backend
        if backend not in _LISTING_QUERIES:
            raise ConnectivityError(f"Listing databases is not supported for the {backend!r} dialect")
        query, column = _LISTING_QUERIES[backend]

        logger.info("Retrieving databases from %s", self.identity.redacted())
        engine = self._engine_factory(self.identity.url, pool_pre_ping=True)
        try:
            await self._check_connectivity(engine)
            try:
                rows = await asyncio.wait_for(self._run_listing(engine, query), timeout=self.command_timeout)
            except asyncio.TimeoutError:
                raise ConnectivityTimeoutError(
                    f"Listing databases on {self.identity.redacted()} timed out after {self.command_timeout}s",
                    timeout=self.command_timeout,
                ) from None
            except (SQLAlchemyError, OSError) as exc:
                raise ConnectivityError(
                    f"Failed to retrieve databases: {redact_connection_string(str(exc))}"
                ) from exc
        finally:
            await engine.dispose()

        names = _dedupe([str(row[column]) for row in rows])
        logger.info("Retrieved %d database(s)", len(names))
        return names

    async def fetch(self) -> list[CandidateObject]:
        """Database-granularity candidates for the object selector."""
        return [CandidateObject(name) for name in await self.list_databases()]

    async def _check_connectivity(self, engine: AsyncEngine) -> None:
        logger.debug("Testing connection with a %ss timeout", self.connect_timeout)
        try:
            await asyncio.wait_for(self._ping(engine), timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            raise ConnectivityTimeoutError(
                f"Connection test to {self.identity.redacted()} timed out after {self.connect_timeout}s",
                timeout=self.connect_timeout,
            ) from None
        except (SQLAlchemyError, OSError) as exc:
            raise ConnectivityError(
                f"Failed to connect to {self.identity.redacted()}: {redact_connection_string(str(exc))}"
            ) from exc
        logger.debug("Connection test successful")

    @staticmethod
    async def _ping(engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    @staticmethod
    async def _run_listing(engine: AsyncEngine, query: str) -> list[Any]:
        async with engine.connect() as conn:
            result = await conn.execute(text(query))
            return list(result.fetchall())
