"""Reflection scaffolder — SQLAlchemy reflection rendered as EF Core-style C# sources."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ezdb_core.config import ScaffoldOptions
from ezdb_core.errors import ConnectivityError
from ezdb_core.naming import identifier
from ezdb_core.security import redact_connection_string
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from ezdb_introspect.providers.base import ScaffoldedArtifact, ScaffoldProvider, ScaffoldRequest, ScaffoldResult
from ezdb_introspect.templating import CS_KEYWORDS, get_template_env

logger = logging.getLogger(__name__)

# Default scaffold timeout in seconds to prevent indefinite hangs on
# unreachable hosts.
_SCAFFOLD_TIMEOUT_SECONDS = 30

# Map SQLAlchemy type names to C# types.
_CS_TYPE_MAP: dict[str, str] = {
    "INTEGER": "int",
    "INT": "int",
    "SMALLINT": "short",
    "TINYINT": "byte",
    "BIGINT": "long",
    "FLOAT": "double",
    "DOUBLE": "double",
    "DOUBLE_PRECISION": "double",
    "REAL": "float",
    "NUMERIC": "decimal",
    "DECIMAL": "decimal",
    "MONEY": "decimal",
    "SMALLMONEY": "decimal",
    "VARCHAR": "string",
    "NVARCHAR": "string",
    "CHAR": "string",
    "NCHAR": "string",
    "TEXT": "string",
    "NTEXT": "string",
    "STRING": "string",
    "UNICODE": "string",
    "CLOB": "string",
    "XML": "string",
    "JSON": "string",
    "JSONB": "string",
    "BOOLEAN": "bool",
    "BIT": "bool",
    "DATETIME": "DateTime",
    "DATETIME2": "DateTime",
    "SMALLDATETIME": "DateTime",
    "TIMESTAMP": "DateTime",
    "DATETIMEOFFSET": "DateTimeOffset",
    "DATE": "DateOnly",
    "TIME": "TimeOnly",
    "UUID": "Guid",
    "UNIQUEIDENTIFIER": "Guid",
    "BLOB": "byte[]",
    "BYTEA": "byte[]",
    "BINARY": "byte[]",
    "VARBINARY": "byte[]",
    "IMAGE": "byte[]",
    "LARGEBINARY": "byte[]",
    "ROWVERSION": "byte[]",
}

_VALUE_TYPES = frozenset(
    {"int", "short", "byte", "long", "double", "float", "decimal", "bool", "DateTime", "DateTimeOffset",
     "DateOnly", "TimeOnly", "Guid"}
)  # fmt: skip

# Schemas owned by the server rather than the application.
_SYSTEM_SCHEMAS = frozenset({"sys", "information_schema", "guest", "pg_catalog", "pg_toast"})
_SYSTEM_SCHEMA_PREFIXES = ("db_", "pg_temp", "pg_toast_temp")

# Dialects where one connection sees exactly one schema worth scaffolding.
_SINGLE_SCHEMA_DIALECTS = frozenset({"sqlite", "mysql", "mariadb"})

_WORD_RE = re.compile(r"[A-Za-z0-9]+")


def resolve_cs_type(sa_type: object) -> str:
    """Map a SQLAlchemy column type to a C# type name."""
    type_name = type(sa_type).__name__.upper()
    if type_name in _CS_TYPE_MAP:
        return _CS_TYPE_MAP[type_name]
    # Fallback: try matching by string representation
    type_str = str(sa_type).upper().split("(")[0].strip()
    return _CS_TYPE_MAP.get(type_str, "string")


def to_pascal(name: str) -> str:
    """Convert a name like 'user_accounts' to 'UserAccounts'."""
    words = _WORD_RE.findall(name)
    if not words:
        return identifier(name)
    return identifier("".join(word[:1].upper() + word[1:] for word in words))


def _member_name(name: str, use_database_names: bool) -> str:
    token = identifier(name) if use_database_names else to_pascal(name)
    if token in CS_KEYWORDS:
        token = "@" + token
    return token


@dataclass
class ReflectedColumn:
    name: str
    member: str
    cs_type: str
    nullable: bool
    primary_key: bool
    max_length: int | None = None

    @property
    def is_value_type(self) -> bool:
        return self.cs_type in _VALUE_TYPES

    @property
    def renamed(self) -> bool:
        """True when the C# member differs from the column it maps."""
        return self.member.lstrip("@") != self.name


@dataclass
class ReflectedTable:
    schema: str | None
    name: str
    class_name: str
    columns: list[ReflectedColumn] = field(default_factory=list)

    @property
    def key_properties(self) -> list[str]:
        return [c.member for c in self.columns if c.primary_key]


def _is_system_schema(schema: str) -> bool:
    lowered = schema.lower()
    return lowered in _SYSTEM_SCHEMAS or lowered.startswith(_SYSTEM_SCHEMA_PREFIXES)


def _property_declaration(column: ReflectedColumn, options: ScaffoldOptions) -> str:
    """Render the C# type plus the nullable marker and initializer for one column."""
    cs_type = column.cs_type
    initializer = ""
    if column.is_value_type:
        if column.nullable:
            cs_type += "?"
    elif options.use_nullable_reference_types:
        if column.nullable:
            cs_type += "?"
        else:
            initializer = " = null!;"
    return f"public {cs_type} {column.member} {{ get; set; }}{initializer}"


def reflect_tables(sync_conn: Any, request: ScaffoldRequest) -> list[ReflectedTable]:
    """Read tables, columns and primary keys through a synchronous inspector."""
    inspector = inspect(sync_conn)
    options = request.options
    dialect = sync_conn.dialect.name
    default_schema = inspector.default_schema_name

    if dialect in _SINGLE_SCHEMA_DIALECTS:
        schemas: list[str | None] = [default_schema]
    else:
        schemas = [s for s in inspector.get_schema_names() if not _is_system_schema(s)]

    tables: list[ReflectedTable] = []
    used_class_names: set[str] = set()
    for schema in schemas:
        query_schema = None if schema == default_schema else schema
        for table_name in inspector.get_table_names(schema=query_schema):
            if not request.keeps(schema, table_name):
                logger.debug("Skipping table %s.%s (masked)", schema, table_name)
                continue

            class_name = _member_name(table_name, options.use_database_names)
            if class_name.lower() in used_class_names and schema:
                class_name = identifier(f"{schema}_{class_name.lstrip('@')}")
            used_class_names.add(class_name.lower())

            pk = inspector.get_pk_constraint(table_name, schema=query_schema)
            pk_columns = set(pk.get("constrained_columns") or [])

            columns: list[ReflectedColumn] = []
            for col in inspector.get_columns(table_name, schema=query_schema):
                prop = _member_name(col["name"], options.use_database_names)
                if prop == class_name:
                    prop += "1"
                cs_type = resolve_cs_type(col["type"])
                length = getattr(col["type"], "length", None) if cs_type == "string" else None
                columns.append(
                    ReflectedColumn(
                        name=col["name"],
                        member=prop,
                        cs_type=cs_type,
                        nullable=bool(col.get("nullable", True)) and col["name"] not in pk_columns,
                        primary_key=col["name"] in pk_columns,
                        max_length=length if isinstance(length, int) and length > 0 else None,
                    )
                )
            tables.append(
                ReflectedTable(
                    schema=schema if dialect not in _SINGLE_SCHEMA_DIALECTS else None,
                    name=table_name,
                    class_name=class_name,
                    columns=columns,
                )
            )
    return tables


class ReflectionScaffolder(ScaffoldProvider):
    """Scaffolds one database via SQLAlchemy reflection.

    Produces one entity class per table and a ``DbContext`` entry point.
    """

    def __init__(self, *, timeout: float = _SCAFFOLD_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout
        self.env = get_template_env()

    async def scaffold(self, request: ScaffoldRequest) -> ScaffoldResult:
        """Reflect *request.database* and render its sources.

        Raises:
            TimeoutError: If reflection exceeds the configured timeout.
        """
        engine = create_async_engine(request.connection_url, pool_pre_ping=True)
        try:
            tables = await asyncio.wait_for(self._reflect(engine, request), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"Scaffolding database {request.database!r} timed out after {self.timeout}s"
            ) from None
        except Exception as exc:
            # Re-raise with credentials redacted from the message.
            sanitized_msg = redact_connection_string(str(exc))
            if sanitized_msg != str(exc):
                raise ConnectivityError(sanitized_msg) from None
            raise
        finally:
            await engine.dispose()

        logger.info("Reflected %d table(s) from %s", len(tables), request.database)
        return self.render(tables, request)

    async def _reflect(self, engine: Any, request: ScaffoldRequest) -> list[ReflectedTable]:
        async with engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: reflect_tables(sync_conn, request))

    def render(self, tables: list[ReflectedTable], request: ScaffoldRequest) -> ScaffoldResult:
        """Render reflected tables into artifacts. Pure; no I/O."""
        options = request.options
        entity_template = self.env.get_template("entity.cs.j2")
        context_template = self.env.get_template("context.cs.j2")

        artifacts: list[ScaffoldedArtifact] = []
        for table in tables:
            content = entity_template.render(
                namespace=request.namespace,
                table=table,
                options=options,
                declarations={c.name: _property_declaration(c, options) for c in table.columns},
            )
            artifacts.append(ScaffoldedArtifact(relative_path=f"{table.class_name.lstrip('@')}.cs", content=content))

        entry = context_template.render(
            namespace=request.namespace,
            context_name=request.context_name,
            tables=tables,
            options=options,
        )
        return ScaffoldResult(
            entry_point=ScaffoldedArtifact(relative_path=f"{request.context_name}.cs", content=entry),
            artifacts=artifacts,
        )
