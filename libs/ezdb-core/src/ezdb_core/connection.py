"""Connection identity — targets a server and, per unit, one database on it.

Three input forms are accepted:

* a SQLAlchemy URL, e.g. ``mssql+aioodbc://sa:pw@db01,1433/Sales?driver=...``
* an ADO-style connection string, e.g. ``Server=db01\\SQL2019;Database=Sales;Integrated Security=True``
* a bare server name, treated as an integrated-security SQL Server connection.

ADO-style strings are carried as an ODBC connection string inside the
``odbc_connect`` query parameter, which the pyodbc-based SQL Server dialects
understand.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from ezdb_core.errors import InvalidIdentityError
from ezdb_core.security import redact_connection_string

DEFAULT_DRIVERNAME = "mssql+aioodbc"
DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

_ODBC_CONNECT = "odbc_connect"

# ADO keyword aliases -> ODBC keyword.
_ADO_KEYWORDS: dict[str, str] = {
    "server": "SERVER",
    "data source": "SERVER",
    "address": "SERVER",
    "addr": "SERVER",
    "network address": "SERVER",
    "database": "DATABASE",
    "initial catalog": "DATABASE",
    "user id": "UID",
    "uid": "UID",
    "user": "UID",
    "password": "PWD",
    "pwd": "PWD",
    "encrypt": "Encrypt",
    "trustservercertificate": "TrustServerCertificate",
    "trust server certificate": "TrustServerCertificate",
    "application name": "APP",
    "connect timeout": "Connection Timeout",
    "connection timeout": "Connection Timeout",
}

_INTEGRATED_KEYWORDS = frozenset({"integrated security", "trusted_connection"})
_TRUE_VALUES = frozenset({"true", "yes", "sspi", "1"})


def _read_delimited(raw: str, start: int) -> tuple[str, int]:
    # A doubled closing delimiter inside the value stands for one literal character.
    closer = "}" if raw[start] == "{" else raw[start]
    chars: list[str] = []
    pos = start + 1
    while pos < len(raw):
        if raw[pos] == closer:
            if raw.startswith(closer * 2, pos):
                chars.append(closer)
                pos += 2
                continue
            return "".join(chars), pos + 1
        chars.append(raw[pos])
        pos += 1
    raise InvalidIdentityError("Unterminated quoted value in connection string")


def _split_key_values(raw: str) -> list[tuple[str, str]]:
    """Split ``key=value;`` pairs, honouring quoted and braced values.

    Values may be wrapped in ``'...'``, ``"..."`` or ``{...}`` to carry ``;``
    or leading spaces. Keys keep their original case.

    >>> _split_key_values("Server=db01;Password='p;w';")
    [('Server', 'db01'), ('Password', 'p;w')]

    Raises:
        InvalidIdentityError: If a segment has no ``=`` or a quoted value is not closed.
    """
    pairs: list[tuple[str, str]] = []
    pos, length = 0, len(raw)
    while pos < length:
        equals = raw.find("=", pos)
        semicolon = raw.find(";", pos)
        if semicolon == -1:
            semicolon = length
        if equals == -1 or semicolon < equals:
            segment = raw[pos:semicolon]
            if segment.strip():
                raise InvalidIdentityError(
                    f"Malformed connection string segment: {redact_connection_string(segment)!r}"
                )
            pos = semicolon + 1
            continue

        key = raw[pos:equals].strip()
        if not key:
            raise InvalidIdentityError("Connection string segment has an empty keyword")
        pos = equals + 1
        while pos < length and raw[pos].isspace():
            pos += 1
        if pos < length and raw[pos] in "\"'{":
            value, pos = _read_delimited(raw, pos)
            while pos < length and raw[pos].isspace():
                pos += 1
            if pos < length and raw[pos] != ";":
                raise InvalidIdentityError(f"Unexpected text after the quoted value of {key!r}")
            pos += 1
        else:
            end = raw.find(";", pos)
            if end == -1:
                end = length
            value = raw[pos:end].strip()
            pos = end + 1
        pairs.append((key, value))
    return pairs


def _format_odbc(pairs: list[tuple[str, str]]) -> str:
    parts = []
    for key, value in pairs:
        if value != value.strip() or any(ch in value for ch in ";{}'\" "):
            value = "{" + value.replace("}", "}}") + "}"
        parts.append(f"{key}={value}")
    return ";".join(parts) + ";"


class ConnectionIdentity(BaseModel):
    """Opaque connection target for the inventory and the per-unit scaffolder."""

    url: str = Field(min_length=1, description="SQLAlchemy URL of the server connection.")
    data_source: str = Field(min_length=1, description="Server token as the operator wrote it (host[\\instance][,port]).")

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def parse(
        cls,
        raw: str,
        *,
        drivername: str = DEFAULT_DRIVERNAME,
        odbc_driver: str = DEFAULT_ODBC_DRIVER,
    ) -> ConnectionIdentity:
        """Build an identity from a URL, an ADO-style string or a server name.

        Raises:
            InvalidIdentityError: If *raw* is empty or cannot be parsed.
        """
        text = raw.strip()
        if not text:
            raise InvalidIdentityError("Connection identity must not be empty")
        if "://" in text:
            return cls._from_url(text)
        if "=" not in text:
            text = f"Server={text};Integrated Security=True;"
        return cls._from_ado(text, drivername=drivername, odbc_driver=odbc_driver)

    @classmethod
    def _from_url(cls, text: str) -> ConnectionIdentity:
        try:
            url = make_url(text)
        except ArgumentError as exc:
            raise InvalidIdentityError(f"Invalid connection URL: {redact_connection_string(text)}") from exc
        if url.host:
            data_source = url.host if url.port is None else f"{url.host},{url.port}"
        elif url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            data_source = Path(url.database).stem
        else:
            data_source = url.get_backend_name()
        return cls(url=url.render_as_string(hide_password=False), data_source=data_source)

    @classmethod
    def _from_ado(cls, text: str, *, drivername: str, odbc_driver: str) -> ConnectionIdentity:
        pairs: list[tuple[str, str]] = [("DRIVER", odbc_driver)]
        server = ""
        integrated = False
        for raw_key, value in _split_key_values(text):
            key = raw_key.lower()
            if key in _INTEGRATED_KEYWORDS:
                integrated = value.lower() in _TRUE_VALUES
                continue
            odbc_key = _ADO_KEYWORDS.get(key)
            if odbc_key is None:
                continue
            if odbc_key == "SERVER":
                server = value.removeprefix("tcp:")
                value = server
            pairs.append((odbc_key, value))
        if not server:
            raise InvalidIdentityError("Connection string does not name a server")
        if integrated:
            pairs.append(("Trusted_Connection", "yes"))
        url = URL.create(drivername, query={_ODBC_CONNECT: _format_odbc(pairs)})
        return cls(url=url.render_as_string(hide_password=False), data_source=server)

    @property
    def backend(self) -> str:
        return make_url(self.url).get_backend_name()

    def for_database(self, database: str) -> str:
        """Return a connection URL scoped to *database*.

        SQLite URLs already name exactly one database file and are returned
        unchanged.
        """
        url = make_url(self.url)
        if url.get_backend_name() == "sqlite":
            return self.url
        odbc = url.query.get(_ODBC_CONNECT)
        if isinstance(odbc, str):
            pairs = [(k, v) for k, v in _split_key_values(odbc) if k.upper() != "DATABASE"]
            pairs.append(("DATABASE", database))
            url = url.update_query_dict({_ODBC_CONNECT: _format_odbc(pairs)})
        else:
            url = url.set(database=database)
        return url.render_as_string(hide_password=False)

    def redacted(self) -> str:
        """The server URL with credentials masked, safe for logs."""
        url = make_url(self.url)
        odbc = url.query.get(_ODBC_CONNECT)
        if isinstance(odbc, str):
            return f"{url.drivername} ({redact_connection_string(odbc)})"
        return redact_connection_string(url.render_as_string(hide_password=True))

    def redacted_for_database(self, database: str) -> str:
        """The database-scoped target with credentials masked.

        ODBC-style targets come back as the decoded connection string
        (``DRIVER=...;SERVER=...;PWD=***;DATABASE=...;``) so that generated
        settings files carry something a .NET host can read.
        """
        url = make_url(self.for_database(database))
        odbc = url.query.get(_ODBC_CONNECT)
        if isinstance(odbc, str):
            return redact_connection_string(odbc)
        return redact_connection_string(url.render_as_string(hide_password=True))
