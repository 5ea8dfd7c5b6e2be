"""Sandboxed Jinja2 environment for generated C# sources."""

from __future__ import annotations

import re

from jinja2 import PackageLoader
from jinja2.sandbox import SandboxedEnvironment

_CS_IDENTIFIER_RE = re.compile(r"^@?[A-Za-z_][A-Za-z0-9_]*$")
_CS_NAMESPACE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

CS_KEYWORDS = frozenset(
    {
        "abstract", "as", "base", "bool", "break", "byte", "case", "catch", "char", "checked", "class",
        "const", "continue", "decimal", "default", "delegate", "do", "double", "else", "enum", "event",
        "explicit", "extern", "false", "finally", "fixed", "float", "for", "foreach", "goto", "if",
        "implicit", "in", "int", "interface", "internal", "is", "lock", "long", "namespace", "new", "null",
        "object", "operator", "out", "override", "params", "private", "protected", "public", "readonly",
        "ref", "return", "sbyte", "sealed", "short", "sizeof", "stackalloc", "static", "string", "struct",
        "switch", "this", "throw", "true", "try", "typeof", "uint", "ulong", "unchecked", "unsafe",
        "ushort", "using", "virtual", "void", "volatile", "while",
    }
)  # fmt: skip


def cs_string(value: str) -> str:
    """Render *value* as a C# regular string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def safe_identifier(value: str) -> str:
    """Template filter: refuse anything that is not a plain C# identifier."""
    if not _CS_IDENTIFIER_RE.match(value):
        raise ValueError(f"Unsafe identifier: {value!r}")
    return value


def safe_namespace(value: str) -> str:
    """Template filter: refuse anything that is not a dotted C# namespace."""
    if not _CS_NAMESPACE_RE.match(value):
        raise ValueError(f"Unsafe namespace: {value!r}")
    return value


def get_template_env() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        loader=PackageLoader("ezdb_introspect", "templates"),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["cs_string"] = cs_string
    env.filters["safe_identifier"] = safe_identifier
    env.filters["safe_namespace"] = safe_namespace
    return env
