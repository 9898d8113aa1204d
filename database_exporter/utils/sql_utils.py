# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from database_exporter.utils.constants import DEFAULT_SANITIZED_NAME, SANITIZE_PREFIX


def sanitize_schema(raw: str) -> str:
    """
    Normalize a configuration name into an identifier usable as a catalog schema and a directory name.

    - lower-cased
    - prefixed with ``s`` when it does not start with an ASCII letter
    - every character other than ASCII letters, digits and ``_`` becomes ``_``
    - ``"schema"`` when the input is empty

    e.g. "My Schema!" -> "my_schema_", "123x" -> "s123x", "" -> "schema"
    """
    if not raw:
        return DEFAULT_SANITIZED_NAME
    lowered = raw.lower()
    if not _is_ascii_letter(lowered[0]):
        lowered = SANITIZE_PREFIX + lowered
    return "".join(c if _is_ascii_letter(c) or c.isascii() and c.isdigit() or c == "_" else "_" for c in lowered)


def _is_ascii_letter(c: str) -> bool:
    return c.isascii() and c.isalpha()


def quote_identifier(name: str, open_quote: str = '"', close_quote: str = '"') -> str:
    """Quote an identifier, doubling any embedded closing quote."""
    return f"{open_quote}{name.replace(close_quote, close_quote * 2)}{close_quote}"


def to_sql_literal(value: str) -> str:
    """Standard SQL single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


def strip_trailing_semicolon(sql: str) -> str:
    return sql.strip().rstrip(";").rstrip()
