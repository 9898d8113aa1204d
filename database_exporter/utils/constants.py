# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from enum import Enum


class DatabaseKind(str, Enum):
    """Source database kinds the exporter can read from."""

    SQLSERVER = "sqlserver"
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"

    @classmethod
    def from_str(cls, value: str) -> "DatabaseKind":
        normalized = (value or "").strip().lower()
        normalized = DB_KIND_ALIASES.get(normalized, normalized)
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise ValueError(f"Unsupported database_type `{value}`, expected one of {[k.value for k in cls]}")

    @property
    def is_file_based(self) -> bool:
        return self == DatabaseKind.SQLITE


DB_KIND_ALIASES = {
    "mssql": DatabaseKind.SQLSERVER.value,
    "sql server": DatabaseKind.SQLSERVER.value,
    "postgresql": DatabaseKind.POSTGRES.value,
    "sqlite3": DatabaseKind.SQLITE.value,
}

# Value of an override limit meaning "no per-table cap"
UNLIMITED_ROWS = -1

PARQUET_EXTENSION = "parquet"

# Token returned by sanitize_schema for an empty input
DEFAULT_SANITIZED_NAME = "schema"
# Letter prepended to names that do not start with an ASCII letter
SANITIZE_PREFIX = "s"

# DuckDB's built-in schema, never created explicitly
DEFAULT_CATALOG_SCHEMA = "main"
DEFAULT_SEPARATOR = "."

DEFAULT_EXPORT_DIRECTORY = "./data/extracted/parquets"
DEFAULT_CATALOG_FILE_NAME = "exported.duckdb"
DEFAULT_CONFIG_PATH = "~/.config/database_exporter/config.toml"
DEFAULT_LOG_DIR = "~/.database_exporter/logs"
