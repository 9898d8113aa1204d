# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.engine import URL

from database_exporter.tools.db_tools.dialects import connection_url
from database_exporter.utils.constants import (
    DEFAULT_CATALOG_FILE_NAME,
    DEFAULT_EXPORT_DIRECTORY,
    DEFAULT_SEPARATOR,
    UNLIMITED_ROWS,
    DatabaseKind,
)

NETWORK_FIELDS = ("username", "password", "database", "host", "port")
CREDENTIAL_FIELDS = ("username", "password", "host", "port")

# Names become file names and catalog tables, so they are kept to a portable character set
CUSTOM_QUERY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")


class CustomQuery(BaseModel):
    """A named SELECT statement exported next to the discovered tables."""

    name: str = Field(..., description="Name of the exported file and catalog table")
    description: str = Field(default="", description="Free text, for operators only")
    query: str = Field(..., description="SELECT statement in the source dialect")

    @field_validator("name")
    def validate_name(cls, v):
        if not CUSTOM_QUERY_NAME_PATTERN.match(v or ""):
            raise ValueError(
                f"custom query name `{v}` must start with a letter or digit and contain only letters, "
                "digits, '_' or '-'"
            )
        return v

    @field_validator("query")
    def validate_query(cls, v):
        if not v.strip():
            raise ValueError("'query' must not be empty")
        return v

    class Config:
        extra = "forbid"


class ExportDatabaseConfig(BaseModel):
    """One configuration entry: a source database and what to export from it."""

    database_type: DatabaseKind = Field(..., description="sqlserver, postgres, mysql or sqlite")
    username: str = Field(default="")
    password: str = Field(default="")
    database: str = Field(default="", description="Database name, or the file path for SQLite")
    host: str = Field(default="")
    port: str = Field(default="")
    override_limits: Dict[str, int] = Field(
        default_factory=dict, description="Per-table row caps, -1 leaves the table without its own cap"
    )
    custom_queries: List[CustomQuery] = Field(default_factory=list)
    timeout_seconds: int = Field(default=30, description="Connection and statement timeout in seconds")

    class Config:
        extra = "forbid"  # Reject unknown fields to catch typos

    @field_validator("database_type", mode="before")
    def parse_database_type(cls, v):
        if isinstance(v, DatabaseKind):
            return v
        return DatabaseKind.from_str(str(v))

    @field_validator("port", mode="before")
    def stringify_port(cls, v):
        if v is None:
            return ""
        if isinstance(v, bool):
            raise ValueError("'port' must be a number or a string")
        return str(v)

    @field_validator("override_limits", mode="before")
    def validate_override_limits(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("'override_limits' must be a mapping of table name to row limit")
        for table, limit in v.items():
            if limit is None or isinstance(limit, bool) or not isinstance(limit, int) or limit < UNLIMITED_ROWS:
                raise ValueError(
                    f"override limit of `{table}` must be an integer >= 0, or {UNLIMITED_ROWS} for no cap, "
                    f"got {limit!r}"
                )
        return v

    @field_validator("timeout_seconds")
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("'timeout_seconds' must be a positive integer")
        return v

    @model_validator(mode="after")
    def validate_required_fields(self):
        if self.database_type.is_file_based:
            if not self.database.strip():
                raise ValueError("sqlite requires 'database' to be the path of the database file")
            present = [f for f in CREDENTIAL_FIELDS if getattr(self, f).strip()]
            if present:
                raise ValueError(f"sqlite does not accept {', '.join(present)}")
        else:
            missing = [f for f in NETWORK_FIELDS if not getattr(self, f).strip()]
            if missing:
                raise ValueError(f"{self.database_type.value} requires non-empty {', '.join(missing)}")
            if not self.port.strip().isdigit():
                raise ValueError(f"'port' must be numeric, got `{self.port}`")
        names = [q.name for q in self.custom_queries]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ValueError(f"custom query names must be unique, duplicated: {', '.join(duplicated)}")
        return self

    @property
    def kind(self) -> DatabaseKind:
        return self.database_type

    def connection_url(self) -> URL:
        return connection_url(
            self.kind,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class ExportOptions(BaseModel):
    """Run-level settings, normally taken from the command line."""

    export_directory: str = Field(default=DEFAULT_EXPORT_DIRECTORY)
    include_catalog: bool = Field(default=True, description="Consolidate the exported files into a DuckDB file")
    catalog_file_name: str = Field(default=DEFAULT_CATALOG_FILE_NAME)
    separator: Optional[str] = Field(
        default=None, description="Between schema and table in catalog names, '.' when not set"
    )
    row_limit: Optional[int] = Field(default=None, description="Row cap of tables without an override")
    delay_seconds: Optional[int] = Field(default=None, description="Re-run the export after this many seconds")
    max_workers: Optional[int] = Field(default=None, description="Parallel table exports, CPU count when not set")
    timeout_seconds: Optional[int] = Field(default=None, description="Deadline for the export of one database")

    class Config:
        extra = "forbid"

    @field_validator("row_limit", "delay_seconds")
    def validate_non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("must be a non-negative integer")
        return v

    @field_validator("max_workers", "timeout_seconds")
    def validate_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("catalog_file_name")
    def validate_catalog_file_name(cls, v):
        if not v.strip():
            raise ValueError("'catalog_file_name' must not be empty")
        return v

    @property
    def catalog_separator(self) -> str:
        return self.separator if self.separator else DEFAULT_SEPARATOR

    @property
    def worker_count(self) -> int:
        return self.max_workers or os.cpu_count() or 1

    @property
    def catalog_path(self) -> str:
        return os.path.join(self.export_directory, self.catalog_file_name)
