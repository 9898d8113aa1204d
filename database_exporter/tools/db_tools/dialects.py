# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""
SQL dialect differences between the supported source databases.

Every function dispatches on the closed set of ``DatabaseKind`` values; adding a kind means
adding a branch to each of them.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sqlalchemy.engine import URL

from database_exporter.utils.constants import DatabaseKind
from database_exporter.utils.sql_utils import quote_identifier, strip_trailing_semicolon

SQLSERVER_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

# TLS is disabled and the server certificate trusted, the exporter is meant for internal networks
SQLSERVER_CONNECTION_FLAGS: Dict[str, str] = {
    "driver": SQLSERVER_ODBC_DRIVER,
    "Encrypt": "no",
    "Trusted_Connection": "no",
    "TrustServerCertificate": "yes",
}

DISCOVERY_COLUMN = "table_name"


@dataclass(frozen=True)
class TableDiscoveryQuery:
    """A metadata query returning one text column with the names of the base tables."""

    query: str
    column_name: str = DISCOVERY_COLUMN


def connection_url(
    kind: DatabaseKind,
    username: str = "",
    password: str = "",
    host: str = "",
    port: Union[str, int, None] = "",
    database: str = "",
) -> URL:
    match kind:
        case DatabaseKind.SQLSERVER:
            return URL.create(
                drivername="mssql+pyodbc",
                username=username,
                password=password,
                host=host,
                port=_port_or_none(port),
                database=database,
                query=SQLSERVER_CONNECTION_FLAGS,
            )
        case DatabaseKind.POSTGRES:
            return URL.create(
                drivername="postgresql+psycopg",
                username=username,
                password=password,
                host=host,
                port=_port_or_none(port),
                database=database,
            )
        case DatabaseKind.MYSQL:
            return URL.create(
                drivername="mysql+pymysql",
                username=username,
                password=password,
                host=host,
                port=_port_or_none(port),
                database=database,
            )
        case DatabaseKind.SQLITE:
            # the database field holds the path of the file
            return URL.create(drivername="sqlite", database=os.path.expanduser(database))


def connection_string(kind: DatabaseKind, **fields) -> str:
    """Connection URI with the password rendered, as handed to the driver."""
    return connection_url(kind, **fields).render_as_string(hide_password=False)


def table_discovery_query(kind: DatabaseKind) -> TableDiscoveryQuery:
    match kind:
        case DatabaseKind.SQLSERVER:
            return TableDiscoveryQuery(
                query="""
                    SELECT TABLE_NAME AS table_name
                    FROM INFORMATION_SCHEMA.TABLES
                    WHERE TABLE_TYPE = 'BASE TABLE'
                        AND TABLE_SCHEMA NOT IN ('scratch', 'sys', 'INFORMATION_SCHEMA')"""
            )
        case DatabaseKind.POSTGRES:
            return TableDiscoveryQuery(
                query="""
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public' AND table_type = 'BASE TABLE'"""
            )
        case DatabaseKind.MYSQL:
            return TableDiscoveryQuery(
                query="""
                    SELECT TABLE_NAME AS table_name
                    FROM INFORMATION_SCHEMA.TABLES
                    WHERE TABLE_SCHEMA = DATABASE()
                        AND TABLE_TYPE = 'BASE TABLE'"""
            )
        case DatabaseKind.SQLITE:
            return TableDiscoveryQuery(
                query="""
                    SELECT name AS table_name
                    FROM sqlite_master
                    WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"""
            )


def quote_table(kind: DatabaseKind, table: str) -> str:
    match kind:
        case DatabaseKind.SQLSERVER:
            return quote_identifier(table, "[", "]")
        case DatabaseKind.MYSQL:
            return quote_identifier(table, "`", "`")
        case DatabaseKind.POSTGRES | DatabaseKind.SQLITE:
            return quote_identifier(table)


def row_query(kind: DatabaseKind, table: str, limit: Optional[int] = None) -> str:
    """SELECT every column of ``table``, capped at ``limit`` rows when one is given."""
    return _limited_select(kind, quote_table(kind, table), limit)


def limited_query(kind: DatabaseKind, sql: str, limit: Optional[int] = None) -> str:
    """Cap an arbitrary SELECT statement, leaving it untouched when there is no limit."""
    if limit is None:
        return sql
    # own lines, so a trailing -- comment cannot swallow the closing parenthesis
    return _limited_select(kind, f"(\n{strip_trailing_semicolon(sql)}\n) AS limited_query", limit)


def _limited_select(kind: DatabaseKind, source: str, limit: Optional[int]) -> str:
    if limit is None:
        return f"SELECT * FROM {source}"
    match kind:
        case DatabaseKind.SQLSERVER:
            return f"SELECT TOP {int(limit)} * FROM {source}"
        case DatabaseKind.POSTGRES | DatabaseKind.MYSQL | DatabaseKind.SQLITE:
            return f"SELECT * FROM {source} LIMIT {int(limit)}"


def connect_args(kind: DatabaseKind, timeout_seconds: int) -> Dict[str, Any]:
    """Driver arguments bounding both the connection attempt and every statement by ``timeout_seconds``."""
    match kind:
        case DatabaseKind.SQLSERVER:
            # login timeout only, the query timeout is a connection attribute (see apply_statement_timeout)
            return {"timeout": timeout_seconds}
        case DatabaseKind.POSTGRES:
            return {"connect_timeout": timeout_seconds, "options": f"-c statement_timeout={timeout_seconds * 1000}"}
        case DatabaseKind.MYSQL:
            return {"connect_timeout": timeout_seconds, "read_timeout": timeout_seconds}
        case DatabaseKind.SQLITE:
            # busy timeout; export tasks share the pooled connections across worker threads
            return {"timeout": timeout_seconds, "check_same_thread": False}


def apply_statement_timeout(kind: DatabaseKind, dbapi_connection: Any, timeout_seconds: int):
    """Set the per-statement timeout on a new DBAPI connection when the driver takes it there."""
    match kind:
        case DatabaseKind.SQLSERVER:
            dbapi_connection.timeout = timeout_seconds
        case DatabaseKind.POSTGRES | DatabaseKind.MYSQL | DatabaseKind.SQLITE:
            pass


def _port_or_none(port: Union[str, int, None]) -> Optional[int]:
    if port is None or str(port).strip() == "":
        return None
    return int(str(port).strip())
