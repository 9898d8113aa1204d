# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
from typing import TYPE_CHECKING, Any, List, NamedTuple, Optional, Tuple, Union

import pyarrow as pa
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import (
    DatabaseError,
    DataError,
    IntegrityError,
    InterfaceError,
    InternalError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    TimeoutError,
)

from database_exporter.tools.db_tools.dialects import apply_statement_timeout, connect_args
from database_exporter.utils.constants import DatabaseKind
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger

if TYPE_CHECKING:
    from database_exporter.configuration.export_config import ExportDatabaseConfig

logger = get_logger(__name__)

CONNECTION_ERROR_KEYWORDS = ["connection refused", "connection failed", "could not connect", "unable to open database"]


class QueryRows(NamedTuple):
    """Column names and rows of one materialized result."""

    columns: List[str]
    rows: List[Tuple[Any, ...]]


class ConnectionSession:
    """
    One source database: a SQLAlchemy engine plus the dialect it speaks.

    The initial handshake runs in the constructor, so a session object always holds a working
    connection. Each query checks out its own logical connection from the engine pool, which lets
    the export tasks of one database run on separate connections.
    """

    def __init__(
        self,
        kind: DatabaseKind,
        url: Union[str, URL],
        timeout_seconds: int = 30,
        pool_size: int = 5,
        name: str = "",
    ):
        self.kind = kind
        self.name = name or kind.value
        self.timeout_seconds = timeout_seconds
        self.url = url
        self.engine: Optional[Engine] = None
        self.connect(pool_size)

    @classmethod
    def from_config(cls, name: str, config: "ExportDatabaseConfig", pool_size: int = 5) -> "ConnectionSession":
        return cls(
            kind=config.kind,
            url=config.connection_url(),
            timeout_seconds=config.timeout_seconds,
            pool_size=pool_size,
            name=name,
        )

    def connect(self, pool_size: int = 5):
        """Create the engine and verify it with a trivial query."""
        if self.engine:
            return
        if self.kind == DatabaseKind.SQLITE:
            db_path = make_url(self.url).database or ""
            # sqlite would silently create an empty database for a mistyped path
            if db_path != ":memory:" and not os.path.isfile(db_path):
                raise ExporterException(
                    ErrorCode.DB_CONNECTION_FAILED,
                    message_args={"error_message": f"SQLite database file not found: {db_path}"},
                )
        try:
            if self.kind == DatabaseKind.SQLITE:
                self.engine = create_engine(self.url, connect_args=connect_args(self.kind, self.timeout_seconds))
            else:
                self.engine = create_engine(
                    self.url,
                    connect_args=connect_args(self.kind, self.timeout_seconds),
                    pool_size=max(pool_size, 1),
                    max_overflow=5,
                    pool_timeout=self.timeout_seconds,
                    pool_recycle=3600,
                    pool_pre_ping=True,
                )
            event.listen(self.engine, "connect", self._on_connect)
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as e:
            self.close()
            raise self._trans_sqlalchemy_exception(e, sql="SELECT 1", operation="CONNECTION_INITIALIZATION") from e
        logger.info(f"Connected to {self.kind.value} database `{self.name}`")

    def _on_connect(self, dbapi_connection, connection_record):
        apply_statement_timeout(self.kind, dbapi_connection, self.timeout_seconds)

    def close(self):
        if self.engine:
            try:
                self.engine.dispose()
            except Exception as e:
                logger.warning(f"Error disposing engine of `{self.name}`: {e}")
            finally:
                self.engine = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def query(self, sql: str) -> QueryRows:
        """Run one statement and materialize every row it returns."""
        if not self.engine:
            raise ExporterException(
                ErrorCode.DB_CONNECTION_FAILED, message_args={"error_message": f"Session `{self.name}` is closed"}
            )
        try:
            with self.engine.connect() as connection:
                result = connection.execute(text(sql))
                if not result.returns_rows:
                    return QueryRows(columns=[], rows=[])
                return QueryRows(columns=list(result.keys()), rows=[tuple(row) for row in result.fetchall()])
        except ExporterException:
            raise
        except Exception as e:
            raise self._trans_sqlalchemy_exception(e, sql, "query execution") from e

    # Primitive remote operations, see discovery.py and fetcher.py

    def list_tables(self) -> List[str]:
        from database_exporter.tools.db_tools.discovery import list_tables

        return list_tables(self)

    def fetch_table(self, table: str, limit: Optional[int] = None) -> pa.Table:
        from database_exporter.tools.db_tools.fetcher import fetch

        return fetch(self, table, limit)

    def fetch_query(self, sql: str, limit: Optional[int] = None, name: str = "") -> pa.Table:
        from database_exporter.tools.db_tools.fetcher import fetch_query

        return fetch_query(self, sql, limit, name=name)

    def _trans_sqlalchemy_exception(
        self, e: Exception, sql: str = None, operation: str = "SQL execution"
    ) -> ExporterException:
        """Map SQLAlchemy exceptions to specific ErrorCode values."""
        if isinstance(e, ExporterException):
            return e
        # Use .orig attribute to get original database error without SQLAlchemy's background links
        if getattr(e, "orig", None) is not None:
            error_message = str(e.orig)
        else:
            error_message = str(e)
        message_args = {"error_message": error_message, "sql": sql}

        error_msg_lower = error_message.lower()
        if any(keyword in error_msg_lower for keyword in ["syntax", "parse error"]):
            return ExporterException(ErrorCode.DB_EXECUTION_SYNTAX_ERROR, message_args=message_args)

        if isinstance(e, (OperationalError, InterfaceError)):
            if any(keyword in error_msg_lower for keyword in ["timeout", "timed out"]):
                return ExporterException(ErrorCode.DB_CONNECTION_TIMEOUT, message_args=message_args)
            if any(keyword in error_msg_lower for keyword in ["authentication", "access denied", "login failed"]):
                return ExporterException(ErrorCode.DB_AUTHENTICATION_FAILED, message_args=message_args)
            if any(keyword in error_msg_lower for keyword in ["permission denied", "insufficient privilege"]):
                message_args["operation"] = operation
                return ExporterException(ErrorCode.DB_PERMISSION_DENIED, message_args=message_args)
            if operation == "CONNECTION_INITIALIZATION" or any(
                keyword in error_msg_lower for keyword in CONNECTION_ERROR_KEYWORDS
            ):
                return ExporterException(ErrorCode.DB_CONNECTION_FAILED, message_args=message_args)
            return ExporterException(ErrorCode.DB_EXECUTION_ERROR, message_args=message_args)

        if isinstance(e, TimeoutError):
            return ExporterException(ErrorCode.DB_EXECUTION_TIMEOUT, message_args=message_args)

        if isinstance(
            e, (ProgrammingError, IntegrityError, DatabaseError, DataError, InternalError, NotSupportedError)
        ):
            return ExporterException(ErrorCode.DB_EXECUTION_ERROR, message_args=message_args)

        if operation == "CONNECTION_INITIALIZATION":
            # bad URLs and missing drivers surface as ArgumentError / ImportError
            return ExporterException(ErrorCode.DB_CONNECTION_FAILED, message_args=message_args)
        return ExporterException(ErrorCode.DB_EXECUTION_ERROR, message_args=message_args)
