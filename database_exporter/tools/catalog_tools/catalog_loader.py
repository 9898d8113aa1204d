# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

import duckdb
from pydantic import BaseModel, Field

from database_exporter.utils.constants import DEFAULT_CATALOG_SCHEMA, DEFAULT_SEPARATOR
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger
from database_exporter.utils.sql_utils import quote_identifier, sanitize_schema, to_sql_literal

logger = get_logger(__name__)


class CatalogLoadResult(BaseModel):
    table_name: str = Field(..., description="Name of the exported table or custom query")
    qualified_name: str = Field(..., description="Name of the table in the catalog")
    file_path: str = Field(..., description="Parquet file the table was loaded from")
    success: bool = Field(default=False)
    error: Optional[str] = Field(default=None)


class CatalogLoader:
    """
    Loads exported Parquet files into one DuckDB file, one schema per configuration.

    Tables are created with CREATE OR REPLACE, so loading the same export again replaces the
    tables in place and the catalog file is never recreated.
    """

    def __init__(self, catalog_path: Union[str, Path], separator: Optional[str] = None):
        self.catalog_path = str(Path(os.path.expanduser(str(catalog_path))))
        self.separator = separator or DEFAULT_SEPARATOR
        self.connection: Optional[duckdb.DuckDBPyConnection] = None

    def connect(self):
        if self.connection:
            return
        try:
            self.connection = duckdb.connect(self.catalog_path)
        except Exception as e:
            raise ExporterException(
                ErrorCode.CATALOG_CONNECTION_FAILED,
                message_args={"file_path": self.catalog_path, "error_message": str(e)},
            ) from e

    def close(self):
        if self.connection:
            try:
                self.connection.close()
            except Exception as e:
                logger.warning(f"Error closing DuckDB catalog: {e}")
            finally:
                self.connection = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def uses_schemas(self) -> bool:
        return self.separator == DEFAULT_SEPARATOR

    def ensure_schema(self, namespace: str) -> str:
        """Create the schema of ``namespace`` if needed and return its sanitized name."""
        schema = sanitize_schema(namespace)
        if schema == DEFAULT_CATALOG_SCHEMA:
            return schema
        self.connect()
        try:
            self.connection.execute(f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(schema)}")
        except duckdb.Error as e:
            raise ExporterException(
                ErrorCode.CATALOG_SCHEMA_FAILED, message_args={"schema": schema, "error_message": str(e)}
            ) from e
        return schema

    def display_name(self, namespace: str, table_name: str) -> str:
        return f"{sanitize_schema(namespace)}{self.separator}{table_name}"

    def qualified_name(self, namespace: str, table_name: str) -> str:
        schema = sanitize_schema(namespace)
        if self.uses_schemas:
            return f"{quote_identifier(schema)}.{quote_identifier(table_name)}"
        return quote_identifier(f"{schema}{self.separator}{table_name}")

    def load_file(self, namespace: str, table_name: str, file_path: Union[str, Path]) -> CatalogLoadResult:
        """Create or replace one catalog table from a Parquet file; a failure is logged and returned."""
        self.connect()
        path = os.path.abspath(str(file_path))
        result = CatalogLoadResult(
            table_name=table_name, qualified_name=self.display_name(namespace, table_name), file_path=path
        )
        sql = (
            f"CREATE OR REPLACE TABLE {self.qualified_name(namespace, table_name)} AS "
            f"SELECT * FROM read_parquet({to_sql_literal(path)})"
        )
        try:
            self.connection.execute(sql)
            result.success = True
            logger.debug(f"Loaded {path} into {result.qualified_name}")
        except duckdb.Error as e:
            error = ExporterException(
                ErrorCode.CATALOG_LOAD_FAILED,
                message_args={"file_path": path, "table_name": result.qualified_name, "error_message": str(e)},
            )
            logger.error(str(error))
            result.error = str(error)
        return result

    def load_files(
        self,
        namespace: str,
        files: Iterable[Tuple[str, Union[str, Path]]],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> List[CatalogLoadResult]:
        """Load ``(table_name, file_path)`` pairs one after another into the schema of ``namespace``."""
        self.connect()
        if self.uses_schemas:
            self.ensure_schema(namespace)
        results = []
        for table_name, file_path in files:
            if should_stop and should_stop():
                logger.warning(f"Catalog consolidation of `{namespace}` stopped before loading {table_name}")
                break
            results.append(self.load_file(namespace, table_name, file_path))
        loaded = sum(1 for r in results if r.success)
        logger.info(f"Loaded {loaded} of {len(results)} files into catalog {self.catalog_path}")
        return results

    def list_tables(self, namespace: Optional[str] = None) -> List[str]:
        """``schema<separator>table`` names present in the catalog, optionally for one namespace."""
        self.connect()
        rows = self.connection.execute(
            "SELECT schema_name, table_name FROM duckdb_tables() "
            "WHERE database_name = current_database() ORDER BY schema_name, table_name"
        ).fetchall()
        names = [f"{schema}.{table}" for schema, table in rows]
        if namespace is None:
            return names
        schema = sanitize_schema(namespace)
        if self.uses_schemas:
            return [n for n in names if n.startswith(f"{schema}.")]
        prefix = f"{DEFAULT_CATALOG_SCHEMA}.{schema}{self.separator}"
        return [n for n in names if n.startswith(prefix)]
