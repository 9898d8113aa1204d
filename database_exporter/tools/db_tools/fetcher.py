# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import TYPE_CHECKING, Optional

import pyarrow as pa
from pandas import DataFrame

from database_exporter.tools.db_tools import dialects
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger

if TYPE_CHECKING:
    from database_exporter.tools.db_tools.session import ConnectionSession, QueryRows

logger = get_logger(__name__)


def fetch(session: "ConnectionSession", table: str, limit: Optional[int] = None) -> pa.Table:
    """Read a whole table (or its first ``limit`` rows) into memory as an Arrow table."""
    sql = dialects.row_query(session.kind, table, limit)
    logger.debug(f"Fetching `{table}` from `{session.name}`: {sql}")
    return to_column_batch(session.query(sql), table)


def fetch_query(session: "ConnectionSession", sql: str, limit: Optional[int] = None, name: str = "") -> pa.Table:
    """Run an arbitrary SELECT and return its full result as an Arrow table."""
    sql = dialects.limited_query(session.kind, sql, limit)
    return to_column_batch(session.query(sql), name or sql)


def to_column_batch(result: "QueryRows", table_name: str) -> pa.Table:
    try:
        df = DataFrame(result.rows, columns=result.columns)
        return pa.Table.from_pandas(df, preserve_index=False)
    except (pa.ArrowException, ValueError, TypeError) as e:
        raise ExporterException(
            ErrorCode.EXPORT_CONVERSION_FAILED,
            message_args={"table_name": table_name, "error_message": str(e)},
        ) from e
