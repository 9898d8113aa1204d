# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from typing import TYPE_CHECKING, List

from database_exporter.tools.db_tools import dialects
from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger

if TYPE_CHECKING:
    from database_exporter.tools.db_tools.session import ConnectionSession

logger = get_logger(__name__)


def list_tables(session: "ConnectionSession") -> List[str]:
    """
    Names of the base tables of the session's database, in the order the database returns them.

    Rows whose name is missing or not text are reported and skipped; only a failure of the
    metadata query itself (or a result without the expected column) raises.
    """
    discovery = dialects.table_discovery_query(session.kind)
    try:
        result = session.query(discovery.query)
    except ExporterException as e:
        raise ExporterException(ErrorCode.DISCOVERY_FAILED, message_args={"error_message": str(e)}) from e

    lowered = [column.lower() for column in result.columns]
    if discovery.column_name.lower() not in lowered:
        raise ExporterException(
            ErrorCode.DISCOVERY_FAILED,
            message_args={
                "error_message": f"Column `{discovery.column_name}` not found in discovery result {result.columns}"
            },
        )
    index = lowered.index(discovery.column_name.lower())

    tables = []
    for position, row in enumerate(result.rows):
        value = row[index]
        if isinstance(value, bytes):
            try:
                value = value.decode("utf-8")
            except UnicodeDecodeError:
                pass
        if not isinstance(value, str) or not value:
            logger.warning(
                f"Skipping table name {value!r} at row {position} of `{session.name}`, "
                "it is not a non-empty string"
            )
            continue
        tables.append(value)

    logger.info(f"Discovered {len(tables)} tables in `{session.name}`")
    return tables
