# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pyarrow as pa
import pyarrow.parquet as pq

from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.loggings import get_logger

logger = get_logger(__name__)


def write_parquet(
    table: pa.Table,
    file_path: Union[str, Path],
    table_name: str = "",
    parquet_kwargs: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Write an Arrow table to a Parquet file.

    The data goes to a sibling temporary file first and is renamed over ``file_path`` once
    complete, so a failed write never leaves a truncated file behind.
    """
    file_path = Path(file_path)
    tmp_path = file_path.with_name(file_path.name + ".tmp")
    try:
        pq.write_table(table, str(tmp_path), **(parquet_kwargs or {}))
        os.replace(tmp_path, file_path)
    except (OSError, pa.ArrowException) as e:
        remove_file(tmp_path)
        raise ExporterException(
            ErrorCode.EXPORT_WRITE_FAILED,
            message_args={
                "table_name": table_name or file_path.stem,
                "file_path": str(file_path),
                "error_message": str(e),
            },
        ) from e
    logger.info(f"Export successful for: {file_path} ({table.num_rows} rows)")
    return file_path


def remove_file(file_path: Union[str, Path]):
    try:
        os.remove(file_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Unable to remove {file_path}: {e}")
