# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

import os
from pathlib import Path
from typing import Union

from database_exporter.utils.exceptions import ErrorCode, ExporterException
from database_exporter.utils.sql_utils import sanitize_schema


def namespace_directory(export_directory: Union[str, Path], namespace: str) -> Path:
    """``<export_directory>/<sanitized namespace>``"""
    return Path(os.path.expanduser(str(export_directory))) / sanitize_schema(namespace)


def ensure_directory(path: Union[str, Path]) -> Path:
    path = Path(os.path.expanduser(str(path)))
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExporterException(
            ErrorCode.COMMON_CONFIG_ERROR, message_args={"config_error": f"Unable to create directory {path}: {e}"}
        ) from e
    return path
