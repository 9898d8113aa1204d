# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, Union

from database_exporter.utils.constants import PARQUET_EXTENSION
from database_exporter.utils.path_utils import namespace_directory


def build_output_filepath(name: str, export_directory: Union[str, Path], namespace: str) -> Path:
    """``<export_directory>/<sanitized namespace>/<name>.parquet``"""
    return namespace_directory(export_directory, namespace) / f"{name}.{PARQUET_EXTENSION}"


@dataclass(frozen=True)
class TableDescriptor:
    """What to export and where: a discovered table, or a custom query under its name."""

    table_name: str
    file_path: Path
    kind: Literal["table", "query"] = "table"
    query: Optional[str] = None

    @classmethod
    def for_table(cls, table_name: str, export_directory: Union[str, Path], namespace: str) -> "TableDescriptor":
        return cls(table_name=table_name, file_path=build_output_filepath(table_name, export_directory, namespace))

    @classmethod
    def for_query(
        cls, name: str, query: str, export_directory: Union[str, Path], namespace: str
    ) -> "TableDescriptor":
        return cls(
            table_name=name,
            file_path=build_output_filepath(name, export_directory, namespace),
            kind="query",
            query=query,
        )
