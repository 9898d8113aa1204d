# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .discovery import list_tables
from .fetcher import fetch, fetch_query
from .session import ConnectionSession, QueryRows

__all__ = [
    "ConnectionSession",
    "QueryRows",
    "list_tables",
    "fetch",
    "fetch_query",
]
