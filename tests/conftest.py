import os
import sqlite3
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pyarrow as pa
import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from database_exporter.configuration.export_config import ExportDatabaseConfig, ExportOptions  # noqa: E402
from database_exporter.tools.db_tools import dialects  # noqa: E402
from database_exporter.utils.constants import DatabaseKind  # noqa: E402
from database_exporter.utils.exceptions import ErrorCode, ExporterException  # noqa: E402

PROJECT_ROOT = Path(__file__).parent.parent


def pytest_configure(config):
    config.addinivalue_line("markers", "acceptance: needs a live database server")


@pytest.fixture
def sqlite_source(tmp_path: Path) -> Path:
    """A small SQLite database: users (10 rows, 6 active), orders (20 rows) and audit (3 rows)."""
    db_path = tmp_path / "source.db"
    connection = sqlite3.connect(db_path)
    try:
        connection.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, active INTEGER)")
        connection.executemany(
            "INSERT INTO users (id, name, active) VALUES (?, ?, ?)",
            [(i, f"user_{i}", 1 if i <= 6 else 0) for i in range(1, 11)],
        )
        connection.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER, amount REAL)")
        connection.executemany(
            "INSERT INTO orders (id, user_id, amount) VALUES (?, ?, ?)",
            [(i, i % 10 + 1, i * 1.5) for i in range(1, 21)],
        )
        connection.execute("CREATE TABLE audit (id INTEGER PRIMARY KEY, action TEXT)")
        connection.executemany(
            "INSERT INTO audit (id, action) VALUES (?, ?)", [(1, "login"), (2, "logout"), (3, "login")]
        )
        connection.commit()
    finally:
        connection.close()
    return db_path


@pytest.fixture
def broken_sqlite_source(sqlite_source: Path) -> Path:
    """Adds a table whose untyped column mixes integers and text, which has no single columnar type."""
    connection = sqlite3.connect(sqlite_source)
    try:
        connection.execute("CREATE TABLE mixed (id INTEGER PRIMARY KEY, payload)")
        connection.executemany("INSERT INTO mixed (id, payload) VALUES (?, ?)", [(1, 1), (2, "abc")])
        connection.commit()
    finally:
        connection.close()
    return sqlite_source


@pytest.fixture
def export_options(tmp_path: Path) -> ExportOptions:
    return ExportOptions(export_directory=str(tmp_path / "export"), max_workers=4)


@pytest.fixture
def postgres_config() -> ExportDatabaseConfig:
    return ExportDatabaseConfig(
        database_type="postgres",
        username="reader",
        password="secret",
        database="app",
        host="localhost",
        port=5432,
    )


class FakeSession:
    """
    Stands in for ConnectionSession: serves canned tables and records the SQL it would have run.
    """

    def __init__(
        self,
        kind: DatabaseKind,
        tables: Dict[str, int],
        failing: Optional[List[str]] = None,
        name: str = "fake",
    ):
        self.kind = kind
        self.name = name
        self.tables = tables
        self.failing = failing or []
        self.statements: List[str] = []
        self.limits: Dict[str, Optional[int]] = {}
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        self.closed = True

    def list_tables(self) -> List[str]:
        self.statements.append(dialects.table_discovery_query(self.kind).query)
        return list(self.tables)

    def fetch_table(self, table: str, limit: Optional[int] = None) -> pa.Table:
        sql = dialects.row_query(self.kind, table, limit)
        self.statements.append(sql)
        self.limits[table] = limit
        if table in self.failing:
            raise ExporterException(
                ErrorCode.DB_EXECUTION_ERROR, message_args={"sql": sql, "error_message": "unsupported column type"}
            )
        row_count = self.tables[table] if limit is None else min(limit, self.tables[table])
        return pa.table({"id": list(range(row_count))})

    def fetch_query(self, sql: str, limit: Optional[int] = None, name: str = "") -> pa.Table:
        self.statements.append(dialects.limited_query(self.kind, sql, limit))
        self.limits[name] = limit
        return pa.table({"id": [1, 2, 3]})


@pytest.fixture
def fake_session_factory():
    """Returns ``(factory, sessions)``; every session the factory builds is appended to ``sessions``."""

    def build(kind: DatabaseKind, tables: Dict[str, int], failing: Optional[List[str]] = None):
        sessions = []

        def factory(name, config, pool_size=1):
            session = FakeSession(kind, tables, failing=failing, name=name)
            sessions.append(session)
            return session

        return factory, sessions

    return build
