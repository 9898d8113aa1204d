"""
End-to-end exports of a real SQLite database into Parquet files and a DuckDB catalog.
"""

from pathlib import Path

import pyarrow.parquet as pq
import pytest

from database_exporter.configuration.export_config import ExportDatabaseConfig, ExportOptions
from database_exporter.tools.catalog_tools.catalog_loader import CatalogLoader
from database_exporter.tools.export_tools.orchestrator import ExportOrchestrator, export_databases
from database_exporter.utils.exceptions import ErrorCode


@pytest.fixture
def sqlite_config(sqlite_source: Path) -> ExportDatabaseConfig:
    return ExportDatabaseConfig(
        database_type="sqlite",
        database=str(sqlite_source),
        override_limits={"orders": 5, "audit": -1},
        custom_queries=[
            {
                "name": "00_active_users",
                "description": "Users with the active flag",
                "query": "SELECT id FROM users WHERE active",
            }
        ],
    )


def test_export_sqlite(sqlite_config: ExportDatabaseConfig, tmp_path: Path):
    export_directory = tmp_path / "export"
    options = ExportOptions(export_directory=str(export_directory), row_limit=8, max_workers=3)

    report = ExportOrchestrator("Local App", sqlite_config, options).run()

    assert not report.aborted
    assert report.namespace == "local_app"
    assert report.failed == []
    assert {r.name: (r.row_limit, r.row_count) for r in report.tables} == {
        "users": (8, 8),
        "orders": (5, 5),
        "audit": (8, 3),
    }
    assert [(r.name, r.row_count) for r in report.custom_queries] == [("00_active_users", 6)]

    namespace_directory = export_directory / "local_app"
    assert sorted(p.name for p in namespace_directory.iterdir()) == [
        "00_active_users.parquet",
        "audit.parquet",
        "orders.parquet",
        "users.parquet",
    ]
    assert pq.read_table(namespace_directory / "orders.parquet").num_rows == 5

    with CatalogLoader(export_directory / "exported.duckdb") as loader:
        assert loader.list_tables("local_app") == [
            "local_app.00_active_users",
            "local_app.audit",
            "local_app.orders",
            "local_app.users",
        ]
        count = loader.connection.execute('SELECT COUNT(*) FROM "local_app"."00_active_users"').fetchone()[0]
        assert count == 6


def test_failing_table_is_absent_and_reported(broken_sqlite_source: Path, tmp_path: Path):
    config = ExportDatabaseConfig(database_type="sqlite", database=str(broken_sqlite_source))
    export_directory = tmp_path / "export"
    options = ExportOptions(export_directory=str(export_directory), max_workers=4)

    report = ExportOrchestrator("local", config, options).run()

    assert not report.aborted
    assert [r.name for r in report.failed] == ["mixed"]
    assert report.failed[0].error_code == ErrorCode.EXPORT_CONVERSION_FAILED.code
    assert [r.name for r in report.succeeded] == ["users", "orders", "audit"]
    assert not (export_directory / "local" / "mixed.parquet").exists()
    with CatalogLoader(export_directory / "exported.duckdb") as loader:
        tables = loader.list_tables("local")
    assert "local.mixed" not in tables
    assert len(tables) == 3


def test_rerun_is_reproducible(sqlite_config: ExportDatabaseConfig, tmp_path: Path):
    export_directory = tmp_path / "export"
    options = ExportOptions(export_directory=str(export_directory), max_workers=2)

    ExportOrchestrator("local", sqlite_config, options).run()
    first = (export_directory / "local" / "users.parquet").read_bytes()
    ExportOrchestrator("local", sqlite_config, options).run()
    second = (export_directory / "local" / "users.parquet").read_bytes()

    assert first == second
    with CatalogLoader(export_directory / "exported.duckdb") as loader:
        assert len(loader.list_tables("local")) == 4


def test_custom_separator(sqlite_config: ExportDatabaseConfig, tmp_path: Path):
    export_directory = tmp_path / "export"
    options = ExportOptions(export_directory=str(export_directory), separator="__", catalog_file_name="flat.duckdb")

    report = ExportOrchestrator("local", sqlite_config, options).run()

    assert all(load.success for load in report.catalog_loads)
    with CatalogLoader(export_directory / "flat.duckdb", separator="__") as loader:
        assert loader.list_tables() == [
            "main.local__00_active_users",
            "main.local__audit",
            "main.local__orders",
            "main.local__users",
        ]


def test_missing_sqlite_file_fails_only_that_database(sqlite_config: ExportDatabaseConfig, tmp_path: Path):
    missing = ExportDatabaseConfig(database_type="sqlite", database=str(tmp_path / "missing.db"))
    options = ExportOptions(export_directory=str(tmp_path / "export"))

    run_report = export_databases({"missing": missing, "local": sqlite_config}, options)

    assert run_report.failed_databases == ["missing"]
    assert ErrorCode.DB_CONNECTION_FAILED.code in run_report.databases["missing"].error
    assert not run_report.databases["local"].aborted
    assert not (tmp_path / "missing.db").exists()
