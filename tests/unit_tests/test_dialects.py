import os
from types import SimpleNamespace

import pytest

from database_exporter.tools.db_tools import dialects
from database_exporter.utils.constants import DatabaseKind


@pytest.mark.parametrize(
    "kind,limit,expected",
    [
        (DatabaseKind.SQLSERVER, 5, "SELECT TOP 5 * FROM [users]"),
        (DatabaseKind.POSTGRES, 5, 'SELECT * FROM "users" LIMIT 5'),
        (DatabaseKind.MYSQL, 5, "SELECT * FROM `users` LIMIT 5"),
        (DatabaseKind.SQLITE, 5, 'SELECT * FROM "users" LIMIT 5'),
        (DatabaseKind.SQLSERVER, None, "SELECT * FROM [users]"),
        (DatabaseKind.POSTGRES, None, 'SELECT * FROM "users"'),
        (DatabaseKind.MYSQL, None, "SELECT * FROM `users`"),
        (DatabaseKind.SQLITE, 0, 'SELECT * FROM "users" LIMIT 0'),
    ],
)
def test_row_query(kind, limit, expected):
    assert dialects.row_query(kind, "users", limit) == expected


def test_row_query_quotes_awkward_names():
    assert dialects.row_query(DatabaseKind.SQLSERVER, "Order Details", 1) == "SELECT TOP 1 * FROM [Order Details]"
    assert dialects.row_query(DatabaseKind.POSTGRES, "select") == 'SELECT * FROM "select"'


def test_limited_query():
    sql = "SELECT id FROM users WHERE active;"
    assert dialects.limited_query(DatabaseKind.POSTGRES, sql, None) == sql
    assert (
        dialects.limited_query(DatabaseKind.POSTGRES, sql, 10)
        == "SELECT * FROM (\nSELECT id FROM users WHERE active\n) AS limited_query LIMIT 10"
    )
    assert (
        dialects.limited_query(DatabaseKind.SQLSERVER, sql, 10)
        == "SELECT TOP 10 * FROM (\nSELECT id FROM users WHERE active\n) AS limited_query"
    )


@pytest.mark.parametrize("kind", list(DatabaseKind))
def test_every_kind_has_a_discovery_query(kind):
    discovery = dialects.table_discovery_query(kind)
    assert discovery.column_name == "table_name"
    assert "table_name" in discovery.query.lower()


def test_discovery_query_filters():
    assert "'scratch'" in dialects.table_discovery_query(DatabaseKind.SQLSERVER).query
    assert "'public'" in dialects.table_discovery_query(DatabaseKind.POSTGRES).query
    assert "DATABASE()" in dialects.table_discovery_query(DatabaseKind.MYSQL).query
    assert "sqlite_%" in dialects.table_discovery_query(DatabaseKind.SQLITE).query


def test_sqlserver_connection_url():
    url = dialects.connection_url(
        DatabaseKind.SQLSERVER, username="sa", password="pw", host="db.local", port="1433", database="sales"
    )
    assert url.drivername == "mssql+pyodbc"
    assert url.port == 1433
    assert url.database == "sales"
    assert url.query["driver"] == "ODBC Driver 18 for SQL Server"
    assert url.query["Encrypt"] == "no"
    assert url.query["TrustServerCertificate"] == "yes"
    assert url.query["Trusted_Connection"] == "no"


def test_network_connection_urls():
    fields = dict(username="reader", password="p@ss:word", host="localhost", port=5432, database="app")
    postgres = dialects.connection_url(DatabaseKind.POSTGRES, **fields)
    assert postgres.drivername == "postgresql+psycopg"
    assert postgres.password == "p@ss:word"

    mysql = dialects.connection_url(DatabaseKind.MYSQL, **{**fields, "port": "3306"})
    assert mysql.drivername == "mysql+pymysql"
    assert mysql.port == 3306

    rendered = dialects.connection_string(DatabaseKind.POSTGRES, **fields)
    assert rendered.startswith("postgresql+psycopg://reader:")
    assert "p%40ss%3Aword" in rendered
    assert rendered.endswith("@localhost:5432/app")


def test_sqlite_connection_url_expands_home():
    url = dialects.connection_url(DatabaseKind.SQLITE, database="~/data/local.db")
    assert url.drivername == "sqlite"
    assert url.database == os.path.expanduser("~/data/local.db")
    assert url.host is None


@pytest.mark.parametrize(
    "kind,expected",
    [
        (DatabaseKind.SQLSERVER, {"timeout": 45}),
        (DatabaseKind.POSTGRES, {"connect_timeout": 45, "options": "-c statement_timeout=45000"}),
        (DatabaseKind.MYSQL, {"connect_timeout": 45, "read_timeout": 45}),
        (DatabaseKind.SQLITE, {"timeout": 45, "check_same_thread": False}),
    ],
)
def test_connect_args(kind, expected):
    assert dialects.connect_args(kind, 45) == expected


def test_statement_timeout_on_sqlserver_connection():
    connection = SimpleNamespace(timeout=0)
    dialects.apply_statement_timeout(DatabaseKind.SQLSERVER, connection, 45)
    assert connection.timeout == 45

    connection = SimpleNamespace(timeout=0)
    dialects.apply_statement_timeout(DatabaseKind.POSTGRES, connection, 45)
    assert connection.timeout == 0
