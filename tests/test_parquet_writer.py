from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from database_exporter.tools.export_tools.descriptors import TableDescriptor, build_output_filepath
from database_exporter.tools.export_tools.parquet_writer import remove_file, write_parquet
from database_exporter.utils.exceptions import ErrorCode, ExporterException


def test_build_output_filepath(tmp_path: Path):
    path = build_output_filepath("users", tmp_path, "My App")
    assert path == tmp_path / "my_app" / "users.parquet"


def test_descriptors(tmp_path: Path):
    table = TableDescriptor.for_table("orders", tmp_path, "warehouse")
    assert table.kind == "table"
    assert table.query is None
    assert table.file_path == tmp_path / "warehouse" / "orders.parquet"

    query = TableDescriptor.for_query("00_active_users", "SELECT id FROM users WHERE active", tmp_path, "warehouse")
    assert query.kind == "query"
    assert query.file_path.name == "00_active_users.parquet"


def test_write_parquet(tmp_path: Path):
    batch = pa.table({"id": [1, 2, 3], "name": ["a", "b", "c"]})
    destination = tmp_path / "users.parquet"

    assert write_parquet(batch, destination, table_name="users") == destination
    assert pq.read_table(destination).equals(batch)
    assert list(tmp_path.iterdir()) == [destination]


def test_write_parquet_replaces_existing_file(tmp_path: Path):
    destination = tmp_path / "users.parquet"
    write_parquet(pa.table({"id": [1, 2, 3]}), destination)
    write_parquet(pa.table({"id": [4]}), destination)
    assert pq.read_table(destination).column("id").to_pylist() == [4]


def test_write_parquet_is_reproducible(tmp_path: Path):
    batch = pa.table({"id": [1, 2, 3], "amount": [1.5, 3.0, 4.5]})
    first = write_parquet(batch, tmp_path / "first.parquet")
    second = write_parquet(batch, tmp_path / "second.parquet")
    assert first.read_bytes() == second.read_bytes()


def test_write_parquet_failure(tmp_path: Path):
    destination = tmp_path / "missing_directory" / "users.parquet"
    with pytest.raises(ExporterException) as exc_info:
        write_parquet(pa.table({"id": [1]}), destination, table_name="users")
    assert exc_info.value.code == ErrorCode.EXPORT_WRITE_FAILED
    assert "users" in str(exc_info.value)
    assert not destination.exists()


def test_remove_file(tmp_path: Path):
    target = tmp_path / "stale.parquet"
    target.write_bytes(b"stale")
    remove_file(target)
    assert not target.exists()
    # removing a file that is already gone is not an error
    remove_file(target)
