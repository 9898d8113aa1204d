import pytest

from database_exporter.tools.export_tools.orchestrator import resolve_row_limit


@pytest.mark.parametrize(
    "overrides,global_limit,expected",
    [
        ({}, None, None),
        ({}, 100, 100),
        (None, 100, 100),
        ({"orders": 5}, 100, 100),  # another table's override does not apply
        ({"users": 5}, 100, 5),
        ({"users": 500}, 100, 500),
        ({"users": 5}, None, 5),
        ({"users": 0}, 100, 0),
        ({"users": -1}, 100, 100),
        ({"users": -1}, None, None),
    ],
)
def test_resolve_row_limit(overrides, global_limit, expected):
    assert resolve_row_limit("users", overrides, global_limit) == expected


def test_override_wins_for_any_global_limit():
    for global_limit in (None, 0, 1, 10, 10_000):
        assert resolve_row_limit("orders", {"orders": 5}, global_limit) == 5
        assert resolve_row_limit("users", {"orders": 5}, global_limit) == global_limit
