from collections import Counter

from reflex_data_table.facets import facet_counts, facet_min_max, facet_options
from reflex_data_table.models import ColumnDescriptor


def _column(key="v"):
    return ColumnDescriptor(id=key, accessor_key=key)


def test_array_members_count_once_per_row():
    rows = [{"v": ["x"]}, {"v": ["x", "y"]}]
    assert facet_counts(rows, _column()) == Counter({"x": 2, "y": 1})


def test_duplicate_members_in_one_cell_count_once():
    assert facet_counts([{"v": ["x", "x"]}], _column()) == Counter({"x": 1})


def test_scalar_cells_and_missing_values():
    rows = [{"v": "a"}, {"v": "a"}, {"v": None}, {"v": float("nan")}, {}]
    assert facet_counts(rows, _column()) == Counter({"a": 2})


def test_unhashable_members_are_counted_by_string_form():
    rows = [{"v": [{"k": 1}]}, {"v": [{"k": 1}]}]
    assert facet_counts(rows, _column()) == Counter({"{'k': 1}": 2})


def test_workload_facets(workload_rows, registry):
    assert facet_counts(workload_rows, registry["status"]) == Counter(
        {"running": 2, "stopped": 1, "pending": 1}
    )
    assert facet_counts(workload_rows, registry["regions"]) == Counter({"eu": 3, "us": 2, "ap": 1})


def test_facet_options_order_by_count_then_value():
    options = facet_options(Counter({"b": 1, "a": 1, "c": 3}))
    assert options == [
        {"value": "c", "count": 3},
        {"value": "a", "count": 1},
        {"value": "b", "count": 1},
    ]


def test_min_max_ignores_non_numeric_values(workload_rows, registry):
    assert facet_min_max(workload_rows, registry["cpu"]) == (2, 8)
    assert facet_min_max([{"v": "x"}, {"v": True}], _column()) is None


def test_min_max_reads_array_members():
    assert facet_min_max([{"v": [3, 1]}, {"v": 7}], _column()) == (1, 7)
