import pytest
from pydantic import ValidationError

from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.exceptions import ColumnConfigError
from reflex_data_table.models import ColumnDescriptor
from reflex_data_table.values import get_nested_value, to_timestamp


# --- registry ---

def test_registry_preserves_declaration_order(registry):
    assert registry.ids == ["name", "status", "regions", "cpu", "created", "team", "actions"]


def test_registry_accepts_plain_mappings():
    registry = ColumnRegistry([{"id": "name", "accessor_key": "name"}])
    assert registry["name"].accessor_key == "name"


def test_duplicate_ids_are_rejected():
    with pytest.raises(ColumnConfigError, match="Duplicate"):
        ColumnRegistry([ColumnDescriptor(id="a"), ColumnDescriptor(id="a")])


def test_unknown_sort_type_is_rejected():
    with pytest.raises(ColumnConfigError, match="unknown sort_type"):
        ColumnRegistry([ColumnDescriptor(id="a", accessor_key="a", sort_type="semver")])


def test_registered_comparator_name_is_a_valid_sort_type():
    registry = ColumnRegistry(
        [ColumnDescriptor(id="a", accessor_key="a", sort_type="semver")],
        custom_comparators=["semver"],
    )
    assert registry["a"].effective_sort_type == "semver"


def test_unknown_column_lookup_raises(registry):
    with pytest.raises(ColumnConfigError):
        registry["nope"]
    assert registry.get("nope") is None


def test_column_config_error_is_a_value_error():
    assert issubclass(ColumnConfigError, ValueError)


# --- descriptor validation ---

def test_custom_sort_type_needs_comparator():
    with pytest.raises(ValidationError):
        ColumnDescriptor(id="a", accessor_key="a", sort_type="custom")


def test_sort_path_conflicts_with_sortable_false():
    with pytest.raises(ValidationError):
        ColumnDescriptor(id="a", sort_path="a.b", sortable=False)


def test_comparator_implies_custom_sort_type():
    column = ColumnDescriptor(id="a", accessor_key="a", comparator=lambda x, y: 0)
    assert column.effective_sort_type == "custom"


def test_sort_array_by_implies_array_length():
    column = ColumnDescriptor(id="a", accessor_key="a", sort_array_by="name")
    assert column.effective_sort_type == "arrayLength"


# --- derived properties ---

def test_display_only_column_is_not_sortable(registry):
    assert not registry["actions"].is_sortable
    assert registry["actions"].get_value({"x": 1}) is None


def test_sort_path_makes_column_sortable():
    column = ColumnDescriptor(id="domain", sort_path="domain.name")
    assert column.is_sortable
    assert column.get_sort_value({"domain": {"name": "example.org"}}) == "example.org"


def test_nested_accessor_key(registry, workload_rows):
    assert registry["team"].get_value(workload_rows[0]) == "platform"
    assert registry["team"].get_value(workload_rows[3]) is None


def test_label_falls_back_to_id():
    assert ColumnDescriptor(id="cpu").label == "cpu"


def test_column_defs_are_camel_case(registry):
    defs = {d["field"]: d for d in registry.column_defs()}
    assert defs["cpu"]["headerName"] == "CPU"
    assert defs["cpu"]["type"] == "number"
    assert defs["created"]["type"] == "dateTime"
    assert defs["actions"]["sortable"] is False
    assert defs["status"]["facetable"] is True


# --- values ---

def test_get_nested_value_handles_attributes_and_missing_segments():
    class Owner:
        team = "core"

    assert get_nested_value({"owner": Owner()}, "owner.team") == "core"
    assert get_nested_value({"owner": None}, "owner.team") is None
    assert get_nested_value(None, "a") is None


def test_to_timestamp_accepts_iso_strings_and_epoch_ms():
    stamp = to_timestamp("2024-01-01T00:00:00Z")
    assert stamp is not None
    assert stamp == to_timestamp(1704067200000)
    assert to_timestamp("not a date") is None
    assert to_timestamp(True) is None
