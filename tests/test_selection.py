import pytest

from reflex_data_table.exceptions import SelectionUnavailableError
from reflex_data_table.selection import SelectionController, make_row_id_getter


def _rows(n):
    return [{"id": i, "name": f"row-{i}"} for i in range(n)]


def test_row_id_getter_accepts_paths_and_callables():
    assert make_row_id_getter("meta.key")({"meta": {"key": 7}}) == "7"
    assert make_row_id_getter(lambda r: r["id"])({"id": "x"}) == "x"
    assert make_row_id_getter(None) is None


def test_selection_without_row_id_raises():
    selection = SelectionController(None)
    assert not selection.available
    with pytest.raises(SelectionUnavailableError):
        selection.toggle("1")
    with pytest.raises(SelectionUnavailableError):
        selection.selected


def test_toggle_adds_and_removes():
    selection = SelectionController("id")
    selection.toggle("3")
    assert selection.selected == {"3"}
    selection.toggle("3")
    assert selection.count == 0


def test_toggle_all_affects_only_visible_page():
    rows = _rows(25)
    page_one = rows[:10]
    selection = SelectionController("id", initial=["20"])

    selection.toggle_all(page_one)
    assert selection.count == 11
    assert selection.is_all_selected(page_one)
    assert not selection.is_some_selected(page_one)

    selection.toggle_all(page_one)
    assert selection.selected == {"20"}


def test_partial_page_selection_is_some_selected():
    rows = _rows(5)
    selection = SelectionController("id", initial=["0"])
    assert selection.is_some_selected(rows)
    assert not selection.is_all_selected(rows)
    assert not selection.is_all_selected([])


def test_selected_rows_skips_ids_no_longer_present():
    rows = _rows(3)
    selection = SelectionController("id", initial=["1", "99"])
    assert selection.selected_rows(rows) == [rows[1]]
    assert selection.count == 2


def test_controlled_selection_only_emits_changes():
    emitted = []
    selection = SelectionController(
        "id", get_selected=lambda: {"1"}, on_change=emitted.append
    )
    selection.toggle("2")
    assert emitted == [frozenset({"1", "2"})]
    assert selection.selected == {"1"}


def test_uncontrolled_selection_notifies_on_change():
    emitted = []
    selection = SelectionController("id", on_change=emitted.append)
    selection.select("a", "b")
    selection.clear()
    assert emitted == [frozenset({"a", "b"}), frozenset()]
