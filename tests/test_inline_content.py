import pytest
from pydantic import ValidationError

from reflex_data_table.inline_content import InlineContentController, InlineContentState


def _row_id(row):
    return row["id"]


ROWS = [{"id": "a"}, {"id": "b"}, {"id": "c"}]


def test_starts_closed():
    controller = InlineContentController()
    assert controller.mode == "closed"
    assert not controller.is_open


def test_edit_mode_requires_a_row_id():
    with pytest.raises(ValidationError):
        InlineContentState(mode="edit")
    with pytest.raises(ValidationError):
        InlineContentState(mode="create", editing_row_id="a")


def test_create_slot_renders_above_first_row():
    controller = InlineContentController()
    controller.open_create()
    layout = controller.layout(ROWS, _row_id)
    assert [entry.kind for entry in layout] == ["inline", "row", "row", "row"]
    assert layout[0].mode == "create"


def test_edit_slot_replaces_the_edited_row():
    controller = InlineContentController()
    assert controller.open_edit("b", ["a", "b", "c"])
    layout = controller.layout(ROWS, _row_id)
    assert [entry.kind for entry in layout] == ["row", "inline", "row"]
    assert layout[1].row == {"id": "b"}
    assert controller.is_editing("b")


def test_edit_of_row_not_on_page_is_ignored():
    controller = InlineContentController()
    assert not controller.open_edit("z", ["a", "b"])
    assert controller.mode == "closed"


def test_opening_create_while_editing_replaces_the_slot():
    controller = InlineContentController()
    controller.open_edit("a", ["a"])
    controller.open_create()
    assert controller.get_state() == InlineContentState(mode="create")
    assert [entry.kind for entry in controller.layout(ROWS, _row_id)].count("inline") == 1


def test_callbacks_fire_on_open_and_close():
    events = []
    controller = InlineContentController(
        on_open=lambda mode, data: events.append((mode, data)),
        on_close=lambda: events.append("closed"),
    )
    controller.close()
    controller.open_edit("a", ["a"], data={"id": "a"})
    controller.close()
    assert events == [("edit", {"id": "a"}), "closed"]


def test_render_passes_close_to_the_slot():
    controller = InlineContentController()
    controller.open_create()
    rendered = controller.render(
        ROWS,
        _row_id,
        render_fn=lambda mode, data, on_close: (mode, on_close),
        render_row=lambda row: row["id"],
    )
    slot_mode, on_close = rendered[0]
    assert slot_mode == "create"
    assert rendered[1:] == ["a", "b", "c"]
    on_close()
    assert controller.mode == "closed"
