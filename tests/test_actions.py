import logging

from reflex_data_table.actions import MultiAction, RowAction, partition_row_actions


def _action(key, **kwargs):
    return RowAction(key=key, label=key.title(), action=lambda row: None, **kwargs)


def test_actions_default_to_the_dropdown():
    inline, dropdown = partition_row_actions([_action("edit")], {"id": "a"})
    assert inline == []
    assert [a.key for a in dropdown] == ["edit"]


def test_partition_respects_display_and_hidden():
    actions = [
        _action("edit", display="inline"),
        _action("restart", display="inline", hidden=lambda row: row["status"] == "stopped"),
        _action("delete", variant="destructive"),
    ]
    inline, dropdown = partition_row_actions(actions, {"status": "stopped"})
    assert [a.key for a in inline] == ["edit"]
    assert [a.key for a in dropdown] == ["delete"]


def test_too_many_inline_actions_fall_back_to_dropdown(caplog):
    actions = [_action(f"a{i}", display="inline") for i in range(3)]
    with caplog.at_level(logging.WARNING, logger="reflex_data_table.actions"):
        inline, dropdown = partition_row_actions(actions, {}, max_inline=2)
    assert inline == []
    assert len(dropdown) == 3
    assert "exceed max_inline_actions" in caplog.text


def test_disabled_action_does_not_run():
    ran = []
    action = RowAction(key="stop", label="Stop", action=ran.append, disabled=True)
    assert not action.run({"id": "a"})
    assert ran == []


def test_trigger_inline_edit_runs_after_the_action():
    events = []
    action = RowAction(
        key="edit",
        label="Edit",
        action=lambda row: events.append(("action", row["id"])),
        trigger_inline_edit=True,
    )
    assert action.run({"id": "a"}, open_inline_edit=lambda row: events.append(("edit", row["id"])))
    assert events == [("action", "a"), ("edit", "a")]


def test_tooltip_can_depend_on_the_row():
    action = _action("edit", tooltip=lambda row: f"Edit {row['id']}")
    assert action.tooltip_for({"id": "a"}) == "Edit a"
    assert _action("view", tooltip="View").tooltip_for({}) == "View"


def test_multi_action_needs_minimum_selection():
    received = []
    action = MultiAction(key="stop", label="Stop", action=received.append, min_selection=2)
    assert not action.run([{"id": "a"}])
    assert action.run([{"id": "a"}, {"id": "b"}])
    assert received == [[{"id": "a"}, {"id": "b"}]]
