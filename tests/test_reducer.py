import random

import pytest
from pydantic import ValidationError

from reducer import (
    AddField,
    AddStep,
    DeleteField,
    Redo,
    ReorderFields,
    SetForm,
    Undo,
    UpdateField,
    UpdateFormSettings,
    can_redo,
    can_undo,
    new_session,
    parse_action,
    reduce,
)
from schemas import Form, FormField


def _field(fid, **kw):
    data = {"id": fid, "type": "text", "label": f"Field {fid}"}
    data.update(kw)
    return FormField.model_validate(data)


def _session_with(*ids):
    session = new_session(Form(id="form-1"))
    for fid in ids:
        session = reduce(session, AddField(field=_field(fid)))
    return session


def _ids(session):
    return [f.id for f in session.currentForm.fields]


def test_new_session_seeds_history():
    session = new_session(Form(id="form-1"))
    assert session.historyIndex == 0
    assert len(session.history) == 1
    assert not can_undo(session)
    assert not can_redo(session)


def test_add_field_appends_in_order():
    assert _ids(_session_with("a", "b", "c")) == ["a", "b", "c"]


def test_add_duplicate_id_ignored():
    session = _session_with("a")
    session = reduce(session, AddField(field=_field("a", label="Other")))
    assert _ids(session) == ["a"]
    assert session.currentForm.fields[0].label == "Field a"


def test_input_session_not_modified():
    session = _session_with("a")
    reduce(session, AddField(field=_field("b")))
    reduce(session, DeleteField(id="a"))
    assert _ids(session) == ["a"]


def test_update_field_merges():
    session = reduce(_session_with("a"), UpdateField(id="a", updates={"label": "Name", "required": True}))
    field = session.currentForm.fields[0]
    assert field.label == "Name"
    assert field.required is True
    assert field.type == "text"


def test_update_missing_field_is_noop_on_content():
    before = _session_with("a")
    after = reduce(before, UpdateField(id="zzz", updates={"label": "Name"}))
    assert after.currentForm.fields == before.currentForm.fields
    assert after.historyIndex == before.historyIndex + 1


def test_update_cannot_change_id_or_blank_label():
    session = _session_with("a", "b")
    session = reduce(session, UpdateField(id="a", updates={"id": "b", "label": "  "}))
    assert _ids(session) == ["a", "b"]
    assert session.currentForm.fields[0].label == "Field a"


def test_update_type_keeps_options_consistent():
    session = reduce(_session_with("a"), UpdateField(id="a", updates={"type": "select"}))
    assert session.currentForm.fields[0].options == ["Option 1", "Option 2", "Option 3"]
    session = reduce(session, UpdateField(id="a", updates={"type": "email"}))
    assert session.currentForm.fields[0].options is None


def test_update_unknown_type_ignored():
    session = reduce(_session_with("a"), UpdateField(id="a", updates={"type": "hologram"}))
    assert session.currentForm.fields[0].type == "text"


def test_delete_field_and_step_references():
    session = _session_with("a", "b")
    session = reduce(session, AddStep(id="s1"))
    form = session.currentForm
    step = form.steps[0].model_copy(update={"fields": {"a", "b"}})
    session = reduce(session, SetForm(form=form.model_copy(update={"steps": [step]})))
    session = reduce(session, DeleteField(id="a"))
    assert _ids(session) == ["b"]
    assert session.currentForm.steps[0].fields == {"b"}


def test_reorder_fields():
    session = reduce(_session_with("A", "B", "C", "D"), ReorderFields(source=0, destination=2))
    assert _ids(session) == ["B", "C", "A", "D"]


def test_reorder_out_of_range_leaves_fields():
    session = reduce(_session_with("A", "B"), ReorderFields(source=0, destination=5))
    assert _ids(session) == ["A", "B"]


def test_set_form_replaces():
    session = _session_with("a")
    replacement = Form(id="other", title="Loaded", fields=[_field("x"), _field("y")])
    session = reduce(session, SetForm(form=replacement))
    assert session.currentForm.id == "other"
    assert _ids(session) == ["x", "y"]


def test_add_step_names_sequentially():
    session = _session_with()
    session = reduce(session, AddStep())
    session = reduce(session, AddStep())
    steps = session.currentForm.steps
    assert [s.name for s in steps] == ["Step 1", "Step 2"]
    assert steps[0].id != steps[1].id
    assert steps[0].fields == set()


def test_update_form_settings():
    session = reduce(_session_with("a"), UpdateFormSettings(updates={
        "title": "Survey", "description": "Tell us", "theme": "dark", "id": "hijack", "fields": [],
    }))
    form = session.currentForm
    assert form.title == "Survey"
    assert form.description == "Tell us"
    assert form.model_dump()["theme"] == "dark"
    assert form.id == "form-1"
    assert _ids(session) == ["a"]


def test_unknown_action_returns_same_session():
    session = _session_with("a")
    assert reduce(session, object()) is session
    assert reduce(session, None) is session


def test_history_appends_and_truncates_redo_tail():
    session = _session_with("a", "b")
    assert session.historyIndex == 2
    assert len(session.history) == 3

    session = reduce(session, Undo())
    assert _ids(session) == ["a"]
    assert session.historyIndex == 1
    assert can_redo(session)

    session = reduce(session, AddField(field=_field("c")))
    assert _ids(session) == ["a", "c"]
    assert len(session.history) == 3
    assert not can_redo(session)


def test_undo_redo_round_trip():
    session = _session_with("a", "b")
    session = reduce(reduce(session, Undo()), Undo())
    assert _ids(session) == []
    assert reduce(session, Undo()) is session
    session = reduce(reduce(session, Redo()), Redo())
    assert _ids(session) == ["a", "b"]
    assert reduce(session, Redo()) is session


def test_history_snapshots_are_independent():
    session = _session_with("a")
    session.currentForm.fields[0].label = "mutated"
    assert session.history[-1].fields[0].label == "Field a"


def test_ids_stay_unique_under_random_edits():
    rng = random.Random(7)
    session = new_session(Form(id="f"))
    for _ in range(300):
        fid = str(rng.randint(0, 9))
        kind = rng.choice(["add", "delete", "update"])
        if kind == "add":
            action = AddField(field=_field(fid))
        elif kind == "delete":
            action = DeleteField(id=fid)
        else:
            action = UpdateField(id=fid, updates={"id": str(rng.randint(0, 9)), "label": "L"})
        session = reduce(session, action)
        ids = _ids(session)
        assert len(ids) == len(set(ids))


def test_parse_action():
    action = parse_action({"type": "ADD_FIELD", "field": {"id": "1", "type": "email", "label": "Email"}})
    assert isinstance(action, AddField)
    assert parse_action({"type": "REORDER_FIELDS", "source": 1, "destination": 0}) == ReorderFields(source=1, destination=0)
    assert parse_action({"type": "EXPLODE"}) is None
    assert parse_action({}) is None
    with pytest.raises(ValidationError):
        parse_action({"type": "DELETE_FIELD"})


@pytest.mark.parametrize("updates", [
    {"options": "x,y"},
    {"required": "maybe"},
    {"type": "select", "options": [1, [2]]},
    {"placeholder": ["a"]},
])
def test_update_field_with_bad_values_ignored(updates):
    before = _session_with("a")
    session = reduce(before, UpdateField(id="a", updates=updates))
    assert session.currentForm.fields == before.currentForm.fields
    assert session.historyIndex == before.historyIndex + 1


def test_update_field_coerces_loose_values():
    session = reduce(_session_with("a"), UpdateField(id="a", updates={"required": "true"}))
    assert session.currentForm.fields[0].required is True


@pytest.mark.parametrize("title", [None, 5, ["Survey"]])
def test_update_form_settings_rejects_bad_title(title):
    session = reduce(_session_with("a"), UpdateFormSettings(updates={"title": title, "theme": "dark"}))
    form = session.currentForm
    assert form.title == "New Form"
    assert "theme" not in form.model_dump()


def test_bad_settings_do_not_break_saved_draft(gateway):
    session = reduce(_session_with("a"), UpdateFormSettings(updates={"title": None}))
    gateway.save_draft(session.currentForm)
    draft = gateway.get_draft("form-1")
    assert draft.title == "New Form"
    assert [f.id for f in draft.fields] == ["a"]
