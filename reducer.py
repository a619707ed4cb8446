"""
Form document reducer.

reduce(session, action) -> session. The input session is never modified and
no action raises: anything the reducer cannot apply leaves the form as it was.

Every editing action records a snapshot of the resulting form at
historyIndex + 1 (dropping the redo tail). Undo/Redo move historyIndex and
restore currentForm from the log without recording anything.
"""

import logging
import uuid
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from errors import IndexOutOfRange
from field_types import default_options
from reorder import reorder
from schemas import CHOICE_TYPES, FieldType, Form, FormField, Session, Step

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Top-level keys UpdateFormSettings may not touch
PROTECTED_SETTINGS = {"id", "fields", "steps"}


# --- Actions ---
class AddField(BaseModel):
    type: Literal["ADD_FIELD"] = "ADD_FIELD"
    field: FormField


class UpdateField(BaseModel):
    type: Literal["UPDATE_FIELD"] = "UPDATE_FIELD"
    id: str
    updates: Dict[str, Any]


class DeleteField(BaseModel):
    type: Literal["DELETE_FIELD"] = "DELETE_FIELD"
    id: str


class ReorderFields(BaseModel):
    type: Literal["REORDER_FIELDS"] = "REORDER_FIELDS"
    source: int
    destination: int


class SetForm(BaseModel):
    type: Literal["SET_FORM"] = "SET_FORM"
    form: Form


class AddStep(BaseModel):
    type: Literal["ADD_STEP"] = "ADD_STEP"
    id: Optional[str] = None


class UpdateFormSettings(BaseModel):
    type: Literal["UPDATE_FORM_SETTINGS"] = "UPDATE_FORM_SETTINGS"
    updates: Dict[str, Any]


class Undo(BaseModel):
    type: Literal["UNDO"] = "UNDO"


class Redo(BaseModel):
    type: Literal["REDO"] = "REDO"


Action = Annotated[
    Union[AddField, UpdateField, DeleteField, ReorderFields, SetForm, AddStep, UpdateFormSettings, Undo, Redo],
    Field(discriminator="type"),
]
_action_adapter = TypeAdapter(Action)


def parse_action(payload: Dict[str, Any]):
    """Build an action from its JSON form. Unknown tags give None, which reduce() ignores.

    A known tag with a malformed payload raises pydantic.ValidationError.
    """
    tag = payload.get("type")
    if not isinstance(tag, str) or tag not in ACTION_TYPES:
        return None
    return _action_adapter.validate_python(payload)


def new_session(form: Optional[Form] = None) -> Session:
    form = form or Form(id=uuid.uuid4().hex)
    return Session(currentForm=form, history=[form.model_copy(deep=True)], historyIndex=0)


def can_undo(session: Session) -> bool:
    return session.historyIndex > 0


def can_redo(session: Session) -> bool:
    return 0 <= session.historyIndex < len(session.history) - 1


# --- Field helpers ---
def _merge(model: M, data: Dict[str, Any]) -> M:
    """Rebuild `model` from `data`, keeping the original when the result would be invalid."""
    try:
        return type(model).model_validate(data)
    except ValidationError as e:
        logger.debug("Ignoring invalid update for %s: %s", type(model).__name__, e)
        return model


def _normalize_field(current: FormField, updates: Dict[str, Any]) -> FormField:
    updates = {k: v for k, v in updates.items() if k != "id"}
    if "label" in updates and not (isinstance(updates["label"], str) and updates["label"].strip()):
        updates.pop("label")
    if "type" in updates:
        try:
            updates["type"] = FieldType(updates["type"])
        except ValueError:
            logger.debug("Ignoring unknown field type %r for field %s", updates["type"], current.id)
            updates.pop("type")
    merged = {**current.model_dump(), **updates}
    if merged.get("type") in CHOICE_TYPES and merged.get("options") is None:
        merged["options"] = default_options(merged["type"])
    return _merge(current, merged)


def _with_fields(form: Form, fields: List[FormField], steps: Optional[List[Step]] = None) -> Form:
    update: Dict[str, Any] = {"fields": fields}
    if steps is not None:
        update["steps"] = steps
    return form.model_copy(update=update)


# --- Handlers ---
def _add_field(form: Form, action: AddField) -> Form:
    if any(f.id == action.field.id for f in form.fields):
        logger.debug("Field %s already present, not adding", action.field.id)
        return form
    return _with_fields(form, [*form.fields, action.field])


def _update_field(form: Form, action: UpdateField) -> Form:
    fields = [
        _normalize_field(f, action.updates) if f.id == action.id else f
        for f in form.fields
    ]
    return _with_fields(form, fields)


def _delete_field(form: Form, action: DeleteField) -> Form:
    fields = [f for f in form.fields if f.id != action.id]
    steps = [
        s.model_copy(update={"fields": s.fields - {action.id}}) if action.id in s.fields else s
        for s in form.steps
    ]
    return _with_fields(form, fields, steps)


def _reorder_fields(form: Form, action: ReorderFields) -> Form:
    try:
        fields = reorder(form.fields, action.source, action.destination)
    except IndexOutOfRange as e:
        logger.debug("Reorder ignored: %s", e)
        return form
    return _with_fields(form, fields)


def _set_form(form: Form, action: SetForm) -> Form:
    return action.form.model_copy(deep=True)


def _add_step(form: Form, action: AddStep) -> Form:
    step = Step(id=action.id or uuid.uuid4().hex, name=f"Step {len(form.steps) + 1}")
    return form.model_copy(update={"steps": [*form.steps, step]})


def _update_form_settings(form: Form, action: UpdateFormSettings) -> Form:
    updates = {k: v for k, v in action.updates.items() if k not in PROTECTED_SETTINGS}
    return _merge(form, {**form.model_dump(), **updates})


_HANDLERS: Dict[str, Callable[[Form, Any], Form]] = {
    "ADD_FIELD": _add_field,
    "UPDATE_FIELD": _update_field,
    "DELETE_FIELD": _delete_field,
    "REORDER_FIELDS": _reorder_fields,
    "SET_FORM": _set_form,
    "ADD_STEP": _add_step,
    "UPDATE_FORM_SETTINGS": _update_form_settings,
}

ACTION_TYPES = frozenset(_HANDLERS) | {"UNDO", "REDO"}


def _move(session: Session, index: int) -> Session:
    return session.model_copy(update={
        "currentForm": session.history[index].model_copy(deep=True),
        "historyIndex": index,
    })


def reduce(session: Session, action) -> Session:
    tag = getattr(action, "type", None)
    if tag == "UNDO":
        return _move(session, session.historyIndex - 1) if can_undo(session) else session
    if tag == "REDO":
        return _move(session, session.historyIndex + 1) if can_redo(session) else session

    handler = _HANDLERS.get(tag)
    if handler is None:
        return session

    form = handler(session.currentForm, action)
    history = [*session.history[: session.historyIndex + 1], form.model_copy(deep=True)]
    return Session(currentForm=form, history=history, historyIndex=session.historyIndex + 1)
