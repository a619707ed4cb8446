import io
import logging
import uuid
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import qrcode
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ValidationError

import config
from builder import FormBuilder, Notice
from collector import FillSession
from database import create_store
from errors import AlreadySubmitted, FormNotFound, IndexOutOfRange, StorageFailure, UnknownFieldType
from field_types import get_field_type, new_field, palette
from gateway import PersistenceGateway
from reducer import parse_action
from reorder import reorder
from schemas import Form, FormField, ResponseRecord, Session
from templates import TemplateStore
from validation import validate
from viewer import ResponseViewer, csv_filename, iter_csv

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

gateway = PersistenceGateway(create_store(), config.PUBLIC_BASE_URL)
templates = TemplateStore(gateway)
try:
    templates.load_all()
except StorageFailure as e:
    logger.warning("Failed to load custom templates: %s", e)

# Single process. One builder per draft id, one fill session per respondent visit
builders: Dict[str, FormBuilder] = {}
fill_sessions: Dict[str, FillSession] = {}

app = FastAPI(title="SmartForm Builder API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Helpers ---

def remember(registry: Dict[str, Any], key: str, session: Any) -> None:
    """Register a session, dropping the least recently opened past MAX_SESSIONS."""
    registry.pop(key, None)
    registry[key] = session
    while len(registry) > config.MAX_SESSIONS:
        oldest = next(iter(registry))
        forget(registry, oldest)
        logger.info("Evicted session %s", oldest)


def forget(registry: Dict[str, Any], key: str) -> bool:
    session = registry.pop(key, None)
    if isinstance(session, FillSession):
        session.close()
    return session is not None


def get_builder(form_id: str) -> FormBuilder:
    builder = builders.get(form_id)
    if builder is None:
        raise HTTPException(status_code=404, detail="Builder session not found")
    return builder


def builder_state(builder: FormBuilder) -> Dict[str, Any]:
    return {
        "form": builder.form.model_dump(mode="json"),
        "historyIndex": builder.session.historyIndex,
        "historyLength": len(builder.session.history),
        "canUndo": builder.can_undo,
        "canRedo": builder.can_redo,
    }


def storage_error(e: StorageFailure) -> HTTPException:
    logger.warning("Storage failure: %s", e)
    return HTTPException(status_code=503, detail=f"Storage unavailable: {e.message}")


def load_form_or_404(form_id: str) -> Form:
    try:
        form = ResponseViewer(gateway).get_form(form_id)
    except StorageFailure as e:
        raise storage_error(e)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def open_fill_session(share_id: str) -> FillSession:
    try:
        return FillSession(gateway, share_id)
    except FormNotFound:
        raise HTTPException(status_code=404, detail="Form not found")
    except StorageFailure as e:
        raise storage_error(e)


def get_fill_session(session_id: str) -> FillSession:
    session = fill_sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Fill session not found")
    return session


def fill_state(session_id: str, session: FillSession) -> Dict[str, Any]:
    return {
        "sessionId": session_id,
        "formId": session.form_id,
        "state": session.state.value,
        "responses": session.responses,
        "errors": {fid: err.message for fid, err in session.errors.items()},
        "progress": session.progress,
        "record": session.record.model_dump(mode="json") if session.record else None,
    }


def field_error(error) -> Optional[Dict[str, str]]:
    if error is None:
        return None
    return {"kind": type(error).__name__, "message": error.message}


def already_submitted(e: AlreadySubmitted) -> HTTPException:
    return HTTPException(status_code=409, detail=e.message)


def attachment(filename: str) -> str:
    """Content-Disposition value with an ASCII fallback and the UTF-8 name (RFC 6266)."""
    fallback = "".join(c if " " <= c <= "~" and c not in '"\\' else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


# --- Models ---
class CreateBuilderRequest(BaseModel):
    form_id: Optional[str] = None
    title: Optional[str] = None


class TemplateRequest(BaseModel):
    name: str


class NewFieldRequest(BaseModel):
    type: str
    id: Optional[str] = None


class ValidateRequest(BaseModel):
    field: Dict[str, Any]
    value: Optional[Union[str, List[str]]] = None


class ReorderRequest(BaseModel):
    fields: List[FormField]
    source: int
    destination: int


class OpenFillRequest(BaseModel):
    restore: bool = False


class SetValueRequest(BaseModel):
    # None clears the answer; numbers and other scalars are stored as text
    value: Any = None


class SubmitResponse(BaseModel):
    status: str
    errors: Dict[str, str] = {}
    response: Optional[ResponseRecord] = None


# --- Routes ---
@app.get("/")
def read_root():
    return {"message": "SmartForm Builder API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "storage": gateway.store.ping(),
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME,
    }
    return response


# Stateless engine contract
@app.get("/api/field-types")
def list_field_types():
    return {"fieldTypes": palette()}


@app.post("/api/field-types/new")
def create_field(payload: NewFieldRequest):
    try:
        return new_field(payload.type, payload.id).model_dump(mode="json")
    except UnknownFieldType as e:
        raise HTTPException(status_code=400, detail=e.message)


@app.post("/api/validate")
def validate_value(payload: ValidateRequest):
    try:
        get_field_type(payload.field.get("type"))
        field = FormField.model_validate(payload.field)
    except UnknownFieldType as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    error = validate(field, payload.value)
    return {"valid": error is None, "error": field_error(error)}


@app.post("/api/reorder")
def reorder_fields(payload: ReorderRequest):
    try:
        fields = reorder(payload.fields, payload.source, payload.destination)
    except IndexOutOfRange as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"fields": [f.model_dump(mode="json") for f in fields]}


# Builder sessions
@app.post("/api/builder")
def create_builder(payload: CreateBuilderRequest):
    form = Form(id=uuid.uuid4().hex, title=payload.title or "New Form")
    if payload.form_id:
        try:
            form = gateway.get_draft(payload.form_id)
        except StorageFailure as e:
            raise storage_error(e)
        if form is None:
            raise HTTPException(status_code=404, detail="Draft not found")
    builder = FormBuilder(gateway, templates, form)
    remember(builders, builder.form.id, builder)
    return builder_state(builder)


@app.get("/api/builder/{form_id}")
def get_builder_state(form_id: str):
    return builder_state(get_builder(form_id))


@app.delete("/api/builder/{form_id}")
def close_builder(form_id: str):
    if not forget(builders, form_id):
        raise HTTPException(status_code=404, detail="Builder session not found")
    return {"status": "ok"}


@app.get("/api/builder/{form_id}/session", response_model=Session)
def get_builder_session(form_id: str):
    return get_builder(form_id).session


@app.post("/api/builder/{form_id}/actions")
def dispatch_action(form_id: str, payload: Dict[str, Any]):
    builder = get_builder(form_id)
    try:
        action = parse_action(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    builder.dispatch(action)
    return builder_state(builder)


@app.post("/api/builder/{form_id}/undo")
def undo(form_id: str):
    builder = get_builder(form_id)
    builder.undo()
    return builder_state(builder)


@app.post("/api/builder/{form_id}/redo")
def redo(form_id: str):
    builder = get_builder(form_id)
    builder.redo()
    return builder_state(builder)


@app.post("/api/builder/{form_id}/save", response_model=Notice)
def save_form(form_id: str):
    return get_builder(form_id).save()


@app.post("/api/builder/{form_id}/share", response_model=Notice)
def share_form(form_id: str):
    return get_builder(form_id).share()


@app.post("/api/builder/{form_id}/templates", response_model=Notice)
def save_as_template(form_id: str, payload: TemplateRequest):
    builder = get_builder(form_id)
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Please enter a template name")
    return builder.save_as_template(payload.name)


@app.post("/api/builder/{form_id}/templates/{key}/load")
def load_template(form_id: str, key: str):
    builder = get_builder(form_id)
    if not builder.load_template(key):
        raise HTTPException(status_code=404, detail="Template not found")
    return builder_state(builder)


@app.get("/api/templates")
def list_templates():
    return {
        key: {"name": t.name, "fields": len(t.fields)}
        for key, t in templates.list().items()
    }


# Published forms and filling
@app.get("/api/shared/{share_id}")
def get_shared_form(share_id: str):
    try:
        form = gateway.get_published(share_id)
    except StorageFailure as e:
        raise storage_error(e)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form.model_dump(mode="json")


@app.get("/api/shared/{share_id}/progress")
def get_progress(share_id: str):
    try:
        return {"progress": gateway.get_progress(share_id)}
    except StorageFailure as e:
        raise storage_error(e)


@app.put("/api/shared/{share_id}/progress")
def put_progress(share_id: str, payload: Dict[str, Union[str, List[str]]]):
    try:
        gateway.save_progress(share_id, payload)
    except StorageFailure as e:
        raise storage_error(e)
    return {"status": "ok"}


@app.delete("/api/shared/{share_id}/progress")
def delete_progress(share_id: str):
    try:
        gateway.clear_progress(share_id)
    except StorageFailure as e:
        raise storage_error(e)
    return {"status": "ok"}


@app.post("/api/shared/{share_id}/sessions")
def open_fill(share_id: str, payload: Optional[OpenFillRequest] = None):
    session = open_fill_session(share_id)
    restored = False
    if payload is not None and payload.restore:
        try:
            restored = session.restore_progress()
        except StorageFailure as e:
            raise storage_error(e)
    session_id = uuid.uuid4().hex
    remember(fill_sessions, session_id, session)
    return {**fill_state(session_id, session), "restored": restored}


# Fill sessions
@app.get("/api/fill/{session_id}")
def get_fill_state(session_id: str):
    return fill_state(session_id, get_fill_session(session_id))


@app.put("/api/fill/{session_id}/values/{field_id}")
def set_fill_value(session_id: str, field_id: str, payload: SetValueRequest):
    session = get_fill_session(session_id)
    try:
        session.set_value(field_id, payload.value)
    except AlreadySubmitted as e:
        raise already_submitted(e)
    return fill_state(session_id, session)


@app.post("/api/fill/{session_id}/check/{field_id}")
def check_fill_field(session_id: str, field_id: str):
    error = get_fill_session(session_id).check_field(field_id)
    return {"valid": error is None, "error": field_error(error)}


@app.post("/api/fill/{session_id}/restore")
def restore_fill(session_id: str):
    session = get_fill_session(session_id)
    try:
        restored = session.restore_progress()
    except StorageFailure as e:
        raise storage_error(e)
    return {**fill_state(session_id, session), "restored": restored}


@app.post("/api/fill/{session_id}/discard")
def discard_fill_progress(session_id: str):
    try:
        get_fill_session(session_id).discard_progress()
    except StorageFailure as e:
        raise storage_error(e)
    return {"status": "ok"}


@app.post("/api/fill/{session_id}/submit", response_model=SubmitResponse)
def submit_fill(session_id: str):
    session = get_fill_session(session_id)
    try:
        errors = session.submit()
    except StorageFailure as e:
        raise storage_error(e)
    except AlreadySubmitted as e:
        raise already_submitted(e)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    if errors:
        return SubmitResponse(status="invalid", errors={fid: err.message for fid, err in errors.items()})
    return SubmitResponse(status="ok", response=session.record)


@app.delete("/api/fill/{session_id}")
def close_fill(session_id: str):
    if not forget(fill_sessions, session_id):
        raise HTTPException(status_code=404, detail="Fill session not found")
    return {"status": "ok"}


@app.get("/api/shared/{share_id}/qr")
def form_qr(share_id: str):
    img = qrcode.make(gateway.share_url(share_id))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")


# Responses
@app.get("/api/forms")
def list_forms():
    try:
        return {"forms": ResponseViewer(gateway).overview(), "responsesUrl": gateway.responses_url()}
    except StorageFailure as e:
        raise storage_error(e)


@app.get("/api/forms/{form_id}/responses")
def list_responses(form_id: str):
    form = load_form_or_404(form_id)
    try:
        records = ResponseViewer(gateway).responses(form_id)
    except StorageFailure as e:
        raise storage_error(e)
    return {"form": form.model_dump(mode="json"), "responses": [r.model_dump(mode="json") for r in records]}


@app.get("/api/forms/{form_id}/export/csv")
def export_csv(form_id: str):
    form = load_form_or_404(form_id)
    try:
        records = ResponseViewer(gateway).responses(form_id)
    except StorageFailure as e:
        raise storage_error(e)
    if not records:
        raise HTTPException(status_code=404, detail="No responses to export")
    return StreamingResponse(
        iter_csv(form, records),
        media_type="text/csv",
        headers={"Content-Disposition": attachment(csv_filename(form))},
    )
