"""
Persistence and sharing gateway.

Five aggregate keys, each holding one JSON mapping. Every write reads the
whole mapping first, changes one entry and writes it back, so unrelated
entries are never lost.
"""

import logging
import secrets
import string
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

import config
from database import KeyValueStore
from errors import StorageFailure
from schemas import Form, PublishedForm, ResponseRecord, Template

logger = logging.getLogger(__name__)

DRAFTS_KEY = "formBuilderForms"
TEMPLATES_KEY = "customFormTemplates"
SHARED_KEY = "sharedForms"
RESPONSES_KEY = "formResponses"
PROGRESS_KEY = "formFillerProgress"

_ID_ALPHABET = string.ascii_lowercase + string.digits

M = TypeVar("M", bound=BaseModel)


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def generate_share_id() -> str:
    # Collisions are not checked; 36**9 ids make them negligible.
    return f"form_{random_suffix()}"


class PersistenceGateway:
    def __init__(self, store: KeyValueStore, base_url: Optional[str] = None):
        self.store = store
        self.base_url = (base_url or config.PUBLIC_BASE_URL).rstrip("/")

    # --- raw aggregate access ---
    def _read(self, key: str) -> Dict[str, Any]:
        value = self.store.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning("Ignoring malformed aggregate %s (%s)", key, type(value).__name__)
            return {}
        return value

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        self.store.set(key, value)

    def _upsert(self, key: str, entry_id: str, value: Any) -> None:
        data = self._read(key)
        data[entry_id] = value
        self._write(key, data)

    def _remove(self, key: str, entry_id: str) -> None:
        data = self._read(key)
        if entry_id in data:
            del data[entry_id]
            self._write(key, data)

    @staticmethod
    def _parse(model: Type[M], raw: Any, where: str) -> M:
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise StorageFailure(f"Stored entry {where} is invalid: {e}")

    def _parse_all(self, model: Type[M], key: str) -> Dict[str, M]:
        result: Dict[str, M] = {}
        for entry_id, raw in self._read(key).items():
            try:
                result[entry_id] = self._parse(model, raw, f"{key}[{entry_id}]")
            except StorageFailure as e:
                logger.warning("Skipping %s", e)
        return result

    # --- drafts ---
    def save_draft(self, form: Form) -> None:
        self._upsert(DRAFTS_KEY, form.id, form.model_dump(mode="json"))
        logger.info("Saved draft %s", form.id)

    def get_draft(self, form_id: str) -> Optional[Form]:
        raw = self._read(DRAFTS_KEY).get(form_id)
        return self._parse(Form, raw, f"{DRAFTS_KEY}[{form_id}]") if raw is not None else None

    def list_drafts(self) -> Dict[str, Form]:
        return self._parse_all(Form, DRAFTS_KEY)

    # --- published forms ---
    def publish(self, form: Form) -> PublishedForm:
        """Snapshot the form under a fresh share id. Later draft edits do not touch the copy."""
        published = PublishedForm.model_validate({**form.model_dump(), "shareId": generate_share_id()})
        self._upsert(SHARED_KEY, published.shareId, published.model_dump(mode="json"))
        logger.info("Published form %s as %s", form.id, published.shareId)
        return published

    def get_published(self, share_id: str) -> Optional[PublishedForm]:
        raw = self._read(SHARED_KEY).get(share_id)
        return self._parse(PublishedForm, raw, f"{SHARED_KEY}[{share_id}]") if raw is not None else None

    def list_published(self) -> Dict[str, PublishedForm]:
        return self._parse_all(PublishedForm, SHARED_KEY)

    def share_url(self, share_id: str) -> str:
        return f"{self.base_url}/?form={share_id}"

    def responses_url(self) -> str:
        return f"{self.base_url}/?responses=true"

    # --- templates ---
    def save_template(self, template: Template) -> None:
        self._upsert(TEMPLATES_KEY, template.key, template.model_dump(mode="json", exclude={"key"}))

    def list_templates(self) -> Dict[str, Template]:
        result: Dict[str, Template] = {}
        for key, raw in self._read(TEMPLATES_KEY).items():
            try:
                result[key] = self._parse(Template, {**raw, "key": key}, f"{TEMPLATES_KEY}[{key}]")
            except (StorageFailure, TypeError) as e:
                logger.warning("Skipping template %s: %s", key, e)
        return result

    # --- responses ---
    def append_response(self, form_id: str, record: ResponseRecord) -> None:
        data = self._read(RESPONSES_KEY)
        records = data.get(form_id)
        if not isinstance(records, list):
            records = []
        records.append(record.model_dump(mode="json"))
        data[form_id] = records
        self._write(RESPONSES_KEY, data)
        logger.info("Recorded response %s for %s", record.id, form_id)

    def list_responses(self, form_id: str) -> List[ResponseRecord]:
        records = self._read(RESPONSES_KEY).get(form_id) or []
        return [
            self._parse(ResponseRecord, raw, f"{RESPONSES_KEY}[{form_id}][{i}]")
            for i, raw in enumerate(records)
        ]

    def response_counts(self) -> Dict[str, int]:
        return {
            form_id: len(records)
            for form_id, records in self._read(RESPONSES_KEY).items()
            if isinstance(records, list)
        }

    # --- fill progress ---
    def save_progress(self, form_id: str, values: Dict[str, Any]) -> None:
        self._upsert(PROGRESS_KEY, form_id, dict(values))

    def get_progress(self, form_id: str) -> Optional[Dict[str, Any]]:
        progress = self._read(PROGRESS_KEY).get(form_id)
        return progress if isinstance(progress, dict) else None

    def clear_progress(self, form_id: str) -> None:
        self._remove(PROGRESS_KEY, form_id)
