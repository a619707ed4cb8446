"""
Response collection for a published form.

A FillSession is Filling until a submit succeeds, then Submitted for good.
A failed validation sends it back to Filling with per-field errors and
nothing persisted. While filling, answers are saved as progress once the
respondent has paused for PROGRESS_SAVE_DELAY seconds.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

import config
from debounce import Debouncer, Scheduler
from errors import AlreadySubmitted, FieldError, FormNotFound, StorageFailure
from gateway import PersistenceGateway, random_suffix
from schemas import PublishedForm, ResponseRecord
from validation import is_empty, validate, validate_all
from viewer import format_timestamp

logger = logging.getLogger(__name__)


class FillState(str, Enum):
    FILLING = "filling"
    VALIDATING = "validating"
    SUBMITTED = "submitted"


def generate_response_id() -> str:
    return f"resp_{int(time.time() * 1000)}_{random_suffix()}"


def normalize_answer(value: Any) -> Union[str, List[str]]:
    """Coerce an answer to what a response record stores: text or a list of texts."""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, set)):
        return [item if isinstance(item, str) else str(item) for item in value]
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_answers(values: Dict[str, Any]) -> Dict[str, Union[str, List[str]]]:
    return {k: normalize_answer(v) for k, v in values.items() if v is not None}


class FillSession:
    def __init__(
        self,
        gateway: PersistenceGateway,
        share_id: str,
        delay: Optional[float] = None,
        schedule: Optional[Scheduler] = None,
    ):
        form = gateway.get_published(share_id)
        if form is None:
            raise FormNotFound(f"Form {share_id} not found")
        self.gateway = gateway
        self.form_id = share_id
        self.form: PublishedForm = form
        self.responses: Dict[str, Any] = {}
        self.errors: Dict[str, FieldError] = {}
        self.state = FillState.FILLING
        self.record: Optional[ResponseRecord] = None
        self._autosave = Debouncer(
            config.PROGRESS_SAVE_DELAY if delay is None else delay,
            self._save_progress,
            schedule,
        )

    # --- saved progress ---
    @property
    def saved_progress(self) -> Optional[Dict[str, Any]]:
        return self.gateway.get_progress(self.form_id)

    def restore_progress(self) -> bool:
        saved = self.saved_progress
        if not saved:
            return False
        self.responses = normalize_answers(saved)
        return True

    def discard_progress(self) -> None:
        self.gateway.clear_progress(self.form_id)

    def _save_progress(self, values: Dict[str, Any]) -> None:
        try:
            self.gateway.save_progress(self.form_id, values)
        except StorageFailure as e:
            logger.warning("Auto-save failed for %s: %s", self.form_id, e)

    # --- editing ---
    def _check_open(self) -> None:
        if self.state is FillState.SUBMITTED:
            raise AlreadySubmitted(f"Response {self.record.id} was already submitted")

    def set_value(self, field_id: str, value: Any) -> None:
        """Record an answer; None clears it. Progress is saved after a pause."""
        self._check_open()
        if value is None:
            self.responses.pop(field_id, None)
        else:
            self.responses[field_id] = normalize_answer(value)
        self.errors.pop(field_id, None)
        self._autosave.call(dict(self.responses))

    def check_field(self, field_id: str) -> Optional[FieldError]:
        """Validate one field as it is edited, with the same rules as submit."""
        for field in self.form.fields:
            if field.id == field_id:
                error = validate(field, self.responses.get(field_id))
                if error is None:
                    self.errors.pop(field_id, None)
                else:
                    self.errors[field_id] = error
                return error
        return None

    @property
    def progress(self) -> int:
        if not self.form.fields:
            return 0
        filled = sum(1 for f in self.form.fields if not is_empty(self.responses.get(f.id)))
        return round(filled / len(self.form.fields) * 100)

    def close(self) -> None:
        self._autosave.cancel()

    # --- submit ---
    def submit(self) -> Dict[str, FieldError]:
        """Validate every field and record the response when all pass.

        Returns the per-field errors; empty means the response was stored.
        """
        self._check_open()
        self.state = FillState.VALIDATING
        self.errors = validate_all(self.form.fields, self.responses)
        if self.errors:
            self.state = FillState.FILLING
            return self.errors

        now = datetime.now(timezone.utc).isoformat()
        try:
            record = ResponseRecord(
                id=generate_response_id(),
                timestamp=now,
                formTitle=self.form.title,
                responses=self.responses,
                submittedAt=format_timestamp(now),
            )
        except ValidationError:
            self.state = FillState.FILLING
            raise
        self._autosave.cancel()
        try:
            self.gateway.append_response(self.form_id, record)
        except StorageFailure:
            self.state = FillState.FILLING
            raise
        try:
            self.gateway.clear_progress(self.form_id)
        except StorageFailure as e:
            logger.warning("Failed to clear progress for %s: %s", self.form_id, e)
        self.record = record
        self.state = FillState.SUBMITTED
        return {}
