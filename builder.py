"""
Builder session: the editable draft plus the save/share/template operations
around it. Storage problems never cost the draft; they come back as a
failed Notice.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from errors import StorageFailure, TemplateNameEmpty
from gateway import PersistenceGateway
from reducer import Redo, SetForm, Undo, can_redo, can_undo, new_session, reduce
from schemas import Form, Session
from templates import TemplateStore

logger = logging.getLogger(__name__)


class Notice(BaseModel):
    ok: bool
    message: str
    url: Optional[str] = None
    key: Optional[str] = None


class FormBuilder:
    def __init__(self, gateway: PersistenceGateway, templates: TemplateStore, form: Optional[Form] = None):
        self.gateway = gateway
        self.templates = templates
        self.session: Session = new_session(form)

    @property
    def form(self) -> Form:
        return self.session.currentForm

    @property
    def can_undo(self) -> bool:
        return can_undo(self.session)

    @property
    def can_redo(self) -> bool:
        return can_redo(self.session)

    def dispatch(self, action) -> Session:
        self.session = reduce(self.session, action)
        return self.session

    def undo(self) -> Session:
        return self.dispatch(Undo())

    def redo(self) -> Session:
        return self.dispatch(Redo())

    def save(self) -> Notice:
        try:
            self.gateway.save_draft(self.form)
        except StorageFailure as e:
            logger.warning("Save failed: %s", e)
            return Notice(ok=False, message="Failed to save form. Please try again.")
        return Notice(ok=True, message="Form saved")

    def share(self) -> Notice:
        try:
            published = self.gateway.publish(self.form)
        except StorageFailure as e:
            logger.warning("Failed to share form: %s", e)
            return Notice(ok=False, message="Failed to share form. Please try again.")
        return Notice(ok=True, message="Form shared successfully!", url=self.gateway.share_url(published.shareId))

    def save_as_template(self, name: str) -> Notice:
        try:
            key = self.templates.save(name, self.form.fields)
        except TemplateNameEmpty as e:
            return Notice(ok=False, message=e.message)
        except StorageFailure as e:
            logger.error("Failed to save template: %s", e)
            return Notice(ok=False, message="Failed to save template. Please try again.")
        return Notice(ok=True, message=f'Template "{name}" saved successfully!', key=key)

    def load_template(self, key: str) -> bool:
        form = self.templates.apply(self.form, key)
        if form is None:
            return False
        self.dispatch(SetForm(form=form))
        return True

    def responses_url(self) -> str:
        return self.gateway.responses_url()
