import logging
import re
from typing import Dict, List, Optional

from errors import TemplateNameEmpty
from gateway import PersistenceGateway
from schemas import FieldType, Form, FormField, Template

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def slugify(name: str) -> str:
    return _WHITESPACE_RE.sub("_", name.lower())


def _builtin_templates() -> Dict[str, Template]:
    contact = Template(
        key="contact",
        name="Contact Us",
        fields=[
            FormField(id="1", type=FieldType.TEXT, label="Full Name", required=True, placeholder="Enter your name"),
            FormField(id="2", type=FieldType.EMAIL, label="Email", required=True, placeholder="your@email.com"),
            FormField(id="3", type=FieldType.PHONE, label="Phone", required=False, placeholder="+1 (555) 123-4567"),
            FormField(id="4", type=FieldType.TEXTAREA, label="Message", required=True, placeholder="Your message here..."),
        ],
    )
    survey = Template(
        key="survey",
        name="Customer Survey",
        fields=[
            FormField(id="1", type=FieldType.TEXT, label="Name", required=True),
            FormField(id="2", type=FieldType.SELECT, label="Satisfaction", required=True,
                      options=["Excellent", "Good", "Fair", "Poor"]),
            FormField(id="3", type=FieldType.RADIO, label="Recommend?", required=True, options=["Yes", "No", "Maybe"]),
            FormField(id="4", type=FieldType.TEXTAREA, label="Comments", required=False),
        ],
    )
    return {contact.key: contact, survey.key: survey}


class TemplateStore:
    """Builtin templates plus the ones saved by users, persisted under customFormTemplates."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self._templates: Dict[str, Template] = _builtin_templates()

    def load_all(self) -> Dict[str, Template]:
        """Merge persisted custom templates over the builtins."""
        self._templates.update(self.gateway.list_templates())
        return self.list()

    def save(self, name: str, fields: List[FormField]) -> str:
        if not name or not name.strip():
            raise TemplateNameEmpty("Please enter a template name")
        key = slugify(name)
        template = Template(key=key, name=name, fields=[f.model_copy(deep=True) for f in fields])
        # Same key overwrites the previous template
        self.gateway.save_template(template)
        self._templates[key] = template
        logger.info("Saved template %s", key)
        return key

    def list(self) -> Dict[str, Template]:
        return dict(self._templates)

    def load(self, key: str) -> Optional[Template]:
        template = self._templates.get(key)
        return template.model_copy(deep=True) if template else None

    def apply(self, form: Form, key: str) -> Optional[Form]:
        """The form seeded from a template: title and fields replaced, id and other settings kept."""
        template = self.load(key)
        if template is None:
            return None
        known = {f.id for f in template.fields}
        steps = [s.model_copy(update={"fields": s.fields & known}) for s in form.steps]
        return form.model_copy(update={"title": template.name, "fields": template.fields, "steps": steps})
