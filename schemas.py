"""
Data model for SmartForm Builder

Every model is JSON-serialisable; the persistence gateway stores them with
`model_dump(mode="json")` under the aggregate keys listed in gateway.py.
- Form -> "formBuilderForms" (drafts)
- PublishedForm -> "sharedForms"
- Template -> "customFormTemplates"
- ResponseRecord -> "formResponses"
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"


# Types that carry a list of options
CHOICE_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX})

ResponseValue = Union[str, List[str]]


class FormField(BaseModel):
    id: str
    type: FieldType = Field(..., description="text, textarea, select, checkbox, radio, date, email, phone, number")
    label: str = Field(..., min_length=1)
    required: bool = False
    placeholder: Optional[str] = None
    helpText: Optional[str] = None
    options: Optional[List[str]] = None

    @model_validator(mode="after")
    def _check_options(self):
        if self.type in CHOICE_TYPES:
            if self.options is None:
                raise ValueError(f"options are required for {self.type.value} fields")
        else:
            self.options = None
        return self


class Step(BaseModel):
    id: str
    name: str
    fields: Set[str] = Field(default_factory=set)


class Form(BaseModel):
    # Extra top-level settings set through UpdateFormSettings are kept
    model_config = ConfigDict(extra="allow")

    id: str
    title: str = "New Form"
    description: str = ""
    fields: List[FormField] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self):
        ids = [f.id for f in self.fields]
        if len(ids) != len(set(ids)):
            raise ValueError("field ids must be unique within a form")
        known = set(ids)
        for step in self.steps:
            missing = step.fields - known
            if missing:
                raise ValueError(f"step {step.id} references unknown fields: {sorted(missing)}")
        return self


class PublishedForm(Form):
    shareId: str


class Template(BaseModel):
    key: str
    name: str
    fields: List[FormField] = Field(default_factory=list)


class ResponseRecord(BaseModel):
    id: str
    timestamp: str
    formTitle: str
    responses: Dict[str, ResponseValue] = Field(default_factory=dict)
    submittedAt: Optional[str] = None
    status: Literal["completed"] = "completed"


class Session(BaseModel):
    currentForm: Form
    history: List[Form] = Field(default_factory=list)
    historyIndex: int = -1
