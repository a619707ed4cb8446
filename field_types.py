"""Catalog of field kinds: palette label, default options and the format check for each."""

import re
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from errors import InvalidFormatError, UnknownFieldType
from schemas import FieldType, FormField

DEFAULT_OPTIONS = ["Option 1", "Option 2", "Option 3"]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()]")

FormatCheck = Callable[[str], Optional[InvalidFormatError]]


def check_email(value: str) -> Optional[InvalidFormatError]:
    if not EMAIL_RE.fullmatch(value):
        return InvalidFormatError("Please enter a valid email address")
    return None


def check_phone(value: str) -> Optional[InvalidFormatError]:
    if not PHONE_RE.fullmatch(PHONE_STRIP_RE.sub("", value)):
        return InvalidFormatError("Please enter a valid phone number")
    return None


def no_format(value: str) -> Optional[InvalidFormatError]:
    return None


@dataclass(frozen=True)
class FieldTypeInfo:
    label: str
    palette_label: str
    default_options: Optional[List[str]]
    check: FormatCheck


# One entry per FieldType member; checked below so a new type cannot be left out.
REGISTRY: Dict[FieldType, FieldTypeInfo] = {
    FieldType.TEXT: FieldTypeInfo("Text Field", "Text Input", None, no_format),
    FieldType.TEXTAREA: FieldTypeInfo("Text Area", "Text Area", None, no_format),
    FieldType.SELECT: FieldTypeInfo("Select Field", "Select", DEFAULT_OPTIONS, no_format),
    FieldType.CHECKBOX: FieldTypeInfo("Checkbox Group", "Checkbox", DEFAULT_OPTIONS, no_format),
    FieldType.RADIO: FieldTypeInfo("Radio Group", "Radio Button", DEFAULT_OPTIONS, no_format),
    FieldType.DATE: FieldTypeInfo("Date Field", "Date Picker", None, no_format),
    FieldType.EMAIL: FieldTypeInfo("Email Field", "Email", None, check_email),
    FieldType.PHONE: FieldTypeInfo("Phone Field", "Phone", None, check_phone),
    FieldType.NUMBER: FieldTypeInfo("Number Field", "Number", None, no_format),
}
if set(REGISTRY) != set(FieldType):
    raise RuntimeError(f"field types missing from registry: {sorted(t.value for t in set(FieldType) - set(REGISTRY))}")


def get_field_type(tag: Union[str, FieldType]) -> FieldTypeInfo:
    """Look up a field kind. Raises UnknownFieldType for tags outside the catalog."""
    try:
        return REGISTRY[FieldType(tag)]
    except (ValueError, KeyError):
        raise UnknownFieldType(f"Unknown field type: {tag!r}")


def default_options(tag: Union[str, FieldType]) -> Optional[List[str]]:
    options = get_field_type(tag).default_options
    return list(options) if options is not None else None


def new_field_id() -> str:
    return uuid.uuid4().hex


def new_field(tag: Union[str, FieldType], id: Optional[str] = None) -> FormField:
    """Build the field dropped onto the canvas from the palette."""
    info = get_field_type(tag)
    return FormField(
        id=id or new_field_id(),
        type=FieldType(tag),
        label=info.label,
        required=False,
        placeholder="",
        options=default_options(tag),
    )


def palette() -> List[Dict[str, str]]:
    return [{"type": t.value, "label": info.palette_label} for t, info in REGISTRY.items()]
