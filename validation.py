from typing import Any, Dict, Iterable, Optional

from errors import FieldError, RequiredFieldError
from field_types import get_field_type
from schemas import FormField


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def validate(field: FormField, value: Any) -> Optional[FieldError]:
    """Check one answer against its field. Returns the first failing error, or None.

    Same rules on submit and on change: required first, then the type's format check.
    """
    info = get_field_type(field.type)
    if is_empty(value):
        if field.required:
            return RequiredFieldError(f"{field.label} is required")
        return None
    if isinstance(value, str):
        return info.check(value)
    return None


def validate_all(fields: Iterable[FormField], responses: Dict[str, Any]) -> Dict[str, FieldError]:
    errors: Dict[str, FieldError] = {}
    for field in fields:
        error = validate(field, responses.get(field.id))
        if error is not None:
            errors[field.id] = error
    return errors
