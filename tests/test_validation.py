import pytest

from errors import InvalidFormatError, RequiredFieldError, UnknownFieldType
from schemas import FormField
from validation import validate, validate_all


def _field(**kw):
    data = {"id": "1", "type": "text", "label": "Name"}
    data.update(kw)
    return FormField.model_validate(data)


def test_required_empty_string():
    assert validate(_field(required=True), "") == RequiredFieldError("Name is required")


@pytest.mark.parametrize("value", [None, "", "   ", []])
def test_required_rejects_every_empty_shape(value):
    assert isinstance(validate(_field(required=True), value), RequiredFieldError)


def test_optional_empty_is_valid():
    assert validate(_field(type="email"), "") is None


def test_email():
    assert isinstance(validate(_field(type="email"), "not-an-email"), InvalidFormatError)
    assert validate(_field(type="email"), "a@b.co") is None


@pytest.mark.parametrize("value", ["a@b.co\n", "a@b.co\nextra", " a@b.co"])
def test_email_rejects_surrounding_text(value):
    assert isinstance(validate(_field(type="email"), value), InvalidFormatError)


def test_required_checked_before_format():
    error = validate(_field(type="email", required=True, label="Email"), "")
    assert error == RequiredFieldError("Email is required")


@pytest.mark.parametrize("value", ["+1 (555) 123-4567", "5551234567", "+44 20 7946 0958"])
def test_phone_accepts_formatted_numbers(value):
    assert validate(_field(type="phone"), value) is None


@pytest.mark.parametrize("value", ["0123456", "+0123", "12345678901234567", "call me", "+"])
def test_phone_rejects(value):
    assert isinstance(validate(_field(type="phone"), value), InvalidFormatError)


def test_checkbox_required_empty_list():
    field = _field(type="checkbox", required=True, label="Pick", options=["a", "b"])
    assert validate(field, []) == RequiredFieldError("Pick is required")
    assert validate(field, ["a"]) is None


def test_unknown_type_is_an_error():
    field = FormField.model_construct(id="x", type="color", label="Colour", required=False)
    with pytest.raises(UnknownFieldType):
        validate(field, "red")


def test_validate_all_collects_per_field():
    fields = [
        _field(id="1", required=True),
        _field(id="2", type="email", label="Email"),
        _field(id="3", type="number", label="Age"),
    ]
    errors = validate_all(fields, {"2": "nope", "3": "12"})
    assert set(errors) == {"1", "2"}
    assert errors["1"].message == "Name is required"
