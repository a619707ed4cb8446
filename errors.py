"""
Error kinds raised or returned by the form engine.

Field errors (required / format) are returned by the validator and shown next
to the field; everything else is raised.
"""


class FormBuilderError(Exception):
    """Base class for every error the engine produces."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def __eq__(self, other):
        return type(self) is type(other) and self.message == other.message

    def __hash__(self):
        return hash((type(self).__name__, self.message))

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class FieldError(FormBuilderError):
    pass


class RequiredFieldError(FieldError):
    pass


class InvalidFormatError(FieldError):
    pass


class UnknownFieldType(FormBuilderError):
    pass


class IndexOutOfRange(FormBuilderError):
    pass


class StorageFailure(FormBuilderError):
    pass


class TemplateNameEmpty(FormBuilderError):
    pass


class FormNotFound(FormBuilderError):
    pass


class AlreadySubmitted(FormBuilderError):
    pass
