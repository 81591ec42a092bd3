"""
Exceptions raised by the document mapping layer.

Schema errors are raised when a document type is compiled; validation and
reference errors are raised from ``save()`` and ``load_one()``. Errors coming
from a database adapter are never wrapped.
"""

from typing import Any, Optional


class OdmError(Exception):
    """Base exception for all py_odm errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class SchemaError(OdmError):
    """Raised when a field declaration is malformed or unrecognized."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field})
        self.field = field


class ValidationError(OdmError):
    """Raised when a field value violates its descriptor at save time."""

    kind = "ValidationError"

    def __init__(self, field: str, message: str, value: Any = None):
        super().__init__(message, details={"kind": self.kind, "field": field})
        self.field = field
        self.value = value


class RequiredMissingError(ValidationError, ValueError):
    kind = "RequiredMissing"

    def __init__(self, field: str):
        super().__init__(field, f"Field '{field}' is required")


class TypeMismatchError(ValidationError, TypeError):
    kind = "TypeMismatch"


class ChoiceViolationError(ValidationError, ValueError):
    kind = "ChoiceViolation"

    def __init__(self, field: str, value: Any, choices):
        super().__init__(
            field, f"Field '{field}' must be one of {list(choices)}, got {value!r}", value
        )
        self.choices = choices


class RangeViolationError(ValidationError, ValueError):
    kind = "RangeViolation"

    def __init__(self, field: str, value: Any, minimum=None, maximum=None):
        if minimum is not None and not minimum <= value:
            message = f"Field '{field}' must be >= {minimum}, got {value!r}"
        else:
            message = f"Field '{field}' must be <= {maximum}, got {value!r}"
        super().__init__(field, message, value)
        self.min = minimum
        self.max = maximum


class ReferenceNotFoundError(OdmError, LookupError):
    """Raised when a stored identifier cannot be resolved during populate."""

    def __init__(self, field: str, collection: str, doc_id: str):
        super().__init__(
            f"Field '{field}' references a non-existent document '{doc_id}' in '{collection}'",
            details={"field": field, "collection": collection, "id": doc_id},
        )
        self.field = field
        self.collection = collection
        self.doc_id = doc_id


class UnsavedReferenceError(OdmError, ValueError):
    """Raised when a referenced document has not been saved yet."""

    def __init__(self, field: str):
        super().__init__(
            f"Field '{field}' references a document that has not been saved; "
            "save it before saving the referencing document",
            details={"field": field},
        )
        self.field = field


class ClientNotConnectedError(OdmError):
    """Raised when a document operation runs before connect()."""

    def __init__(self):
        super().__init__("No database client connected; call connect(url) first")


class UnsupportedBackendError(OdmError):
    """Raised when a connection URL names an unknown backend."""

    def __init__(self, url: str, scheme: str):
        super().__init__(
            f"Unsupported database backend '{scheme}' in '{url}'",
            details={"url": url, "scheme": scheme},
        )
        self.scheme = scheme
