"""
Field validation run by ``Document.save()``.

Each FieldDescriptor carries a FieldKind tag and the checks below dispatch on
that tag. A check either returns the (possibly coerced) value or raises one
of the ValidationError subclasses from ``py_odm.errors``. Validation of a
whole document stops at the first failing field.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict

from ..errors import (
    ChoiceViolationError,
    RangeViolationError,
    RequiredMissingError,
    TypeMismatchError,
)
from .field import FieldDescriptor, FieldKind, SchemaDescriptor


class _Unset:
    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


def is_unset(value: Any) -> bool:
    return value is None or value is UNSET


def _mismatch(descriptor: FieldDescriptor, value: Any, expected: str, where: str = ""):
    return TypeMismatchError(
        descriptor.name,
        f"Field '{descriptor.name}'{where} must be of type {expected}, got {type(value).__name__}",
        value,
    )


def _check_string(descriptor, value, where=""):
    if not isinstance(value, str):
        raise _mismatch(descriptor, value, "str", where)
    return value


def _check_number(descriptor, value, where=""):
    # bool is an int subclass but never a Number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _mismatch(descriptor, value, "number", where)
    return value


def _check_boolean(descriptor, value, where=""):
    if not isinstance(value, bool):
        raise _mismatch(descriptor, value, "bool", where)
    return value


def _check_date(descriptor, value, where=""):
    if not isinstance(value, datetime):
        raise _mismatch(descriptor, value, "datetime", where)
    return value


def _check_object(descriptor, value, where=""):
    if not isinstance(value, Mapping):
        raise _mismatch(descriptor, value, "dict", where)
    return dict(value)


def _check_buffer(descriptor, value, where=""):
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise _mismatch(descriptor, value, "bytes", where)


def _check_array(descriptor, value, where=""):
    if not isinstance(value, (list, tuple)):
        raise _mismatch(descriptor, value, "list", where)
    return list(value)


def _check_reference(descriptor, value, where=""):
    document = descriptor.document
    if isinstance(value, str) or isinstance(value, document):
        return value
    raise _mismatch(descriptor, value, f"{document.__name__} or id", where)


def _check_typed_array(descriptor, value, where=""):
    if not isinstance(value, (list, tuple)):
        raise _mismatch(descriptor, value, "list", where)
    element = descriptor.element
    check = TYPE_CHECKS[element.kind]
    return [check(element, item, f"[{i}]") for i, item in enumerate(value)]


TYPE_CHECKS = {
    FieldKind.STRING: _check_string,
    FieldKind.NUMBER: _check_number,
    FieldKind.BOOLEAN: _check_boolean,
    FieldKind.DATE: _check_date,
    FieldKind.OBJECT: _check_object,
    FieldKind.BUFFER: _check_buffer,
    FieldKind.ARRAY: _check_array,
    FieldKind.REFERENCE: _check_reference,
    FieldKind.TYPED_ARRAY: _check_typed_array,
}


def validate(descriptor: FieldDescriptor, value: Any = UNSET) -> Any:
    """
    Validate one field value and return it coerced.

    Returns UNSET when the field is unset, optional and has no default.
    A materialized default is returned as-is without further checks.
    """
    if is_unset(value) and descriptor.has_default:
        value = descriptor.materialize_default()
        if not is_unset(value):
            return value
    if is_unset(value):
        if descriptor.required:
            raise RequiredMissingError(descriptor.name)
        return UNSET

    value = TYPE_CHECKS[descriptor.kind](descriptor, value)

    if descriptor.choices is not None and value not in descriptor.choices:
        raise ChoiceViolationError(descriptor.name, value, descriptor.choices)

    if descriptor.kind is FieldKind.NUMBER:
        # NaN fails both bounds
        if descriptor.min is not None and not descriptor.min <= value:
            raise RangeViolationError(descriptor.name, value, descriptor.min, descriptor.max)
        if descriptor.max is not None and not value <= descriptor.max:
            raise RangeViolationError(descriptor.name, value, descriptor.min, descriptor.max)

    return value


def validate_document(schema: SchemaDescriptor, values: Dict[str, Any]) -> Dict[str, Any]:
    """Validate every field in declaration order; unset fields are omitted."""
    validated = {}
    for name, descriptor in schema.fields.items():
        value = validate(descriptor, values.get(name, UNSET))
        if value is not UNSET:
            validated[name] = value
    return validated
