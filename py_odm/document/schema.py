from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Callable, Optional

from ..errors import SchemaError
from .field import (
    NO_DEFAULT,
    SCALAR_KINDS,
    FieldDescriptor,
    FieldKind,
    SchemaDescriptor,
)


TYPE_MARKERS = {
    str: FieldKind.STRING,
    int: FieldKind.NUMBER,
    float: FieldKind.NUMBER,
    bool: FieldKind.BOOLEAN,
    datetime: FieldKind.DATE,
    dict: FieldKind.OBJECT,
    bytes: FieldKind.BUFFER,
    list: FieldKind.ARRAY,
}

DECLARATION_KEYS = {"type", "required", "default", "choices", "min", "max"}

# resolves a marker (a class or a class name) to a document type, or None
ReferenceResolver = Callable[[Any], Optional[type]]


def _no_references(marker: Any) -> Optional[type]:
    return None


def _resolve_kind(name: str, marker: Any, resolve_reference: ReferenceResolver):
    if isinstance(marker, FieldKind):
        if marker in (FieldKind.REFERENCE, FieldKind.TYPED_ARRAY):
            raise SchemaError(
                f"Field '{name}' must name a document type or element type, not {marker}", name
            )
        return marker, None
    try:
        kind = TYPE_MARKERS.get(marker)
    except TypeError:
        kind = None
    if kind is not None:
        return kind, None
    document = resolve_reference(marker)
    if document is not None:
        return FieldKind.REFERENCE, document
    raise SchemaError(f"Field '{name}' has unrecognized type {marker!r}", name)


def _compile_type(name: str, marker: Any, resolve_reference: ReferenceResolver):
    """Returns (kind, document, element) for a type marker."""
    if isinstance(marker, (list, tuple)):
        if len(marker) != 1:
            raise SchemaError(
                f"Field '{name}' typed-array declaration must have exactly one element type", name
            )
        inner = marker[0]
        if isinstance(inner, (list, tuple)):
            raise SchemaError(f"Field '{name}' cannot nest typed arrays", name)
        kind, document = _resolve_kind(name, inner, resolve_reference)
        element = FieldDescriptor(name=name, kind=kind, document=document)
        return FieldKind.TYPED_ARRAY, None, element
    kind, document = _resolve_kind(name, marker, resolve_reference)
    return kind, document, None


def compile_field(
    name: str,
    declaration: Any,
    resolve_reference: ReferenceResolver = _no_references,
) -> FieldDescriptor:
    """
    Compile one field declaration into a FieldDescriptor.

    declaration examples:
        str
        [str]
        Boss                      # a Document subclass, or "Boss"
        {"type": int, "min": 0, "max": 100, "required": True}
        {"type": str, "choices": ["reddit", "wired"], "default": "reddit"}

    int and float both declare a Number field, which accepts either; there
    is no integer-only kind, so {"type": int} takes 2.5 as well.
    """
    if not isinstance(declaration, Mapping):
        kind, document, element = _compile_type(name, declaration, resolve_reference)
        return FieldDescriptor(name=name, kind=kind, document=document, element=element)

    unknown = set(declaration) - DECLARATION_KEYS
    if unknown:
        raise SchemaError(f"Field '{name}' has unknown options: {sorted(unknown)}", name)
    if "type" not in declaration:
        raise SchemaError(f"Field '{name}' declaration is missing 'type'", name)

    kind, document, element = _compile_type(name, declaration["type"], resolve_reference)

    choices = declaration.get("choices")
    if choices is not None:
        if kind not in SCALAR_KINDS:
            raise SchemaError(f"Field '{name}' of type {kind.value} cannot declare choices", name)
        if isinstance(choices, (str, bytes)) or not isinstance(choices, Iterable):
            raise SchemaError(f"Field '{name}' choices must be a list of values", name)
        choices = tuple(choices)

    minimum = declaration.get("min")
    maximum = declaration.get("max")
    if minimum is not None or maximum is not None:
        if kind is not FieldKind.NUMBER:
            raise SchemaError(f"Field '{name}' of type {kind.value} cannot declare min/max", name)
        if minimum is not None and maximum is not None and minimum > maximum:
            raise SchemaError(f"Field '{name}' min {minimum} is greater than max {maximum}", name)

    return FieldDescriptor(
        name=name,
        kind=kind,
        document=document,
        element=element,
        required=bool(declaration.get("required", False)),
        default=declaration.get("default", NO_DEFAULT),
        choices=choices,
        min=minimum,
        max=maximum,
    )


def compile_schema(
    declaration: Mapping[str, Any],
    collection: str,
    resolve_reference: ReferenceResolver = _no_references,
    reserved_names: Iterable[str] = (),
) -> SchemaDescriptor:
    if not collection or not isinstance(collection, str):
        raise SchemaError(f"Collection name must be a non-empty string, got {collection!r}")

    reserved = set(reserved_names)
    fields = {}
    for name, field_declaration in declaration.items():
        if not isinstance(name, str) or not name or name.startswith("_"):
            raise SchemaError(f"Invalid field name {name!r}", str(name))
        if name in reserved:
            raise SchemaError(f"Field name '{name}' is reserved", name)
        fields[name] = compile_field(name, field_declaration, resolve_reference)
    return SchemaDescriptor(collection=collection, fields=fields)
