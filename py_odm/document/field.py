import copy
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


class FieldKind(enum.Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    OBJECT = "object"
    BUFFER = "buffer"
    ARRAY = "array"
    REFERENCE = "reference"
    TYPED_ARRAY = "typed_array"


# kinds that may carry a `choices` constraint
SCALAR_KINDS = frozenset({
    FieldKind.STRING,
    FieldKind.NUMBER,
    FieldKind.BOOLEAN,
    FieldKind.DATE,
    FieldKind.BUFFER,
})

ARRAY_KINDS = frozenset({FieldKind.ARRAY, FieldKind.TYPED_ARRAY})


class _NoDefault:
    def __repr__(self):
        return "NO_DEFAULT"


NO_DEFAULT = _NoDefault()


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Compiled form of one field declaration.

    ``document`` is set for REFERENCE fields and holds the referenced
    Document subclass. ``element`` is set for TYPED_ARRAY fields and
    describes every element of the list; an array of references is a
    TYPED_ARRAY whose element is a REFERENCE.
    """

    name: str
    kind: FieldKind
    document: Optional[type] = None
    element: Optional["FieldDescriptor"] = None
    required: bool = False
    default: Any = NO_DEFAULT
    choices: Optional[Tuple[Any, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def is_reference(self) -> bool:
        return self.kind is FieldKind.REFERENCE

    @property
    def is_reference_array(self) -> bool:
        return (
            self.kind is FieldKind.TYPED_ARRAY
            and self.element is not None
            and self.element.is_reference
        )

    @property
    def referenced_document(self) -> Optional[type]:
        if self.is_reference:
            return self.document
        if self.is_reference_array:
            return self.element.document
        return None

    def materialize_default(self) -> Any:
        """Return the default value; callables are invoked with no arguments."""
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)


@dataclass(frozen=True)
class SchemaDescriptor:
    collection: str
    fields: Mapping[str, FieldDescriptor]

    def __post_init__(self):
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __eq__(self, other):
        if not isinstance(other, SchemaDescriptor):
            return NotImplemented
        return self.collection == other.collection and dict(self.fields) == dict(other.fields)

    def reference_fields(self) -> Dict[str, FieldDescriptor]:
        return {
            name: fd for name, fd in self.fields.items()
            if fd.is_reference or fd.is_reference_array
        }

    def array_fields(self) -> Dict[str, FieldDescriptor]:
        return {name: fd for name, fd in self.fields.items() if fd.kind in ARRAY_KINDS}

