import functools
import inspect
import logging
from typing import Any, Dict, List, Optional

from ..client import get_client
from ..errors import SchemaError
from .field import SchemaDescriptor
from .reference import flatten, flatten_query, populate
from .schema import TYPE_MARKERS, compile_schema
from .validator import validate_document

logger = logging.getLogger(__name__)

# document types by "module.qualname", used to resolve string references
_document_types: Dict[str, type] = {}


def _full_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _scope(cls: type) -> str:
    return _full_name(cls).rpartition(".")[0]


def _lookup(name: str, referrer: type) -> type:
    """
    Find the document type called ``name`` as seen from ``referrer``.

    A full "module.qualname" is looked up directly. A bare class name is
    searched in the referrer's scope, then its module, then everywhere; the
    first level with a match must have exactly one.
    """
    if name in _document_types:
        return _document_types[name]
    candidates = [d for d in _document_types.values() if d.__name__ == name]
    levels = (
        lambda d: _scope(d) == _scope(referrer),
        lambda d: d.__module__ == referrer.__module__,
        lambda d: True,
    )
    for level in levels:
        found = [d for d in candidates if level(d)]
        if len(found) == 1:
            return found[0]
        if found:
            names = sorted(_full_name(d) for d in found)
            raise SchemaError(
                f"Document type '{name}' referenced from {referrer.__name__} is ambiguous: "
                f"{names}; use the full 'module.qualname'"
            )
    raise SchemaError(f"Unknown document type '{name}'")


def _resolve_reference(referrer: type, marker: Any) -> Optional[type]:
    if isinstance(marker, str):
        return _lookup(marker, referrer)
    if isinstance(marker, type) and issubclass(marker, Document):
        return marker
    return None


def _is_declaration(name: str, value: Any) -> bool:
    if name.startswith("_") or name.isupper():
        return False
    if inspect.isroutine(value) or isinstance(value, (classmethod, staticmethod, property)):
        return False
    if isinstance(value, type):
        return value in TYPE_MARKERS or issubclass(value, Document)
    return True


class Document:
    """
    Base class for document types.

    Fields are declared as class attributes, or passed to ``schema()``::

        class Employee(Document, collection="employee"):
            name = str
            boss = "Boss"

        class Boss(Document, collection="boss"):
            salary = {"type": float, "min": 0}
            employees = [Employee]

    Every public class attribute is a field declaration except methods,
    properties, UPPER_CASE constants and nested classes that are neither a
    type marker nor a Document subclass (an Enum, say).

    Declarations are compiled the first time the type is used, so string
    references may name document types defined later. A bare name resolves
    to the nearest type of that name: same scope, then same module, then
    anywhere; "module.qualname" names one type exactly.
    """

    _collection: Optional[str] = None
    _declaration: Dict[str, Any] = {}
    _compiled: Optional[SchemaDescriptor] = None

    def __init_subclass__(cls, collection: Optional[str] = None, **kwargs):
        super().__init_subclass__(**kwargs)
        declaration = dict(cls._declaration)
        for name, value in list(vars(cls).items()):
            if _is_declaration(name, value):
                declaration[name] = value
                delattr(cls, name)
        cls._declaration = declaration
        if collection is not None:
            cls._collection = collection
        cls._compiled = None
        _document_types[_full_name(cls)] = cls

    @classmethod
    def schema(cls, declaration: Dict[str, Any]) -> None:
        """Declare fields; re-declared names overwrite earlier declarations."""
        if cls._compiled is not None:
            raise SchemaError(f"Schema of {cls.__name__} is already compiled")
        cls._declaration = {**cls._declaration, **declaration}

    @classmethod
    def compiled_schema(cls) -> SchemaDescriptor:
        if cls._compiled is None:
            reserved = [name for name in dir(cls) if not name.startswith("_")]
            cls._compiled = compile_schema(
                cls._declaration,
                cls._collection,
                functools.partial(_resolve_reference, cls),
                reserved,
            )
        return cls._compiled

    def __init__(self, **values):
        object.__setattr__(self, "_id", None)
        object.__setattr__(self, "_values", {})
        for name in type(self).compiled_schema().array_fields():
            self._values[name] = []
        for name, value in values.items():
            setattr(self, name, value)

    @classmethod
    def create(cls, **values) -> "Document":
        return cls(**values)

    @classmethod
    def _from_record(cls, record: Dict[str, Any]) -> "Document":
        doc = cls()
        doc._id = record.get("_id")
        fields = cls.compiled_schema().fields
        for name, value in record.items():
            if name in fields and value is not None:
                doc._values[name] = value
        return doc

    @property
    def id(self) -> Optional[str]:
        return self._id

    def __getattr__(self, name):
        if not name.startswith("_") and name in type(self).compiled_schema().fields:
            return self._values.get(name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name, value):
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        elif name in type(self).compiled_schema().fields:
            if value is None:
                self._values.pop(name, None)
            else:
                self._values[name] = value
        else:
            raise AttributeError(f"'{type(self).__name__}' has no field '{name}'")

    def __repr__(self):
        shown = {
            name: f"<{type(v).__name__} id={v.id}>" if isinstance(v, Document) else v
            for name, v in self._values.items()
        }
        return f"<{type(self).__name__} id={self._id}, {shown}>"

    def to_record(self) -> Dict[str, Any]:
        """Validated and flattened record, as it would be written by save()."""
        schema = type(self).compiled_schema()
        return flatten(schema, validate_document(schema, self._values))

    async def save(self) -> "Document":
        schema = type(self).compiled_schema()
        values = validate_document(schema, self._values)
        record = flatten(schema, values)

        client = get_client()
        self._id = await client.insert_or_update(schema.collection, self._id, record)
        self._values.update(values)
        logger.debug("Saved %s %s:%s", type(self).__name__, schema.collection, self._id)
        return self

    @classmethod
    async def _load(cls, record: Dict[str, Any], populate_refs: bool) -> "Document":
        if populate_refs:
            record = await populate(cls.compiled_schema(), record, get_client())
        return cls._from_record(record)

    @classmethod
    async def load_one(cls, query: Optional[Dict[str, Any]] = None, populate: bool = True):
        """First document matching ``query`` with one level of references, or None."""
        schema = cls.compiled_schema()
        record = await get_client().find_one(schema.collection, flatten_query(query or {}))
        if record is None:
            logger.debug("No %s matched %s", cls.__name__, query)
            return None
        return await cls._load(record, populate)

    @classmethod
    async def load_many(
        cls, query: Optional[Dict[str, Any]] = None, populate: bool = True
    ) -> List["Document"]:
        schema = cls.compiled_schema()
        records = await get_client().find(schema.collection, flatten_query(query or {}))
        return [await cls._load(record, populate) for record in records]

    @classmethod
    async def count(cls, query: Optional[Dict[str, Any]] = None) -> int:
        schema = cls.compiled_schema()
        return await get_client().count(schema.collection, flatten_query(query or {}))
