"""
Reference flattening (save) and population (load).

On save every live document held by a reference field is replaced by its id;
the referenced document itself is never saved from here, so a cyclic graph
is persisted as independent records that hold each other's ids.

On load every stored id is fetched once and turned into a live document whose
own reference fields are left as ids. Population never goes deeper than one
level, which keeps loading of cyclic graphs finite.
"""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

from ..errors import ReferenceNotFoundError, UnsavedReferenceError
from .field import FieldDescriptor, SchemaDescriptor

logger = logging.getLogger(__name__)


def _flatten_value(descriptor: FieldDescriptor, value: Any) -> Any:
    if isinstance(value, str):
        return value
    if isinstance(value, descriptor.referenced_document):
        if value.id is None:
            raise UnsavedReferenceError(descriptor.name)
        return value.id
    return value


def flatten(schema: SchemaDescriptor, values: Dict[str, Any]) -> Dict[str, Any]:
    """Return a storable record with references replaced by ids."""
    record = {}
    for name, value in values.items():
        descriptor = schema.fields.get(name)
        if descriptor is None or value is None:
            record[name] = value
        elif descriptor.is_reference:
            record[name] = _flatten_value(descriptor, value)
        elif descriptor.is_reference_array:
            record[name] = [_flatten_value(descriptor, item) for item in value]
        else:
            record[name] = value
    return record


def flatten_query(query: Dict[str, Any]) -> Dict[str, Any]:
    """Replace live documents used as query values by their ids."""
    flattened = {}
    for key, cond in query.items():
        if isinstance(cond, dict):
            flattened[key] = flatten_query(cond)
        elif isinstance(cond, (list, tuple)):
            flattened[key] = [c.id if _is_document(c) else c for c in cond]
        elif _is_document(cond):
            flattened[key] = cond.id
        else:
            flattened[key] = cond
    return flattened


def _is_document(value: Any) -> bool:
    return hasattr(type(value), "compiled_schema") and hasattr(value, "id")


async def _fetch(adapter, descriptor: FieldDescriptor, doc_id: str):
    document = descriptor.referenced_document
    collection = document.compiled_schema().collection
    logger.debug("Populating %s with %s %s:%s", descriptor.name, document.__name__, collection, doc_id)
    record = await adapter.find_by_id(collection, doc_id)
    if record is None:
        raise ReferenceNotFoundError(descriptor.name, collection, doc_id)
    return document._from_record(record)


async def populate(schema: SchemaDescriptor, record: Dict[str, Any], adapter) -> Dict[str, Any]:
    """
    Return field values for ``record`` with one level of references attached.

    Sibling fetches run concurrently; the result keeps field and element
    order. Any missing id fails the whole populate; when several fail, the
    first one in field and element order is raised.
    """
    values = dict(record)
    slots: List[Tuple[str, Any]] = []
    fetches = []

    for name, descriptor in schema.reference_fields().items():
        stored = record.get(name)
        if stored is None:
            continue
        if descriptor.is_reference:
            if isinstance(stored, str):
                slots.append((name, None))
                fetches.append(_fetch(adapter, descriptor, stored))
        else:
            values[name] = list(stored)
            for index, item in enumerate(stored):
                if isinstance(item, str):
                    slots.append((name, index))
                    fetches.append(_fetch(adapter, descriptor, item))

    if not fetches:
        return values

    # every fetch is awaited before the first failure is raised
    results = await asyncio.gather(*fetches, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result

    for (name, index), document in zip(slots, results):
        if index is None:
            values[name] = document
        else:
            values[name][index] = document
    return values
