"""
JSON encoding of stored records.

datetime and bytes values have no JSON form, so they are written as tagged
objects and turned back into the original types when read:

    datetime(2024, 1, 2, 3, 4, 5, 6000)  ->  {"$date": "2024-01-02T03:04:05.006000"}
    b"hello"                             ->  {"$bytes": "aGVsbG8="}

A stored dict with any key starting with "$" is wrapped as {"$obj": {...}},
so user data can never be read back as a tag.
"""

import base64
import json
from datetime import datetime
from typing import Any, Dict


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"$bytes": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        encoded = {k: _encode(v) for k, v in value.items()}
        if any(isinstance(k, str) and k.startswith("$") for k in value):
            return {"$obj": encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"Object of type {type(value).__name__} is not storable")


def _decode(value: Any) -> Any:
    if isinstance(value, list):
        return [_decode(v) for v in value]
    if not isinstance(value, dict):
        return value
    if len(value) == 1:
        if "$obj" in value:
            return {k: _decode(v) for k, v in value["$obj"].items()}
        if "$date" in value:
            return datetime.fromisoformat(value["$date"])
        if "$bytes" in value:
            return base64.b64decode(value["$bytes"])
    return {k: _decode(v) for k, v in value.items()}


def dumps(record: Dict[str, Any]) -> str:
    return json.dumps(_encode(record))


def loads(raw: str) -> Dict[str, Any]:
    return _decode(json.loads(raw))
