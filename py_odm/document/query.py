from typing import Any, Dict, Optional


def _compare(op: str, val: Any, cmp_val: Any) -> bool:
    if op == "$eq":
        return val == cmp_val
    if op == "$ne":
        return val != cmp_val
    if op == "$in":
        return val in cmp_val
    if val is None:
        return False
    try:
        if op == "$gt":
            return val > cmp_val
        if op == "$gte":
            return val >= cmp_val
        if op == "$lt":
            return val < cmp_val
        if op == "$lte":
            return val <= cmp_val
    except TypeError:
        return False
    raise ValueError(f"Unsupported query operator '{op}'")


def matches(doc: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    """
    Check a stored record against a query.

    query example:
        {"num": 1, "salary": {"$gte": 1000, "$lt": 5000}, "source": {"$in": ["reddit"]}}
    """
    if not query:
        return True

    for field, cond in query.items():
        val = doc.get(field)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, cmp_val in cond.items():
                if not _compare(op, val, cmp_val):
                    return False
        elif val != cond:
            return False
    return True
