from __future__ import annotations

from typing import Any, Dict
from uuid import uuid4


def new_race_id() -> str:
    """Random identifier for rooms and seeds."""
    return str(uuid4())


def flatten_keys(obj: Any, prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested dicts/lists into a single level with dotted keys.
    List items are keyed by index: {"a": [1, {"b": 2}]} -> {"a.0": 1, "a.1.b": 2}.
    """
    flat: Dict[str, Any] = {}
    if isinstance(obj, dict):
        items = obj.items()
    elif isinstance(obj, list):
        items = ((str(index), value) for index, value in enumerate(obj))
    else:
        return {prefix: obj} if prefix else {}
    for key, value in items:
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, (dict, list)):
            flat.update(flatten_keys(value, path))
        else:
            flat[path] = value
    return flat


__all__ = ["new_race_id", "flatten_keys"]
