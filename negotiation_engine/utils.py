"""Utility helpers shared across the engine."""

from __future__ import annotations

import math
from typing import Any, Dict


def normalize_ids(data: Any) -> Any:
    """Rewrite Mongo-style `_id` keys to `id` and drop `__v`, recursively.

    An existing `id` wins over `_id` when a payload carries both.
    """
    if isinstance(data, list):
        return [normalize_ids(item) for item in data]
    if isinstance(data, dict):
        out: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "_id":
                if "id" not in data:
                    out["id"] = value
            elif key == "__v":
                continue
            else:
                out[key] = normalize_ids(value)
        return out
    return data


def safe_count(value: Any) -> int:
    """Coerce a server-maintained counter into a displayable non-negative int."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0
    return int(number)


def ref_id(value: Any) -> Any:
    """Return the id of a reference that may be a bare id or a populated object."""
    if isinstance(value, dict):
        return value.get("id", value.get("_id"))
    return value
