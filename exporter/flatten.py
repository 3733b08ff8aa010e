"""
Purpose: Flatten nested records into single-level rows for CSV export.
Description: Nested objects become dotted key paths; arrays become compact JSON strings,
replaced by a placeholder when they are too long, too large, or cannot be serialized.
Key Functions: flatten_record, serialize_array
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Sequence, Tuple

from .constants import MAX_ARRAY_ITEMS, MAX_SERIALIZED_CHARS
from .exporter_logging import log_warning


def serialize_array(key: str, value: Sequence[Any]) -> Tuple[str, bool]:
    """Return the cell text for an array and whether it was replaced by a placeholder."""
    if len(value) > MAX_ARRAY_ITEMS:
        return f"[Array with {len(value)} items - truncated for export]", True
    try:
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as exc:
        log_warning(f"Warning: Could not serialize array field \"{key}\": {exc}")
        return f"[Error serializing array: {exc}]", True
    if len(text) > MAX_SERIALIZED_CHARS:
        return f"[Array data too large ({round(len(text) / 1024)}KB) - truncated for export]", True
    return text, False


def _flatten_into(obj: Mapping[str, Any], prefix: str, out: Dict[str, Any]) -> bool:
    truncated = False
    for key, value in obj.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            truncated = _flatten_into(value, path, out) or truncated
        elif isinstance(value, (list, tuple)):
            out[path], was_truncated = serialize_array(path, value)
            truncated = truncated or was_truncated
        else:
            out[path] = value
    return truncated


def flatten_record(record: Mapping[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Flatten `record`; returns the flat mapping and a truncation flag.

    >>> flatten_record({"a": {"b": 1}, "c": [1, 2, 3]})
    ({'a.b': 1, 'c': '[1,2,3]'}, False)
    """
    flat: Dict[str, Any] = {}
    truncated = _flatten_into(record, "", flat)
    return flat, truncated
