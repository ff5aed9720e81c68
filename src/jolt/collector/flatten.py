"""
Flattens nested Jolokia values into a single level of fields.

    {"HeapMemoryUsage": {"used": 1, "max": 2}}
        -> {"HeapMemoryUsage_used": 1.0, "HeapMemoryUsage_max": 2.0}

A bare scalar ends up under the prefix it was reached with, which is ""
for a top-level value.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

DEFAULT_DELIMITER = "_"


def _scalar(value: Any) -> Any:
    # bool is an int subclass but must stay a bool
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def flatten(
    value: Any,
    delimiter: str = DEFAULT_DELIMITER,
    prefix: str = "",
    fields: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Walk value and write every leaf into fields, keyed by its joined path.

    Colliding names are last-write-wins. Returns fields so callers can
    start from nothing.
    """
    if fields is None:
        fields = {}

    if isinstance(value, dict):
        for key, child in value.items():
            name = f"{prefix}{delimiter}{key}" if prefix else str(key)
            flatten(child, delimiter, name, fields)
    else:
        fields[prefix] = _scalar(value)

    return fields
