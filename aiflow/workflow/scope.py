"""
Execution scope helpers.

A scope is a plain ordered ``Dict[str, str]``. Helpers here never mutate their
arguments; every step works on a fresh copy.
"""

import json
from typing import Any, Dict, Mapping, Optional

Scope = Dict[str, str]


def to_text(value: Any) -> str:
    """Convert a value to its scope representation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def merge(base: Optional[Mapping[str, Any]], updates: Optional[Mapping[str, Any]]) -> Scope:
    """Return a new scope with ``updates`` written over ``base`` (last write wins)."""
    merged: Scope = {str(k): to_text(v) for k, v in (base or {}).items()}
    for key, value in (updates or {}).items():
        merged[str(key)] = to_text(value)
    return merged


def from_result(result: Mapping[Any, Any]) -> Scope:
    """Build a scope from a structured step result (keys may be positional ints)."""
    return merge(None, result)
