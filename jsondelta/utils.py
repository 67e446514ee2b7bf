"""Utility functions for the jsondelta engine."""

from __future__ import annotations

import copy
import json
import math
from typing import Any

from .models import MISSING

# Size reported for documents that cannot be serialized; above the default
# in-thread threshold so such inputs are never treated as small.
UNSERIALIZABLE_SIZE = 2 * 1024 * 1024


def deep_copy(obj: Any) -> Any:
    """Create a deep copy of an object."""
    return copy.deepcopy(obj)


def join_path(parent: str, key: str | int) -> str:
    """
    Build a child path in dotted/bracket notation.

    The root path is the empty string, object members are joined with a
    dot and array positions use brackets: ``""`` + ``"a"`` -> ``"a"``,
    ``"a"`` + ``"b"`` -> ``"a.b"``, ``"a"`` + ``0`` -> ``"a[0]"``.
    """
    if isinstance(key, int) and not isinstance(key, bool):
        return f"{parent}[{key}]"
    if not parent:
        return str(key)
    return f"{parent}.{key}"


def join_segment(parent: str, segment: str) -> str:
    """Append a pre-rendered bracket segment such as ``[0]`` to a path."""
    return f"{parent}{segment}"


def is_numeric(value: Any) -> bool:
    """Check if a value is numeric (int or float)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_missing(value: Any) -> bool:
    """True for the absent marker and for NaN, which both mean 'no value'."""
    if value is MISSING:
        return True
    return isinstance(value, float) and math.isnan(value)


def values_equal(old: Any, new: Any) -> bool:
    """Check if two scalars are equal. Booleans never equal numbers."""
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is type(new) and old == new

    if is_numeric(old) and is_numeric(new):
        return old == new

    if type(old) is not type(new):
        return False
    return old == new


def canonical_json(value: Any) -> str:
    """Serialize a value to a stable JSON string with sorted keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=repr)


def estimate_json_size(*docs: Any) -> int:
    """Approximate UTF-8 size in bytes of the given documents serialized as JSON."""
    total = 0
    for doc in docs:
        try:
            total += len(json.dumps(doc).encode("utf-8"))
        except (TypeError, ValueError):
            return UNSERIALIZABLE_SIZE
    return total


def callable_ref(func: Any) -> str:
    """Stable textual reference for a callable, e.g. ``mymodule:my_func``."""
    module = getattr(func, "__module__", None) or "builtins"
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if name is None:
        name = type(func).__qualname__
    return f"{module}:{name}"


def format_key_value(value: Any) -> str:
    """
    Render a key value for use inside a keyed path segment.

    Integral floats render as integers so that 1 and 1.0 name the same element.
    """
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return canonical_json(value)


def scrub_missing(value: Any) -> Any:
    """
    Remove 'no value' markers from a subtree before it is reported.

    NaN object members are dropped as if absent; NaN list members become
    ``None`` so positions are preserved.
    """
    if isinstance(value, dict):
        return {
            k: scrub_missing(v) for k, v in value.items() if not is_missing(v)
        }
    if isinstance(value, list):
        return [None if is_missing(v) else scrub_missing(v) for v in value]
    if is_missing(value):
        return None
    return value
