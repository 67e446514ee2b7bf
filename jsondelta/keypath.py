"""Resolution of array element keys through JSONPath expressions."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

from .models import MISSING


@lru_cache(maxsize=256)
def compile_key_path(key_path: str):
    """Compile and cache a JSONPath expression relative to an array element."""
    try:
        return jsonpath_parse(key_path)
    except (JsonPathParserError, JsonPathLexerError) as e:
        raise ValueError(f"Invalid key path '{key_path}': {e}") from e


def resolve_key(item: Any, key_path: str) -> Any:
    """
    Resolve the identity value of an array element.

    A key path naming a direct member (``id``) is looked up without
    JSONPath; anything else (``meta.id``, ``$.ref.uuid``) is evaluated with
    jsonpath-ng and the first match is used.

    Returns:
        The key value, or MISSING when the element has none
    """
    if not isinstance(item, dict):
        return MISSING

    if key_path in item:
        return item[key_path]

    matches = compile_key_path(key_path).find(item)
    if not matches:
        return MISSING
    return matches[0].value


def validate_key_path(key_path: str) -> str | None:
    """Return a description of the problem with a key path, or None if valid."""
    if not key_path or not key_path.strip():
        return "Key path cannot be empty"
    try:
        compile_key_path(key_path)
    except ValueError as e:
        return str(e)
    return None
