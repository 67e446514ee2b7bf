"""Array strategy analysis: advisory suggestions for matching array elements."""

from __future__ import annotations

from typing import Any

from .keypath import validate_key_path
from .models import (
    ArrayStrategy,
    DiffOptions,
    KeyableArray,
    StrategyInfo,
    StrategySuggestion,
    StrategyValidation,
)
from .utils import format_key_value, join_path

# Fields commonly used as element identity, in order of preference
COMMON_KEYS = ("id", "name", "key", "uuid", "identifier")


def _is_object(item: Any) -> bool:
    return isinstance(item, dict)


def _is_primitive(item: Any) -> bool:
    return item is None or isinstance(item, (str, int, float, bool))


def detect_keyable_array(arr: Any) -> KeyableArray:
    """
    Detect whether an array of objects carries a unique identity field.

    The first of COMMON_KEYS present on every element with all-distinct
    values wins.
    """
    if not isinstance(arr, list) or not arr:
        return KeyableArray(keyable=False)

    if not all(_is_object(item) for item in arr):
        return KeyableArray(keyable=False)

    for key in COMMON_KEYS:
        if all(key in item for item in arr):
            values = {format_key_value(item[key]) for item in arr}
            if len(values) == len(arr):
                return KeyableArray(keyable=True, key_path=key)

    return KeyableArray(keyable=False)


def suggest_array_strategy(data: Any) -> StrategySuggestion:
    """Suggest a matching strategy for one array."""
    if not isinstance(data, list):
        return StrategySuggestion(ArrayStrategy.INDEX, 1.0, "Not an array")

    if not data:
        return StrategySuggestion(ArrayStrategy.INDEX, 1.0, "Empty array")

    if all(_is_primitive(item) for item in data):
        return StrategySuggestion(
            ArrayStrategy.INDEX,
            0.9,
            "Array of primitives - index-based matching is appropriate",
        )

    if all(_is_object(item) for item in data):
        detected = detect_keyable_array(data)
        if detected.keyable:
            return StrategySuggestion(
                ArrayStrategy.KEYED,
                0.8,
                f"Array contains objects with unique '{detected.key_path}' field",
                key_path=detected.key_path,
            )
        return StrategySuggestion(
            ArrayStrategy.INDEX,
            0.7,
            "Array contains objects but no consistent unique identifier found",
        )

    return StrategySuggestion(
        ArrayStrategy.INDEX,
        0.6,
        "Mixed array content - index-based matching is safest",
    )


def analyze_document(data: Any) -> dict[str, StrategySuggestion]:
    """
    Suggest a strategy for every array in a document.

    Returns:
        Mapping of array path (``""`` for a root array) to its suggestion
    """
    suggestions: dict[str, StrategySuggestion] = {}
    stack: list[tuple[str, Any]] = [("", data)]

    while stack:
        path, value = stack.pop()
        if isinstance(value, list):
            suggestions[path] = suggest_array_strategy(value)
            for i in reversed(range(len(value))):
                stack.append((join_path(path, i), value[i]))
        elif isinstance(value, dict):
            for key in reversed(list(value)):
                stack.append((join_path(path, key), value[key]))

    return suggestions


def validate_array_strategy(options: DiffOptions) -> StrategyValidation:
    """Check that the array strategy and key path agree."""
    errors: list[str] = []
    suggestions: list[str] = []

    if options.array_strategy is ArrayStrategy.KEYED and not options.array_key_path:
        errors.append("Keyed array strategy requires arrayKeyPath to be specified")

    if options.array_key_path:
        if options.array_strategy is not ArrayStrategy.KEYED:
            suggestions.append(
                'arrayKeyPath is specified but arrayStrategy is not set to "keyed"'
            )
        else:
            problem = validate_key_path(options.array_key_path)
            if problem:
                errors.append(problem)

    return StrategyValidation(valid=not errors, errors=errors, suggestions=suggestions)


def get_array_strategy_info(options: DiffOptions) -> StrategyInfo:
    """Describe the effective strategy for display."""
    if options.array_strategy is ArrayStrategy.KEYED and options.array_key_path:
        return StrategyInfo(
            strategy="Keyed",
            description=f"Arrays are matched by the '{options.array_key_path}' field",
            key_path=options.array_key_path,
        )
    return StrategyInfo(
        strategy="Index",
        description="Arrays are matched by position (index)",
    )
