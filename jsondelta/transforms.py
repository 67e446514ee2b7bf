"""Value transforms applied before comparison."""

from __future__ import annotations

import math
from functools import cmp_to_key
from typing import Any, Iterable

from .models import DiffError, ErrorType, Severity, TransformRule, TransformType
from .rules import is_glob, matches_glob
from .utils import canonical_json, is_numeric

MIN_DECIMALS = 0
MAX_DECIMALS = 20


def round_half_up(value: float, decimals: int) -> float:
    """Round toward +infinity on ties, the way ``Math.round`` does."""
    factor = 10 ** decimals
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def _clamp_decimals(decimals: Any) -> int:
    if not is_numeric(decimals) or not math.isfinite(decimals):
        return MIN_DECIMALS
    return int(min(max(decimals, MIN_DECIMALS), MAX_DECIMALS))


def _sort_key(item: Any) -> str:
    if isinstance(item, str):
        return item
    return canonical_json(item)


def target_matches(rule: TransformRule, path: str) -> bool:
    """A rule without a target applies everywhere."""
    if rule.target_path is None:
        return True
    if is_glob(rule.target_path):
        return matches_glob(path, rule.target_path)
    return path == rule.target_path


def apply_transform(rule: TransformRule, value: Any) -> Any:
    """Apply one rule to one value. Non-applicable value types pass through."""
    options = rule.options

    if rule.type is TransformType.ROUND:
        # Without decimals the rule is inert; integers are whole at any precision
        if "decimals" in options and isinstance(value, float) and math.isfinite(value):
            return round_half_up(value, _clamp_decimals(options["decimals"]))
        return value

    elif rule.type is TransformType.LOWERCASE:
        return value.lower() if isinstance(value, str) else value

    elif rule.type is TransformType.UPPERCASE:
        return value.upper() if isinstance(value, str) else value

    elif rule.type is TransformType.SORT_ARRAY:
        if not isinstance(value, list):
            return value
        compare = options.get("compare")
        if callable(compare):
            return sorted(value, key=cmp_to_key(compare))
        return sorted(value, key=_sort_key, reverse=bool(options.get("descending")))

    elif rule.type is TransformType.CUSTOM:
        transform = options.get("transform")
        return transform(value) if callable(transform) else value

    return value


def validate_transform_rule(rule: TransformRule) -> list[DiffError]:
    """
    Validate a transform rule.

    Returns:
        List of problems found. ERROR entries disable the rule; WARNING
        entries leave it active.
    """
    errors: list[DiffError] = []
    options = rule.options

    def report(message: str, severity: Severity = Severity.ERROR, **details):
        errors.append(DiffError(
            type=ErrorType.TRANSFORM,
            message=message,
            details={"rule": rule.to_dict(), **details},
            severity=severity,
            rule_id=rule.id,
        ))

    if rule.type is TransformType.CUSTOM:
        if not callable(options.get("transform")):
            report("Custom transform rule must provide a transform function")

    elif rule.type is TransformType.ROUND and "decimals" in options:
        decimals = options["decimals"]
        if (
            not is_numeric(decimals)
            or not math.isfinite(decimals)
            or decimals < MIN_DECIMALS
            or decimals > MAX_DECIMALS
        ):
            report(
                f"Round transform decimals must be a number between "
                f"{MIN_DECIMALS} and {MAX_DECIMALS}",
                decimals=decimals,
            )

    elif rule.type is TransformType.SORT_ARRAY:
        compare = options.get("compare")
        if compare is not None and not callable(compare):
            report("Sort comparator must be callable")
        elif compare is not None and options.get("descending"):
            report(
                "Sort rule sets both a comparator and descending; the comparator is used",
                severity=Severity.WARNING,
            )

    return errors


def _is_usable(rule: TransformRule) -> bool:
    return rule.enabled and not any(
        e.severity is Severity.ERROR for e in validate_transform_rule(rule)
    )


class TransformApplicator:
    """
    Applies the usable transform rules whose target matches a path.

    Rules run in declaration order, each one seeing the previous output.
    """

    def __init__(self, rules: Iterable[TransformRule]):
        self.rules = [rule for rule in rules if _is_usable(rule)]

    def __bool__(self) -> bool:
        return bool(self.rules)

    def apply(self, value: Any, path: str) -> Any:
        result = value
        for rule in self.rules:
            if target_matches(rule, path):
                result = apply_transform(rule, result)
        return result


def describe_transform(rule: TransformRule) -> str:
    """Short human-readable summary of a rule, used in CLI output."""
    target = rule.target_path or "*"
    if rule.type is TransformType.ROUND:
        return f"round({target}, {rule.options.get('decimals', 'no decimals')})"
    if rule.type is TransformType.SORT_ARRAY:
        order = "desc" if rule.options.get("descending") else "asc"
        return f"sortArray({target}, {order})"
    return f"{rule.type.value}({target})"
