"""Validation pass over diff options."""

from __future__ import annotations

from .arrays import validate_array_strategy
from .models import DiffError, DiffOptions, ErrorType, Severity
from .rules import validate_ignore_rule
from .transforms import validate_transform_rule


def validate_options(options: DiffOptions) -> list[DiffError]:
    """
    Collect every problem with a set of diff options.

    Rules reported with ERROR severity are skipped by the engine; nothing
    here is ever raised during a diff.
    """
    errors: list[DiffError] = []

    for rule in options.ignore_rules:
        error = validate_ignore_rule(rule)
        if error:
            errors.append(error)

    for rule in options.transform_rules:
        errors.extend(validate_transform_rule(rule))

    strategy = validate_array_strategy(options)
    for message in strategy.errors:
        errors.append(DiffError(
            type=ErrorType.TRANSFORM,
            message=message,
            details={
                "arrayStrategy": options.array_strategy.value,
                "arrayKeyPath": options.array_key_path,
            },
        ))
    for message in strategy.suggestions:
        errors.append(DiffError(
            type=ErrorType.TRANSFORM,
            message=message,
            details={"arrayKeyPath": options.array_key_path},
            severity=Severity.INFO,
        ))

    return errors


def has_blocking_errors(errors: list[DiffError]) -> bool:
    return any(e.severity is Severity.ERROR for e in errors)
