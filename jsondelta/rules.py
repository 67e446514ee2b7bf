"""Ignore-rule matching for document paths."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional

from .models import DiffError, ErrorType, IgnoreRule, IgnoreRuleType


# Cache for compiled glob patterns
@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern:
    """
    Compile a glob pattern into an anchored regex.

    ``*`` matches any run of characters (dots included), ``?`` matches a
    single character and everything else is literal.
    """
    escaped = re.escape(pattern)
    escaped = escaped.replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$", re.DOTALL)


# Cache for compiled regex patterns
@lru_cache(maxsize=256)
def compile_regex(pattern: str) -> Optional[re.Pattern]:
    """Compile and cache a regex pattern. Returns None if it does not compile."""
    try:
        return re.compile(pattern)
    except re.error:
        return None


def is_glob(pattern: str) -> bool:
    """Check whether a target path should be treated as a glob."""
    return "*" in pattern or "?" in pattern


def matches_glob(path: str, pattern: str) -> bool:
    return compile_glob(pattern).match(path) is not None


def matches_regex(path: str, pattern: str) -> bool:
    """Unanchored regex search. Invalid patterns never match."""
    compiled = compile_regex(pattern)
    if compiled is None:
        return False
    return compiled.search(path) is not None


def rule_matches(rule: IgnoreRule, path: str) -> bool:
    """Check if a single ignore rule matches the given path."""
    if rule.type is IgnoreRuleType.KEY_PATH:
        return path == rule.pattern
    elif rule.type is IgnoreRuleType.GLOB:
        return matches_glob(path, rule.pattern)
    elif rule.type is IgnoreRuleType.REGEX:
        return matches_regex(path, rule.pattern)
    return False


def validate_ignore_rule(rule: IgnoreRule) -> Optional[DiffError]:
    """Validate an ignore rule, returning an error description or None."""
    if not rule.pattern or not rule.pattern.strip():
        return DiffError(
            type=ErrorType.TRANSFORM,
            message="Ignore rule pattern cannot be empty",
            details={"rule": rule.to_dict()},
            rule_id=rule.id,
        )

    if rule.type is IgnoreRuleType.REGEX:
        try:
            re.compile(rule.pattern)
        except re.error as e:
            return DiffError(
                type=ErrorType.TRANSFORM,
                message=f"Invalid regex pattern in rule '{rule.id}': {e}",
                details={"rule": rule.to_dict(), "error": str(e)},
                rule_id=rule.id,
            )

    return None


def active_ignore_rules(rules: Iterable[IgnoreRule]) -> list[IgnoreRule]:
    """Enabled rules that passed validation."""
    return [
        rule for rule in rules
        if rule.enabled and validate_ignore_rule(rule) is None
    ]


def should_ignore(path: str, rules: Iterable[IgnoreRule]) -> bool:
    """
    Check if any enabled ignore rule matches the path.

    Rules with problems simply never match; they are reported through
    validate_ignore_rule instead of raising here.
    """
    for rule in rules:
        if rule.enabled and rule.pattern and rule_matches(rule, path):
            return True
    return False
