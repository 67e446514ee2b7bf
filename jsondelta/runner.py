"""File-based runner: loads documents and rule files from disk."""

from __future__ import annotations

import importlib
import json
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from .engine import compute_version_diff
from .exceptions import ParseError, RuleError
from .models import DiffError, DiffOptions, DiffResult, JsonVersion, SourceType, VersionSource
from .validation import validate_options

# Rule options that name a callable as "module:attribute"
CALLABLE_OPTIONS = ("transform", "compare")


def resolve_callable(ref: str) -> Callable:
    """
    Import a callable from a ``package.module:attribute`` reference.

    Raises:
        ParseError: if the reference is malformed or cannot be imported
    """
    module_name, sep, attr_path = ref.partition(":")
    if not sep or not module_name or not attr_path:
        raise ParseError(f"Invalid callable reference '{ref}', expected 'module:attribute'")

    try:
        obj: Any = importlib.import_module(module_name)
        for part in attr_path.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise ParseError(f"Cannot import '{ref}': {e}") from e

    if not callable(obj):
        raise ParseError(f"'{ref}' is not callable")
    return obj


def load_document(path: str | Path) -> Any:
    """Load a JSON document from disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Document not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ParseError(
                f"Failed to parse JSON document: {e.msg}",
                source=str(path),
                line=e.lineno,
                column=e.colno,
            ) from e


def _resolve_rule_callables(rules: list) -> None:
    for rule in rules:
        options = rule.get("options") if isinstance(rule, dict) else None
        if not isinstance(options, dict):
            continue
        for name in CALLABLE_OPTIONS:
            if isinstance(options.get(name), str):
                options[name] = resolve_callable(options[name])


def parse_options(data: Optional[dict], source: Optional[str] = None) -> DiffOptions:
    """Build DiffOptions from the camelCase mapping used in rule files."""
    if data is None:
        return DiffOptions()
    if not isinstance(data, dict):
        raise ParseError("Rule file must contain a mapping", source=source)

    _resolve_rule_callables(data.get("transformRules") or data.get("transform_rules") or [])
    try:
        return DiffOptions.from_dict(data)
    except (RuleError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise ParseError(f"Invalid rule file: {e}", source=source) from e


def load_options(path: str | Path) -> DiffOptions:
    """Load diff options from a YAML or JSON rule file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rule file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    # YAML also handles JSON since JSON is valid YAML
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise ParseError(
            f"Failed to parse rule file: {e}",
            source=str(path),
            line=mark.line + 1 if mark else None,
            column=mark.column + 1 if mark else None,
        ) from e

    return parse_options(data, source=str(path))


class DiffRunner:
    """
    Diffs JSON files using options loaded from a rule file.

    Usage:
        runner = DiffRunner("rules.yaml")
        result = runner.diff_files("before.json", "after.json")

    Or as a one-liner:
        result = DiffRunner.run("before.json", "after.json", "rules.yaml")
    """

    def __init__(
        self,
        rules_path: Optional[str | Path] = None,
        options: Optional[DiffOptions] = None,
    ):
        """
        Initialize the runner.

        Args:
            rules_path: Path to a YAML/JSON rule file
            options: Options to use directly instead of a rule file
        """
        self.rules_path = Path(rules_path) if rules_path else None
        self._options = options

    @property
    def options(self) -> DiffOptions:
        """Load and cache the options from the rule file."""
        if self._options is None:
            self._options = load_options(self.rules_path) if self.rules_path else DiffOptions()
        return self._options

    def validate(self) -> list[DiffError]:
        return validate_options(self.options)

    def load_version(self, path: str | Path) -> JsonVersion:
        path = Path(path)
        return JsonVersion.create(
            load_document(path),
            label=path.name,
            source=VersionSource(type=SourceType.FILE, ref=str(path)),
        )

    def diff_files(self, path_a: str | Path, path_b: str | Path) -> DiffResult:
        """Diff two JSON files."""
        version_a = self.load_version(path_a)
        version_b = self.load_version(path_b)
        return compute_version_diff(version_a, version_b, self.options)

    @classmethod
    def run(
        cls,
        path_a: str | Path,
        path_b: str | Path,
        rules_path: Optional[str | Path] = None,
    ) -> DiffResult:
        """Convenience class method to diff two files in one call."""
        return cls(rules_path).diff_files(path_a, path_b)
