"""Preprocessing: ignore rules and transforms applied before diffing."""

from __future__ import annotations

from typing import Any

from .log import get_logger
from .models import DiffOptions
from .rules import active_ignore_rules, should_ignore
from .transforms import TransformApplicator
from .utils import join_path

logger = get_logger("preprocess")


class Preprocessor:
    """
    Rebuilds a document with ignored fields removed and transforms applied.

    Operations:
    - Drop object members whose path matches an ignore rule
    - Apply transforms to every remaining value, containers before their
      contents so element rules see post-sort indices

    The input document is never mutated.
    """

    def __init__(self, options: DiffOptions):
        self.options = options
        self.ignore_rules = active_ignore_rules(options.ignore_rules)
        self.transforms = TransformApplicator(options.transform_rules)
        self.ignored_count = 0

    @property
    def is_noop(self) -> bool:
        return not self.ignore_rules and not self.transforms

    def process(self, data: Any) -> Any:
        """
        Preprocess one document.

        Returns:
            The rebuilt document, or the original document if anything
            goes wrong while rebuilding it
        """
        self.ignored_count = 0
        if self.is_noop:
            return data

        try:
            result = self._process_recursive(data, "")
        except Exception as e:
            logger.warning(
                "preprocess_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return data

        logger.debug("document_preprocessed", ignored_fields=self.ignored_count)
        return result

    def _process_recursive(self, data: Any, path: str) -> Any:
        data = self.transforms.apply(data, path)

        if isinstance(data, dict):
            result = {}
            for key, value in data.items():
                child_path = join_path(path, key)
                if should_ignore(child_path, self.ignore_rules):
                    self.ignored_count += 1
                    continue
                result[key] = self._process_recursive(value, child_path)
            return result

        if isinstance(data, list):
            # Array elements are never dropped, only their members
            return [
                self._process_recursive(item, join_path(path, i))
                for i, item in enumerate(data)
            ]

        return data


def preprocess(data: Any, options: DiffOptions) -> Any:
    """Convenience function to preprocess a single document."""
    return Preprocessor(options).process(data)
