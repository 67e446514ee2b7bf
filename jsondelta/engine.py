"""Main diff engine for jsondelta."""

from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Callable, Optional

from .cancellation import CancellationToken
from .delta import DeltaConfig, compute_delta
from .exceptions import ComputeError, JobCancelledError
from .log import get_logger
from .models import DiffOptions, DiffResult, DiffStats, JsonVersion, Severity
from .preprocess import Preprocessor
from .tree import DiffTreeBuilder, count_nodes
from .utils import callable_ref
from .validation import validate_options

logger = get_logger("engine")

ProgressCallback = Callable[[int], None]

# Progress reported after each pipeline stage
PROGRESS_PREPROCESSED = 25
PROGRESS_DELTA = 75


def options_key(options: Optional[DiffOptions]) -> str:
    """
    Stable cache key for a set of options.

    Callables inside rule options are identified by module and qualified
    name, so two distinct lambdas in one module share a key.
    """
    options = options or DiffOptions()
    payload = json.dumps(
        options.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
        default=callable_ref,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class DiffEngine:
    """
    Orchestrates the diff pipeline:

    1. Preprocessing: drop ignored fields and apply transforms
    2. Delta: structural comparison with the configured array strategy
    3. Tree: convert the delta into a DiffNode tree

    Cancellation is checked before start, after preprocessing and after the
    delta; a cancelled computation raises JobCancelledError.
    """

    def __init__(self, options: Optional[DiffOptions] = None):
        self.options = options or DiffOptions()
        self.options_key = options_key(self.options)
        self.delta_config = DeltaConfig.from_options(self.options)

        for error in validate_options(self.options):
            if error.severity is Severity.ERROR:
                logger.warning("rule_skipped", rule_id=error.rule_id, reason=error.message)

    def compute(
        self,
        document_a: Any,
        document_b: Any,
        *,
        version_a: str = "",
        version_b: str = "",
        token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DiffResult:
        """
        Diff two documents.

        Raises:
            JobCancelledError: if the token is cancelled at a checkpoint
            ComputeError: on any unexpected internal failure
        """
        start_time = time.perf_counter()

        try:
            self._checkpoint(token, "start")

            preprocessor = Preprocessor(self.options)
            processed_a = preprocessor.process(document_a)
            processed_b = preprocessor.process(document_b)

            self._checkpoint(token, "preprocess")
            self._report(on_progress, PROGRESS_PREPROCESSED)

            delta = compute_delta(processed_a, processed_b, self.delta_config)

            self._checkpoint(token, "delta")
            self._report(on_progress, PROGRESS_DELTA)

            root = DiffTreeBuilder(self.delta_config.strategy).build(delta)
        except JobCancelledError:
            raise
        except Exception as e:
            logger.error("compute_failed", error=str(e), error_type=type(e).__name__)
            raise ComputeError(f"Diff computation failed: {e}") from e

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        return DiffResult(
            version_a=version_a,
            version_b=version_b,
            options_key=self.options_key,
            root=root,
            stats=DiffStats(nodes=count_nodes(root), compute_ms=duration_ms),
        )

    @staticmethod
    def _checkpoint(token: Optional[CancellationToken], name: str) -> None:
        if token is not None:
            token.raise_if_cancelled(name)

    @staticmethod
    def _report(on_progress: Optional[ProgressCallback], progress: int) -> None:
        if on_progress is not None:
            on_progress(progress)


def compute_diff(
    document_a: Any,
    document_b: Any,
    options: Optional[DiffOptions] = None,
    *,
    version_a: str = "",
    version_b: str = "",
    token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> DiffResult:
    """
    Convenience function to diff two documents.

    Args:
        document_a: The baseline document
        document_b: The document compared against it
        options: Diff options (defaults: index arrays, no rules)
        version_a: Id recorded for the baseline in the result
        version_b: Id recorded for the other document
        token: Optional cancellation token checked between stages
        on_progress: Optional callback receiving 25 and 75

    Returns:
        DiffResult with the tree and stats
    """
    engine = DiffEngine(options)
    return engine.compute(
        document_a,
        document_b,
        version_a=version_a,
        version_b=version_b,
        token=token,
        on_progress=on_progress,
    )


def compute_version_diff(
    version_a: JsonVersion,
    version_b: JsonVersion,
    options: Optional[DiffOptions] = None,
) -> DiffResult:
    """Diff the payloads of two versions, recording their ids in the result."""
    return compute_diff(
        version_a.payload,
        version_b.payload,
        options,
        version_a=version_a.id,
        version_b=version_b.id,
    )
