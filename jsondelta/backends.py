"""
Compute backends for diff jobs.

This module provides two ways of running one diff computation:
- InlineBackend runs the pipeline in the calling thread
- IsolatedBackend ships the documents to a worker process pool so large
  diffs never compete with the caller for the interpreter
"""

from __future__ import annotations

import multiprocessing
import pickle
import threading
from abc import ABC, abstractmethod
from concurrent.futures import CancelledError, Future, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from .cancellation import CancellationToken
from .engine import PROGRESS_DELTA, PROGRESS_PREPROCESSED, compute_diff
from .exceptions import ComputeError, JobCancelledError
from .log import get_logger
from .models import DiffOptions, DiffResult

logger = get_logger("backends")

ProgressCallback = Callable[[int], None]


class ComputeBackend(ABC):
    """Runs a single diff computation."""

    name: str = "backend"

    def is_available(self, options: DiffOptions) -> bool:
        return True

    @abstractmethod
    def compute(
        self,
        document_a: Any,
        document_b: Any,
        options: DiffOptions,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
        version_a: str = "",
        version_b: str = "",
    ) -> DiffResult:
        """Compute a diff, raising JobCancelledError if the token fires."""

    def shutdown(self) -> None:
        pass


class InlineBackend(ComputeBackend):
    """Runs the pipeline on the calling thread."""

    name = "inline"

    def compute(
        self,
        document_a: Any,
        document_b: Any,
        options: DiffOptions,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
        version_a: str = "",
        version_b: str = "",
    ) -> DiffResult:
        return compute_diff(
            document_a,
            document_b,
            options,
            version_a=version_a,
            version_b=version_b,
            token=token,
            on_progress=on_progress,
        )


def _compute_in_worker(
    document_a: Any,
    document_b: Any,
    options: DiffOptions,
    version_a: str,
    version_b: str,
) -> DiffResult:
    """Entry point executed inside the worker process."""
    return compute_diff(
        document_a,
        document_b,
        options,
        version_a=version_a,
        version_b=version_b,
    )


class IsolatedBackend(ComputeBackend):
    """
    Runs the pipeline in a process pool.

    The worker cannot see the cancellation token, so the calling thread
    polls the token while waiting and abandons the future when it fires.
    Options carrying unpicklable callables (lambdas, closures) make the
    backend unavailable for that call.
    """

    name = "isolated"

    def __init__(
        self,
        max_workers: int = 2,
        poll_interval: float = 0.05,
        mp_context: str = "spawn",
    ):
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self.mp_context = mp_context
        self._executor: Optional[ProcessPoolExecutor] = None
        self._lock = threading.Lock()
        self._closed = False

    def _get_executor(self) -> ProcessPoolExecutor:
        with self._lock:
            if self._closed:
                raise ComputeError("Isolated backend has been shut down", backend=self.name)
            if self._executor is None:
                self._executor = ProcessPoolExecutor(
                    max_workers=self.max_workers,
                    mp_context=multiprocessing.get_context(self.mp_context),
                )
                logger.debug("process_pool_started", max_workers=self.max_workers)
            return self._executor

    def is_available(self, options: DiffOptions) -> bool:
        if self._closed:
            return False
        try:
            pickle.dumps(options)
        except (pickle.PicklingError, AttributeError, TypeError) as e:
            logger.debug("options_not_transferable", error=str(e))
            return False
        return True

    def compute(
        self,
        document_a: Any,
        document_b: Any,
        options: DiffOptions,
        token: CancellationToken,
        on_progress: Optional[ProgressCallback] = None,
        version_a: str = "",
        version_b: str = "",
    ) -> DiffResult:
        token.raise_if_cancelled("start")

        future: Future = self._get_executor().submit(
            _compute_in_worker,
            document_a,
            document_b,
            options,
            version_a,
            version_b,
        )
        if on_progress is not None:
            on_progress(PROGRESS_PREPROCESSED)

        while True:
            if token.cancelled:
                future.cancel()
                raise JobCancelledError("delta")
            try:
                result = future.result(timeout=self.poll_interval)
                break
            except FutureTimeoutError:
                continue
            except CancelledError as e:
                raise JobCancelledError("delta") from e

        token.raise_if_cancelled("delta")
        if on_progress is not None:
            on_progress(PROGRESS_DELTA)
        return result

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
            logger.debug("process_pool_stopped")
