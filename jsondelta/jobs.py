"""
Job queue for background diff computations.

This module provides a ThreadPoolExecutor-based queue that:
- Runs each submitted diff on its own thread, bounded by max_queue_size
- Lets at most max_concurrent_jobs be running at once; the rest poll for a slot
- Picks the inline or isolated backend per job by document size
- Reports progress events and supports cooperative cancellation
- Retains finished jobs for a short while so callers can read their status
"""

from __future__ import annotations

import dataclasses
import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .backends import ComputeBackend, InlineBackend, IsolatedBackend
from .cancellation import CancellationToken
from .exceptions import (
    ComputeError,
    JobCancelledError,
    JobNotFoundError,
    QueueFullError,
    ValidationError,
)
from .log import get_logger
from .models import (
    DiffOptions,
    EngineConfig,
    JobState,
    JobStatus,
    ProgressEvent,
    ProgressType,
    QueueStats,
)
from .utils import deep_copy, estimate_json_size

logger = get_logger("jobs")

ProgressListener = Callable[[ProgressEvent], None]


@dataclass
class _Job:
    status: JobStatus
    token: CancellationToken
    done: threading.Event
    on_progress: Optional[ProgressListener] = None


class JobQueue:
    """
    Queue of diff jobs with concurrency limits and cancellation.

    Lifecycle: pending -> running -> completed | cancelled | error, and
    pending -> cancelled. A job cancelled while finishing never reports
    completed.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        inline_backend: Optional[ComputeBackend] = None,
        isolated_backend: Optional[ComputeBackend] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the queue.

        Args:
            config: Queue configuration (uses defaults if not provided)
            inline_backend: Backend for small documents
            isolated_backend: Backend for large documents; created from the
                config when use_isolated is set and none is given
            clock: Time source for retention bookkeeping
        """
        self.config = config or EngineConfig()
        if self.config.max_concurrent_jobs < 1 or self.config.max_queue_size < 1:
            raise ValidationError(
                "max_concurrent_jobs and max_queue_size must be at least 1",
                {
                    "max_concurrent_jobs": self.config.max_concurrent_jobs,
                    "max_queue_size": self.config.max_queue_size,
                },
            )
        self.inline_backend = inline_backend or InlineBackend()
        if not self.config.use_isolated:
            isolated_backend = None
        elif isolated_backend is None:
            isolated_backend = IsolatedBackend(max_workers=self.config.isolated_workers)
        self.isolated_backend = isolated_backend
        self._clock = clock

        self._lock = threading.Lock()
        self._jobs: dict[str, _Job] = {}
        self._running: set[str] = set()
        self._counter = itertools.count(1)
        self._closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_queue_size,
            thread_name_prefix="jsondelta-job",
        )

    def __enter__(self) -> JobQueue:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(
        self,
        document_a: Any,
        document_b: Any,
        options: Optional[DiffOptions] = None,
        on_progress: Optional[ProgressListener] = None,
        version_a: str = "",
        version_b: str = "",
    ) -> str:
        """
        Submit a diff job.

        Both documents are copied, so the caller may keep mutating its own.

        Returns:
            The new job id

        Raises:
            QueueFullError: if max_queue_size jobs are already pending or running
        """
        options = options or DiffOptions()
        document_a = deep_copy(document_a)
        document_b = deep_copy(document_b)

        with self._lock:
            if self._closed:
                raise ComputeError("Job queue has been shut down")
            self._purge_locked()

            active = sum(1 for job in self._jobs.values() if not job.status.is_terminal)
            if active >= self.config.max_queue_size:
                raise QueueFullError(self.config.max_queue_size)

            job_id = f"job_{int(time.time() * 1000)}_{next(self._counter)}"
            job = _Job(
                status=JobStatus(id=job_id, submitted_at=time.time()),
                token=CancellationToken(),
                done=threading.Event(),
                on_progress=on_progress,
            )
            self._jobs[job_id] = job

        self._executor.submit(
            self._run_job, job, document_a, document_b, options, version_a, version_b
        )
        logger.info("job_submitted", job_id=job_id)
        return job_id

    def cancel(self, job_id: str) -> bool:
        """
        Cancel a pending or running job.

        Returns:
            False if the job is unknown or already finished
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.is_terminal:
                return False

            was_pending = job.status.status is JobState.PENDING
            job.token.cancel("cancelled by caller")
            job.status.status = JobState.CANCELLED
            if was_pending:
                job.status.finished_at = self._clock()
                job.done.set()

        logger.info("job_cancel_requested", job_id=job_id, was_pending=was_pending)
        return True

    def cancel_all(self) -> int:
        """Cancel every pending or running job. Returns how many were cancelled."""
        with self._lock:
            job_ids = [
                job_id for job_id, job in self._jobs.items()
                if not job.status.is_terminal
            ]
        return sum(1 for job_id in job_ids if self.cancel(job_id))

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        """Snapshot of a job's status, or None if unknown or purged."""
        with self._lock:
            self._purge_locked()
            job = self._jobs.get(job_id)
            if job is None:
                return None
            return dataclasses.replace(job.status)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> JobStatus:
        """
        Block until a job finishes or the timeout elapses.

        Returns:
            The job's status at return time, terminal unless timed out

        Raises:
            JobNotFoundError: if the job is unknown or already purged
        """
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        job.done.wait(timeout)
        with self._lock:
            return dataclasses.replace(job.status)

    def get_queue_stats(self) -> QueueStats:
        with self._lock:
            self._purge_locked()
            running = sum(
                1 for job in self._jobs.values() if job.status.status is JobState.RUNNING
            )
            pending = sum(
                1 for job in self._jobs.values() if job.status.status is JobState.PENDING
            )
            return QueueStats(
                total_jobs=len(self._jobs),
                running_jobs=running,
                pending_jobs=pending,
                max_concurrent_jobs=self.config.max_concurrent_jobs,
                max_queue_size=self.config.max_queue_size,
            )

    def shutdown(self, wait: bool = True) -> None:
        """Cancel outstanding jobs and release threads and worker processes."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        cancelled = self.cancel_all()
        self._executor.shutdown(wait=wait)
        if self.isolated_backend is not None:
            self.isolated_backend.shutdown()
        self.inline_backend.shutdown()
        logger.info("job_queue_stopped", cancelled=cancelled)

    def choose_backend(
        self,
        document_a: Any,
        document_b: Any,
        options: DiffOptions,
    ) -> ComputeBackend:
        """Pick the isolated backend for large documents when it can take the job."""
        if self.isolated_backend is None:
            return self.inline_backend

        size = estimate_json_size(document_a, document_b)
        if size <= self.config.max_in_thread_size:
            return self.inline_backend

        if not self.isolated_backend.is_available(options):
            logger.info("isolated_backend_unavailable", size=size)
            return self.inline_backend
        return self.isolated_backend

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def _run_job(
        self,
        job: _Job,
        document_a: Any,
        document_b: Any,
        options: DiffOptions,
        version_a: str,
        version_b: str,
    ) -> None:
        job_id = job.status.id
        try:
            if not self._acquire_slot(job):
                self._emit(job, ProgressEvent(ProgressType.CANCELLED, job_id))
                logger.info("job_cancelled", job_id=job_id, checkpoint="queued")
                return

            self._emit(job, ProgressEvent(ProgressType.START, job_id, progress=0))

            backend = self.choose_backend(document_a, document_b, options)
            with self._lock:
                job.status.backend = backend.name
            logger.info("job_started", job_id=job_id, backend=backend.name)

            result = backend.compute(
                document_a,
                document_b,
                options,
                job.token,
                on_progress=lambda progress: self._on_stage(job, progress),
                version_a=version_a,
                version_b=version_b,
            )

            with self._lock:
                completed = not job.token.cancelled
                if completed:
                    job.status.status = JobState.COMPLETED
                    job.status.progress = 100
                    job.status.result = result

            if completed:
                self._emit(job, ProgressEvent(ProgressType.PROGRESS, job_id, progress=100))
                self._emit(job, ProgressEvent(ProgressType.DONE, job_id, result=result))
                logger.info(
                    "job_completed",
                    job_id=job_id,
                    nodes=result.stats.nodes,
                    compute_ms=result.stats.compute_ms,
                )
            else:
                self._emit(job, ProgressEvent(ProgressType.CANCELLED, job_id))
                logger.info("job_cancelled", job_id=job_id, checkpoint="finish")

        except JobCancelledError as e:
            with self._lock:
                job.status.status = JobState.CANCELLED
            self._emit(job, ProgressEvent(ProgressType.CANCELLED, job_id))
            logger.info("job_cancelled", job_id=job_id, checkpoint=e.checkpoint)

        except Exception as e:
            with self._lock:
                failed = not job.token.cancelled
                if failed:
                    job.status.status = JobState.ERROR
                    job.status.error = str(e)
            if failed:
                self._emit(job, ProgressEvent(ProgressType.ERROR, job_id, error=str(e)))
                logger.error("job_failed", job_id=job_id, error=str(e), exc_info=True)
            else:
                self._emit(job, ProgressEvent(ProgressType.CANCELLED, job_id))

        finally:
            with self._lock:
                self._running.discard(job_id)
                job.status.finished_at = self._clock()
            job.done.set()

    def _acquire_slot(self, job: _Job) -> bool:
        """Wait for a running slot. Returns False if the job was cancelled first."""
        while True:
            with self._lock:
                if job.token.cancelled:
                    return False
                if len(self._running) < self.config.max_concurrent_jobs:
                    self._running.add(job.status.id)
                    job.status.status = JobState.RUNNING
                    job.status.started_at = time.time()
                    return True
            if job.token.wait(self.config.poll_interval):
                return False

    def _on_stage(self, job: _Job, progress: int) -> None:
        with self._lock:
            if job.status.status is not JobState.RUNNING:
                return
            job.status.progress = progress
        self._emit(job, ProgressEvent(ProgressType.PROGRESS, job.status.id, progress=progress))

    def _emit(self, job: _Job, event: ProgressEvent) -> None:
        if job.on_progress is None:
            return
        try:
            job.on_progress(event)
        except Exception as e:
            logger.warning(
                "progress_callback_failed",
                job_id=job.status.id,
                event_type=event.type.value,
                error=str(e),
            )

    def _purge_locked(self) -> None:
        """Drop finished jobs older than the retention window. Caller holds the lock."""
        now = self._clock()
        expired = [
            job_id for job_id, job in self._jobs.items()
            if job.status.is_terminal
            and job.status.finished_at is not None
            and job_id not in self._running
            and now - job.status.finished_at >= self.config.retention_seconds
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug("jobs_purged", count=len(expired))
