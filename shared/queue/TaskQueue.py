"""In-process indexing task queue.

A fixed pool of asyncio workers drains IndexingTasks. Failed jobs are retried
with exponential backoff unless the error is non-retryable; finished job
records are retained up to a bounded count so their state can be queried.
Job records live in memory only and do not survive a restart.
"""

import asyncio
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Awaitable, Callable

from shared.exceptions import DocumentNotFoundError, InvariantViolationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.indexing import IndexingJob, IndexingProgress, IndexingTask, JobState
from shared.queue.DocumentLocks import DocumentLocks

ProgressReporter = Callable[[IndexingProgress], Awaitable[None]]
TaskHandler = Callable[[IndexingTask, ProgressReporter], Awaitable[None]]

MAX_ATTEMPTS = 3          # total attempts per job, including the first one
BACKOFF_BASE = 2.0        # seconds; waits 2s, then 4s
KEEP_COMPLETED = 100      # completed job records kept for status queries
KEEP_FAILED = 500         # failed job records kept for status queries
NON_RETRYABLE: tuple[type[Exception], ...] = (DocumentNotFoundError, InvariantViolationError)


class TaskQueue:
    """Runs indexing tasks on a pool of asyncio workers."""

    def __init__(
        self,
        helper_config: HelperConfig,
        handler: TaskHandler,
        locks: DocumentLocks,
        workers: int | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE,
        keep_completed: int = KEEP_COMPLETED,
        keep_failed: int = KEEP_FAILED,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._handler = handler
        self._locks = locks
        self._worker_count = workers or int(helper_config.get_number_val("QUEUE_WORKERS", default=2))
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._keep_completed = keep_completed
        self._keep_failed = keep_failed

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._jobs: dict[str, IndexingJob] = {}
        self._waiting: dict[str, str] = {}  # document_id -> job_id, queued or backing off
        self._completed: deque[str] = deque()
        self._failed: deque[str] = deque()
        self._workers: list[asyncio.Task] = []
        self._retry_timers: set[asyncio.Task] = set()
        self._outstanding = 0
        self._idle = asyncio.Event()
        self._idle.set()

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [asyncio.create_task(self._worker(slot)) for slot in range(self._worker_count)]
        self.logging.info("Task queue started with %d worker(s)", self._worker_count)

    async def stop(self) -> None:
        tasks = list(self._workers) + list(self._retry_timers)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._retry_timers.clear()
        self.logging.info("Task queue stopped")

    async def wait_until_idle(self) -> None:
        """Block until no job is queued, running or waiting for a retry."""
        await self._idle.wait()

    ##########################################
    ################ PRODUCER ################
    ##########################################

    def enqueue(self, task: IndexingTask) -> IndexingJob:
        """Add a task to the queue.

        A document that is already waiting in the queue is not enqueued twice;
        the waiting job is returned instead.
        """
        existing_id = self._waiting.get(task.document_id)
        if existing_id is not None:
            self.logging.debug("Document %s already queued as job %s", task.document_id, existing_id)
            return self._jobs[existing_id]

        job = IndexingJob(job_id=uuid.uuid4().hex, task=task, enqueued_at=datetime.now(timezone.utc))
        self._jobs[job.job_id] = job
        self._waiting[task.document_id] = job.job_id
        self._outstanding += 1
        self._idle.clear()
        self._queue.put_nowait(job.job_id)
        self.logging.info("Enqueued indexing job %s for document %s", job.job_id, task.document_id)
        return job

    ##########################################
    ################# QUERY ##################
    ##########################################

    def get_job(self, job_id: str) -> IndexingJob | None:
        return self._jobs.get(job_id)

    def get_latest_job(self, document_id: str) -> IndexingJob | None:
        jobs = [j for j in self._jobs.values() if j.task.document_id == document_id]
        return max(jobs, key=lambda j: j.enqueued_at) if jobs else None

    ##########################################
    ################ WORKERS #################
    ##########################################

    async def _worker(self, slot: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                job = self._jobs.get(job_id)
                if job is not None:
                    await self._run_job(job, slot)
            finally:
                self._queue.task_done()

    async def _run_job(self, job: IndexingJob, slot: int) -> None:
        document_id = job.task.document_id
        self._waiting.pop(document_id, None)
        job.state = JobState.ACTIVE
        job.attempts_made += 1

        async def report_progress(progress: IndexingProgress) -> None:
            job.progress = progress
            self.logging.debug(
                "Job %s progress: stage=%s %d/%d (%d%%)",
                job.job_id, progress.stage.value, progress.chunks_processed, progress.total_chunks, progress.progress,
            )

        self.logging.info("Worker %d running job %s (attempt %d/%d)", slot, job.job_id, job.attempts_made, self._max_attempts)
        try:
            async with self._locks.hold(document_id):
                await self._handler(job.task, report_progress)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.error = str(e)
            if isinstance(e, NON_RETRYABLE) or job.attempts_made >= self._max_attempts:
                self.logging.error("Job %s failed after %d attempt(s): %s", job.job_id, job.attempts_made, e)
                self._finish(job, JobState.FAILED)
            else:
                self._schedule_retry(job)
            return

        job.error = None
        self.logging.info("Job %s completed", job.job_id)
        self._finish(job, JobState.COMPLETED)

    def _schedule_retry(self, job: IndexingJob) -> None:
        delay = self._backoff_base * (2 ** (job.attempts_made - 1))
        job.state = JobState.QUEUED
        self._waiting[job.task.document_id] = job.job_id
        self.logging.warning("Job %s failed (%s), retrying in %.1fs", job.job_id, job.error, delay)

        async def requeue() -> None:
            await asyncio.sleep(delay)
            self._queue.put_nowait(job.job_id)

        timer = asyncio.create_task(requeue())
        self._retry_timers.add(timer)
        timer.add_done_callback(self._retry_timers.discard)

    def _finish(self, job: IndexingJob, state: JobState) -> None:
        job.state = state
        job.finished_at = datetime.now(timezone.utc)
        retained, limit = (self._completed, self._keep_completed) if state == JobState.COMPLETED else (self._failed, self._keep_failed)
        retained.append(job.job_id)
        while len(retained) > limit:
            self._jobs.pop(retained.popleft(), None)

        self._outstanding -= 1
        if self._outstanding == 0:
            self._idle.set()
