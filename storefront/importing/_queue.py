"""
Import queue — worker pool that runs import jobs off the request path.

    queue = ImportQueue(controller, workers=2, max_attempts=2)
    await queue.start()

    queue.submit(ImportTask(job_id, store_id))   # returns immediately
    ...
    await queue.stop()                           # drains, then stops workers

Nothing is fire-and-forget: an exception escaping a job is logged with its
traceback, the task is redelivered until max_attempts, and every finished
delivery leaves a TaskOutcome behind. Only the latest outcome_history
outcomes are kept; pass a listener to see all of them.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace

import structlog

from storefront.importing._controller import ImportJobController
from storefront.importing._types import JobStatus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ImportTask:
    job_id: str
    store_id: str
    attempt: int = 1


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    """
    One delivery of one task.

    Note: status is None when the job was not pending (nothing to do) or
    when the delivery crashed; error is set only in the latter case.
    """

    task: ImportTask
    status: JobStatus | None
    error: str | None = None
    redelivered: bool = False

    @property
    def crashed(self) -> bool:
        return self.error is not None


type OutcomeListener = Callable[[TaskOutcome], None]


class ImportQueue:
    def __init__(
        self,
        controller: ImportJobController,
        *,
        workers: int = 2,
        max_attempts: int = 2,
        retry_delay: float = 0.0,
        listener: OutcomeListener | None = None,
        outcome_history: int = 1000,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._controller = controller
        self._workers = workers
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._listener = listener
        self._queue: asyncio.Queue[ImportTask] = asyncio.Queue()
        self._tasks: list[asyncio.Task[None]] = []
        self._outcomes: deque[TaskOutcome] = deque(maxlen=outcome_history)
        self._closed = False

    @property
    def outcomes(self) -> tuple[TaskOutcome, ...]:
        return tuple(self._outcomes)

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ═══════════════════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        if self._tasks:
            return
        self._closed = False
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"import-worker-{n}")
            for n in range(self._workers)
        ]
        logger.info("Import queue started", workers=self._workers)

    def submit(self, task: ImportTask) -> None:
        """Enqueue without waiting for processing."""
        if self._closed:
            raise RuntimeError("Import queue is stopped")
        self._queue.put_nowait(task)
        logger.debug("Import task queued", job_id=task.job_id)

    async def join(self) -> None:
        """Wait until every submitted task, redeliveries included, is done."""
        await self._queue.join()

    async def stop(self, *, drain: bool = True) -> None:
        self._closed = True
        if drain and self._tasks:
            await self._queue.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Import queue stopped", undelivered=self._queue.qsize())

    async def __aenter__(self) -> ImportQueue:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    # ═══════════════════════════════════════════════════════════════════════════
    # Workers
    # ═══════════════════════════════════════════════════════════════════════════

    async def _worker(self, n: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                self._record(await self._deliver(task))
            finally:
                self._queue.task_done()

    async def _deliver(self, task: ImportTask) -> TaskOutcome:
        try:
            status = await self._controller.start_import(task.job_id, task.store_id)
        except Exception as e:
            retry = task.attempt < self._max_attempts
            logger.exception(
                "Import task crashed",
                job_id=task.job_id,
                attempt=task.attempt,
                max_attempts=self._max_attempts,
                redelivering=retry,
            )
            if retry:
                if self._retry_delay > 0:
                    await asyncio.sleep(self._retry_delay)
                self._queue.put_nowait(replace(task, attempt=task.attempt + 1))
            return TaskOutcome(task=task, status=None, error=repr(e), redelivered=retry)
        return TaskOutcome(task=task, status=status)

    def _record(self, outcome: TaskOutcome) -> None:
        self._outcomes.append(outcome)
        if self._listener is not None:
            self._listener(outcome)


__all__ = ("ImportTask", "TaskOutcome", "OutcomeListener", "ImportQueue")
