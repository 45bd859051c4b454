"""
Crawl task queue and bounded-concurrency worker pool.

The pool pulls tasks from a FIFO queue (with optional forefront insertion),
runs the handler for each under a semaphore and a per-task timeout, retries
failures with exponential backoff and reports terminal failures to a
callback. The crawl ends when the queue is drained or the configured
maximum number of tasks has been started.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, Optional, Set, Union

from loguru import logger

from harvest.contexts.routing import RouteLabel

Handler = Callable[["CrawlTask"], Awaitable[None]]
FailureCallback = Callable[["CrawlTask", BaseException], Union[None, Awaitable[None]]]


@dataclass
class CrawlTask:
    """
    A URL to crawl.

    ``user_data`` carries pagination state (``listing_page_num``) and, for
    detail pages reached from a listing row, the row as ``partial_record``.
    """

    url: str
    label: Optional[RouteLabel] = None
    user_data: Dict[str, Any] = field(default_factory=dict)
    retry_count: int = 0

    @property
    def unique_key(self) -> str:
        label = self.label.value if self.label else ""
        return f"{label}|{self.url}"


class TaskQueue:
    """FIFO of crawl tasks, deduplicated by ``unique_key``."""

    def __init__(self):
        self._pending: Deque[CrawlTask] = deque()
        self._seen: Set[str] = set()
        self.total_added = 0

    def add(self, tasks: Iterable[CrawlTask], forefront: bool = False) -> int:
        """
        Enqueue tasks not seen before in this run.

        Returns:
            Number of tasks actually added
        """
        new_tasks = []
        for task in tasks:
            if task.unique_key in self._seen:
                logger.debug(f"[Queue] Skipping duplicate task {task.unique_key}")
                continue
            self._seen.add(task.unique_key)
            new_tasks.append(task)

        if forefront:
            self._pending.extendleft(reversed(new_tasks))
        else:
            self._pending.extend(new_tasks)

        self.total_added += len(new_tasks)
        return len(new_tasks)

    def reclaim(self, task: CrawlTask) -> None:
        """Put a failed task back for another attempt (bypasses deduplication)."""
        self._pending.append(task)

    def fetch_next(self) -> Optional[CrawlTask]:
        return self._pending.popleft() if self._pending else None

    def __len__(self) -> int:
        return len(self._pending)


@dataclass
class PoolStats:
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"started": self.started, "succeeded": self.succeeded, "failed": self.failed, "retried": self.retried}


class WorkerPool:
    """
    Run handlers for queued tasks with bounded concurrency.

    Args:
        queue: Task source; handlers may add more tasks while the pool runs
        handler: Coroutine run for each task
        max_concurrency: Maximum number of handlers running at once
        task_timeout: Seconds before a handler is cancelled (a callable may
            return a per-task value)
        max_retries: Attempts after the first failure before giving up
        retry_backoff: Base delay in seconds, doubled after every retry
        max_tasks: Stop starting new tasks after this many (retries excluded)
        on_failure: Called with the task and the last error on terminal failure
    """

    def __init__(
        self,
        queue: TaskQueue,
        handler: Handler,
        *,
        max_concurrency: int = 5,
        task_timeout: Union[float, Callable[[CrawlTask], float]] = 60.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        max_tasks: Optional[int] = None,
        on_failure: Optional[FailureCallback] = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive number")
        self.queue = queue
        self.handler = handler
        self.max_concurrency = max_concurrency
        self.task_timeout = task_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.max_tasks = max_tasks
        self.on_failure = on_failure
        self.stats = PoolStats()
        self._stopped = False

    def _timeout_for(self, task: CrawlTask) -> float:
        if callable(self.task_timeout):
            return self.task_timeout(task)
        return self.task_timeout

    def stop(self) -> None:
        """Start no further tasks. Running tasks finish normally."""
        self._stopped = True

    def _limit_reached(self) -> bool:
        return self.max_tasks is not None and self.stats.started >= self.max_tasks

    async def run(self) -> PoolStats:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        running: Set[asyncio.Task] = set()

        while True:
            # Take a slot before taking a task, so a stop() while waiting is honoured
            await semaphore.acquire()
            task = None
            if not self._stopped and not self._limit_reached():
                task = self.queue.fetch_next()

            if task is None:
                semaphore.release()
                if not running:
                    break
                # Running handlers may enqueue more work; wait for one to finish
                await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                continue

            if task.retry_count == 0:
                self.stats.started += 1

            worker = asyncio.create_task(self._run_task(task))
            running.add(worker)
            worker.add_done_callback(running.discard)
            worker.add_done_callback(lambda _: semaphore.release())

        if self._limit_reached() and len(self.queue):
            logger.info(f"[Pool] Reached maximum of {self.max_tasks} tasks, {len(self.queue)} task(s) left unprocessed")

        logger.info(f"[Pool] Finished: {self.stats.as_dict()}")
        return self.stats

    async def _run_task(self, task: CrawlTask) -> None:
        try:
            await asyncio.wait_for(self.handler(task), timeout=self._timeout_for(task))
        except Exception as error:
            if isinstance(error, asyncio.TimeoutError):
                error = TimeoutError(f"Task timed out after {self._timeout_for(task)}s (URL: {task.url})")

            retryable = getattr(error, "retryable", True)
            if retryable and task.retry_count < self.max_retries:
                task.retry_count += 1
                self.stats.retried += 1
                wait_time = self.retry_backoff * (2 ** (task.retry_count - 1))
                logger.warning(
                    f"[Pool] Task failed ({type(error).__name__}: {error}), "
                    f"retry {task.retry_count}/{self.max_retries} in {wait_time}s. URL: {task.url}"
                )
                await asyncio.sleep(wait_time)
                self.queue.reclaim(task)
                return

            self.stats.failed += 1
            logger.error(f"[Pool] Task failed permanently after {task.retry_count + 1} attempt(s). URL: {task.url}")
            if self.on_failure is not None:
                result = self.on_failure(task, error)
                if asyncio.iscoroutine(result):
                    await result
            return

        self.stats.succeeded += 1
