"""Execution contexts that receive work handed back from the background worker."""

import queue
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

import structlog

if TYPE_CHECKING:
    from callsync.models.lifecycle import RunResult
    from callsync.sync.lifecycle import RunHandle

log = structlog.stdlib.get_logger()

Task = Callable[[], None]


class CallerContext(ABC):
    """The owning ("main") context that pipeline results are delivered to."""

    @abstractmethod
    def post(self, task: Task) -> None:
        """Schedule ``task`` to run on this context. Tasks run in posting order."""


class InlineContext(CallerContext):
    """Runs posted tasks immediately on the posting thread.

    There is no hand-off: work posted by the background worker, including
    UiUpdate, Complete and listener notifications, runs on the worker.
    Only use it when the caller does not care which thread observes the run.
    """

    def post(self, task: Task) -> None:
        task()


class QueueContext(CallerContext):
    """Result channel drained by the owning thread.

    Posted tasks wait in a FIFO queue until the owner calls
    :meth:`run_pending` or :meth:`run_until_complete`, the way a UI event
    loop processes posted events.
    """

    def __init__(self) -> None:
        self._tasks: queue.Queue[Task] = queue.Queue()

    def post(self, task: Task) -> None:
        self._tasks.put(task)

    @property
    def pending(self) -> int:
        return self._tasks.qsize()

    def run_pending(self, timeout: float | None = 0) -> int:
        """
        Run queued tasks until the queue is empty.

        Args:
            timeout: Seconds to wait for the first task when the queue is
                     empty. ``0`` returns immediately, ``None`` waits forever.

        Returns:
            Number of tasks run
        """
        executed = 0
        try:
            if timeout == 0:
                task = self._tasks.get_nowait()
            else:
                task = self._tasks.get(timeout=timeout)
        except queue.Empty:
            return executed

        while True:
            task()
            executed += 1
            try:
                task = self._tasks.get_nowait()
            except queue.Empty:
                return executed

    def run_until_complete(
        self, handle: "RunHandle", timeout: float | None = None, poll_interval: float = 0.05
    ) -> "RunResult":
        """
        Pump the queue until ``handle``'s run delivers its result.

        Raises:
            TimeoutError: If the run does not complete within ``timeout`` seconds
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not handle.done():
            wait = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.error("run_wait_timed_out", run_id=handle.run_id, timeout=timeout)
                    raise TimeoutError(f"Run {handle.run_id} did not complete in {timeout}s")
                wait = min(wait, remaining)
            self.run_pending(timeout=wait)
        return handle.result(timeout=0)
