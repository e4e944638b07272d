"""Bounded concurrent runner for indexed tasks.

``TaskPool`` runs ``count`` tasks, identified by their index, with at most
``limit`` of them in flight. Each of the ``limit`` lanes repeatedly claims the
next unclaimed index and runs the task for it. A task reports one of four
outcomes:

- COMPLETE: store the value at the task's index
- IGNORE: discard the value
- ERROR: abort the run and re-raise the error to the caller
- SHORT_CIRCUIT: store the value, then stop every lane from claiming more work

Short-circuiting is cooperative. Tasks already running are not interrupted,
but whatever they return afterwards is discarded, so the short-circuited value
always wins.

Example:
    >>> def task(i):
    ...     return TaskResult.short_circuit(i) if i == 2 else TaskResult.ignore()
    >>> TaskPool(task, count=9, limit=4).latest()
    2
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskResultStatus(Enum):
    """Outcome of one task."""

    COMPLETE = "complete"
    IGNORE = "ignore"
    ERROR = "error"
    SHORT_CIRCUIT = "short_circuit"


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    """Outcome of one task together with its value or error.

    Use the constructors ``complete``, ``ignore``, ``error`` and
    ``short_circuit`` rather than building instances directly.
    """

    status: TaskResultStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def complete(cls, value: T) -> "TaskResult[T]":
        return cls(TaskResultStatus.COMPLETE, value=value)

    @classmethod
    def ignore(cls) -> "TaskResult[T]":
        return cls(TaskResultStatus.IGNORE)

    @classmethod
    def error(cls, error: BaseException) -> "TaskResult[T]":
        return cls(TaskResultStatus.ERROR, error=error)

    @classmethod
    def short_circuit(cls, value: T) -> "TaskResult[T]":
        return cls(TaskResultStatus.SHORT_CIRCUIT, value=value)


class _Tracker(Generic[T]):
    """State shared by the lanes of one run."""

    def __init__(self, target: int):
        self.lock = threading.Lock()
        self.index = 0
        self.target = target
        self.short_circuit = False
        self.aborted = False
        self.values: Dict[int, T] = {}
        self.latest: Optional[T] = None

    def claim(self) -> Optional[int]:
        with self.lock:
            if self.short_circuit or self.aborted or self.index >= self.target:
                return None
            index = self.index
            self.index += 1
            return index

    def store(self, index: int, value: T, short_circuit: bool) -> bool:
        """Store a value unless a short circuit already happened."""
        with self.lock:
            if self.short_circuit:
                return False
            self.values[index] = value
            self.latest = value
            if short_circuit:
                self.short_circuit = True
            return True

    def is_short_circuited(self) -> bool:
        with self.lock:
            return self.short_circuit


class TaskPool(Generic[T]):
    """Runs indexed tasks with a hard concurrency ceiling.

    Args:
        task: Callable taking the task index and returning a TaskResult. It
            runs on a lane thread and may block (e.g. on a recognition future).
        count: Number of tasks.
        limit: Maximum number of tasks in flight. Usually the size of the
            recognition pool the tasks submit to.
    """

    def __init__(self, task: Callable[[int], TaskResult[T]], count: int, limit: int = 4):
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.task = task
        self.count = count
        self.limit = limit

    def _lane(self, tracker: _Tracker[T]) -> None:
        while True:
            index = tracker.claim()
            if index is None:
                return
            result = self.task(index)
            if tracker.is_short_circuited():
                return
            if result.status is TaskResultStatus.COMPLETE:
                tracker.store(index, result.value, short_circuit=False)
            elif result.status is TaskResultStatus.SHORT_CIRCUIT:
                if tracker.store(index, result.value, short_circuit=True):
                    logger.debug(f"Task {index} short-circuited the pool")
                return
            elif result.status is TaskResultStatus.ERROR:
                raise result.error if result.error is not None else RuntimeError(
                    f"Task {index} failed without an error"
                )

    def _execute(self) -> _Tracker[T]:
        tracker: _Tracker[T] = _Tracker(self.count)
        lanes = min(self.limit, self.count)
        if lanes == 0:
            return tracker

        executor = ThreadPoolExecutor(max_workers=lanes, thread_name_prefix="indodoc-taskpool")
        pending: "set[Future[None]]" = {executor.submit(self._lane, tracker) for _ in range(lanes)}
        try:
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    error = future.exception()
                    if error is not None:
                        with tracker.lock:
                            tracker.aborted = True
                        raise error
                # End as soon as the short circuit is raised
                if tracker.is_short_circuited():
                    break
        finally:
            # Lanes still running finish their current task and then stop claiming
            executor.shutdown(wait=False)
        return tracker

    def run(self) -> List[T]:
        """Values of all stored tasks in index order.

        Raises:
            Exception: The first error reported by a task.
        """
        tracker = self._execute()
        with tracker.lock:
            return [tracker.values[i] for i in sorted(tracker.values)]

    def latest(self) -> Optional[T]:
        """The most recently stored value, or the short-circuited value if there was one.

        Returns:
            The value, or None when every task was ignored.

        Raises:
            Exception: The first error reported by a task.
        """
        tracker = self._execute()
        with tracker.lock:
            return tracker.latest
