"""
Timer service shared by all timers of one connection.

A TimeoutManager runs a single daemon worker thread that sleeps until the
earliest due TimeoutTask and then runs its callback. Tasks carry an identity;
submitting a task whose identity is already scheduled purges the earlier
instance, so at most one live task exists per identity. Cancelled tasks stay
in the heap and are discarded lazily when they surface.
"""

import heapq
import itertools
import threading
import time
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from iec60870py.utils.logging import get_logger


class TimeoutTask:
    """
    A one-shot timer.

    Args:
        timeout: Delay in seconds, measured from submission
        callback: Callable run on the manager's worker thread
        identity: Stable key for deduplication (defaults to the task itself)
    """

    def __init__(
        self,
        timeout: float,
        callback: Callable[[], None],
        identity: Optional[Hashable] = None,
    ):
        self.timeout = timeout
        self.identity = identity if identity is not None else id(self)
        self._callback = callback
        self.due_time: float = 0.0
        self.cancelled = False
        self.done = False

    def update_due_time(self) -> None:
        self.due_time = time.monotonic() + self.timeout

    def cancel(self) -> None:
        """Mark the task inert. A task already handed to the worker runs as a no-op."""
        self.cancelled = True

    @property
    def is_planned(self) -> bool:
        """True while the task is scheduled and neither cancelled nor executed."""
        return not self.cancelled and not self.done

    def sleep_time_from_due_time(self) -> float:
        return self.due_time - time.monotonic()

    def execute(self) -> None:
        if self.cancelled:
            return
        try:
            self._callback()
        finally:
            self.done = True

    def __repr__(self) -> str:
        return (
            f"TimeoutTask(identity={self.identity!r}, timeout={self.timeout}, "
            f"cancelled={self.cancelled}, done={self.done})"
        )


class TimeoutManager:
    """
    Priority-ordered timer queue with a dedicated worker thread.

    Usage:
        manager = TimeoutManager(name="conn-1")
        manager.start()
        manager.add_timer_task(TimeoutTask(1.0, on_expiry, identity="t1"))
        ...
        manager.cancel()
    """

    def __init__(self, name: str = "iec60870-timeout"):
        self._name = name
        self._condition = threading.Condition()
        self._queue: List[Tuple[float, int, TimeoutTask]] = []
        self._handles: Dict[Hashable, TimeoutTask] = {}
        self._counter = itertools.count()
        self._canceled = False
        self._thread: Optional[threading.Thread] = None
        self._logger = get_logger()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._canceled

    def start(self) -> None:
        """Start the worker thread."""
        with self._condition:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def add_timer_task(self, task: TimeoutTask) -> TimeoutTask:
        """
        Schedule task, replacing any live task with the same identity.

        Returns:
            The submitted task (its handle for later cancellation)
        """
        with self._condition:
            previous = self._handles.pop(task.identity, None)
            if previous is not None and previous is not task:
                previous.cancel()
            task.cancelled = False
            task.done = False
            task.update_due_time()
            self._handles[task.identity] = task
            heapq.heappush(self._queue, (task.due_time, next(self._counter), task))
            self._condition.notify_all()
        return task

    def cancel_task(self, identity: Hashable) -> None:
        """Cancel the live task registered under identity, if any."""
        with self._condition:
            task = self._handles.pop(identity, None)
            if task is not None:
                task.cancel()
                self._condition.notify_all()

    def get_task(self, identity: Hashable) -> Optional[TimeoutTask]:
        with self._condition:
            task = self._handles.get(identity)
            if task is not None and task.is_planned:
                return task
            return None

    def pending_count(self) -> int:
        """Number of live (planned) tasks."""
        with self._condition:
            return sum(1 for task in self._handles.values() if task.is_planned)

    def cancel(self) -> None:
        """Stop the worker and cancel every scheduled task. Safe to call from a callback."""
        with self._condition:
            self._canceled = True
            for task in self._handles.values():
                task.cancel()
            self._handles.clear()
            self._queue.clear()
            self._condition.notify_all()

    def _next_due_task(self) -> Optional[TimeoutTask]:
        """Block until a task is due; returns None once the manager is cancelled."""
        with self._condition:
            while not self._canceled:
                while self._queue and self._is_stale(self._queue[0]):
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._condition.wait()
                    continue
                task = self._queue[0][2]
                delay = task.sleep_time_from_due_time()
                if delay > 0:
                    self._condition.wait(delay)
                    continue
                heapq.heappop(self._queue)
                if self._handles.get(task.identity) is task:
                    del self._handles[task.identity]
                return task
            return None

    @staticmethod
    def _is_stale(entry: Tuple[float, int, TimeoutTask]) -> bool:
        # A resubmitted task leaves its old heap entry behind with an outdated due time
        due_time, _, task = entry
        return task.cancelled or due_time != task.due_time

    def _run(self) -> None:
        while True:
            task = self._next_due_task()
            if task is None:
                return
            try:
                task.execute()
            except Exception:
                # One failing callback must not stop the other timers
                self._logger.exception(f"Timer task {task.identity!r} failed")
