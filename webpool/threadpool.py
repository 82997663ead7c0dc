"""A bounded task queue served by a self-sizing set of worker threads."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable

logger = logging.getLogger(__name__)

# How many threads the manager adds or retires per check.
_STEP = 1


class ThreadPool:
    """Run submitted callables on between ``min_threads`` and ``max_threads`` workers.

    A manager thread checks the pool every ``MANAGER_INTERVAL`` seconds.
    It adds a worker when more tasks are queued than there are idle workers,
    and retires one when fewer than half of the workers are busy.
    """

    MANAGER_INTERVAL = 1.0

    def __init__(self, max_threads: int, min_threads: int, queue_capacity: int) -> None:
        if max_threads < 1:
            raise ValueError("max_threads must be at least 1")
        if not 0 <= min_threads <= max_threads:
            raise ValueError("min_threads must be between 0 and max_threads")
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")

        self._max = max_threads
        self._min = min_threads
        self._capacity = queue_capacity
        self._tasks: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._workers: set[threading.Thread] = set()
        self._thread_count = 0
        self._busy = 0
        self._destroy = 0
        self._closed = False
        self._stop = threading.Event()

        self._manager = threading.Thread(target=self._manage, name="pool-manager", daemon=True)
        self._manager.start()
        with self._lock:
            for _ in range(min_threads):
                self._spawn()

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """Queue ``func(*args)``, blocking while the queue is full.

        Returns False, without queuing, once the pool has been shut down.
        """
        with self._lock:
            while len(self._tasks) >= self._capacity and not self._closed:
                self._not_full.wait()
            if self._closed:
                return False
            self._tasks.append((func, args))
            self._not_empty.notify()
            return True

    def busy_count(self) -> int:
        """Number of workers currently running a task."""
        with self._lock:
            return self._busy

    def thread_count(self) -> int:
        """Number of live worker threads."""
        with self._lock:
            return self._thread_count

    def shutdown(self) -> None:
        """Stop the pool, drop queued tasks and wait for the threads to end."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._tasks.clear()
            self._not_empty.notify_all()
            self._not_full.notify_all()
        self._stop.set()
        if self._manager is not threading.current_thread():
            self._manager.join()
        with self._lock:
            workers = list(self._workers)
        current = threading.current_thread()
        for worker in workers:
            if worker is not current:
                worker.join()

    def __enter__(self) -> ThreadPool:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _spawn(self) -> None:
        # Caller holds the lock.
        self._thread_count += 1
        worker = threading.Thread(target=self._work, name="pool-worker", daemon=True)
        self._workers.add(worker)
        worker.start()

    def _retire(self, worker: threading.Thread) -> None:
        # Caller holds the lock.
        self._thread_count -= 1
        self._workers.discard(worker)

    def _work(self) -> None:
        me = threading.current_thread()
        while True:
            with self._lock:
                while not self._tasks and not self._closed:
                    self._not_empty.wait()
                    if self._destroy > 0:
                        self._destroy -= 1
                        if self._thread_count > self._min:
                            self._retire(me)
                            return
                if self._closed:
                    self._retire(me)
                    return
                func, args = self._tasks.popleft()
                self._not_full.notify()
                self._busy += 1
            try:
                func(*args)
            except Exception:
                logger.exception("task %r failed", func)
            finally:
                with self._lock:
                    self._busy -= 1

    def _manage(self) -> None:
        while not self._stop.wait(self.MANAGER_INTERVAL):
            with self._lock:
                if self._closed:
                    return
                queued = len(self._tasks)
                threads = self._thread_count
                busy = self._busy

                if queued > threads - busy and threads < self._max:
                    added = 0
                    while added < _STEP and self._thread_count < self._max:
                        self._spawn()
                        added += 1

                if busy * 2 < threads and threads > self._min:
                    self._destroy = _STEP
                    for _ in range(_STEP):
                        self._not_empty.notify()