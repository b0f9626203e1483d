"""
The world thread: a single serialized execution context for world state.

Only work running here may touch the voxel world, session phase, bounds or
player positioning. Background tasks hand work over through a FIFO queue.
Blocking dispatches carry a Future as their response channel and wait on it
with a bound, so one stuck unit of work degrades into a DispatchTimeout
instead of hanging the caller.
"""

import logging
import queue
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Any, Callable

from vibebuild.errors import DispatchTimeout


logger = logging.getLogger(__name__)

# Sentinel that tells the loop to exit.
_STOP = object()


class WorldThread:
    """Owns one daemon thread that runs submitted callables in order."""

    def __init__(self, name: str = "vibebuild-world"):
        self._name = name
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> "WorldThread":
        if self._thread is None:
            self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
            self._thread.start()
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        """Finish queued work and stop the thread."""
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def __enter__(self) -> "WorldThread":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def is_world_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    def submit(self, fn: Callable[[], Any]) -> None:
        """Fire and forget. Runs after everything submitted before it."""
        self._queue.put((fn, None))

    def call(self, fn: Callable[[], Any], timeout: float) -> Any:
        """
        Run fn on the world thread and wait up to `timeout` seconds for its result.

        Exceptions raised by fn are re-raised here. On timeout the pending work
        is cancelled if it has not started yet and DispatchTimeout is raised.
        """
        if self.is_world_thread():
            return fn()

        future: Future = Future()
        self._queue.put((fn, future))
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise DispatchTimeout(f"World thread did not respond within {timeout:g}s") from e

    def _loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return

            fn, future = item
            if future is None:
                try:
                    fn()
                except Exception:
                    logger.exception("Unhandled error in world thread task")
                continue

            if not future.set_running_or_notify_cancel():
                # Caller already gave up on this one.
                continue
            try:
                future.set_result(fn())
            except Exception as e:
                future.set_exception(e)
