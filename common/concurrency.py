"""
Bounded concurrency helpers for external calls.

BoundedWorkerPool caps the number of in-flight calls to an external
service (embedding, completion). submit() blocks once the cap is
reached, so producers never queue more work than the pool can run.

call_with_timeout() runs a blocking call on an executor and converts an
expired deadline into a typed error chosen by the caller.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from .exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class TaskOutcome(Generic[T, R]):
    """Result of one task run through BoundedWorkerPool.run_all()."""
    item: T
    result: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkerPool:
    """
    Thread pool with at most ``max_workers`` tasks in flight.

    Usage:
        with BoundedWorkerPool(max_workers=5, name="embed") as pool:
            outcomes = pool.run_all(embed_chunk, chunks)
    """

    def __init__(self, max_workers: int = 5, name: str = "worker"):
        if max_workers < 1:
            raise InvalidConfiguration(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=name,
        )
        self._slots = threading.BoundedSemaphore(max_workers)

    def submit(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> Future:
        """Submit a task, blocking while ``max_workers`` tasks are in flight."""
        self._slots.acquire()
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def run_all(
        self,
        fn: Callable[[T], R],
        items: Iterable[T],
    ) -> list[TaskOutcome[T, R]]:
        """
        Run ``fn`` over every item and collect outcomes in input order.

        Exceptions raised by ``fn`` are captured per item; one failing
        item never cancels the others.
        """
        pending = [(item, self.submit(fn, item)) for item in items]
        outcomes: list[TaskOutcome[T, R]] = []
        for item, future in pending:
            try:
                outcomes.append(TaskOutcome(item=item, result=future.result()))
            except Exception as e:
                outcomes.append(TaskOutcome(item=item, error=e))
        return outcomes

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BoundedWorkerPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


def call_with_timeout(
    executor: ThreadPoolExecutor,
    fn: Callable[[], R],
    timeout: Optional[float],
    on_timeout: Callable[[], Exception],
) -> R:
    """
    Run ``fn`` on ``executor`` and wait at most ``timeout`` seconds.

    The worker thread is not interrupted on timeout; its result is
    discarded. Exceptions raised by ``fn`` propagate unchanged.

    Raises:
        The exception built by ``on_timeout`` when the deadline expires.
    """
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        error = on_timeout()
        logger.warning(f"Call abandoned after {timeout}s: {error}")
        raise error from None
