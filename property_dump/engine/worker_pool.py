"""Bounded thread pool running identical worker loops to completion."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, TypeVar

T = TypeVar("T")


class WorkerPool:
    """Launch ``count`` copies of a worker callable and join all of them."""

    def __init__(self, max_workers: int, thread_name_prefix: str = "harvest") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.thread_name_prefix = thread_name_prefix

    def size_for(self, pending: int) -> int:
        """Clamp the pool to at least one and at most ``pending`` workers."""

        return max(1, min(self.max_workers, pending))

    def run(self, worker: Callable[[int], T], pending: int) -> list[T]:
        count = self.size_for(pending)
        with ThreadPoolExecutor(max_workers=count, thread_name_prefix=self.thread_name_prefix) as executor:
            futures: list[Future[T]] = [executor.submit(worker, worker_id) for worker_id in range(count)]
            wait(futures)
        # re-raise the first worker crash after every worker has exited
        return [future.result() for future in futures]


__all__ = ["WorkerPool"]
