"""Worker pool fanning work out to threads and funnelling results back."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Run one task per item and hand each outcome to a single collector.

    The caller iterating :meth:`fan_out` is the collector: futures are yielded
    as they finish, so shared accumulators only ever see one thread.
    """

    def __init__(self, max_workers: int | None = None, thread_name_prefix: str = "clerk") -> None:
        self.max_workers = max_workers
        self.thread_name_prefix = thread_name_prefix

    def workers_for(self, item_count: int, cap: int | None = None) -> int:
        workers = max(1, item_count)
        for limit in (cap, self.max_workers):
            if limit:
                workers = min(workers, limit)
        return workers

    def fan_out(
        self,
        func: Callable[[T], R],
        items: Iterable[T],
        *,
        max_workers: int | None = None,
        name: str | None = None,
    ) -> Iterator[tuple[T, Future[R]]]:
        """Submit ``func(item)`` for every item; yield ``(item, future)`` on completion."""

        batch = list(items)
        if not batch:
            return
        prefix = f"{self.thread_name_prefix}-{name}" if name else self.thread_name_prefix
        with ThreadPoolExecutor(
            max_workers=self.workers_for(len(batch), max_workers),
            thread_name_prefix=prefix,
        ) as executor:
            futures = {executor.submit(func, item): item for item in batch}
            for future in as_completed(futures):
                yield futures[future], future


__all__ = ["WorkerPool"]
