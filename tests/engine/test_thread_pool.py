from __future__ import annotations

import threading

import pytest

from clerk_trades.engine import WorkerPool


def test_workers_for_respects_caps() -> None:
    pool = WorkerPool(max_workers=4)
    assert pool.workers_for(10) == 4
    assert pool.workers_for(10, cap=2) == 2
    assert pool.workers_for(3) == 3
    assert pool.workers_for(0) == 1
    assert WorkerPool().workers_for(25) == 25


def test_fan_out_yields_every_item_once() -> None:
    pool = WorkerPool(thread_name_prefix="test")
    names: set[str] = set()

    def work(item: int) -> int:
        names.add(threading.current_thread().name)
        return item * 2

    results = {item: future.result() for item, future in pool.fan_out(work, range(6), name="double")}
    assert results == {i: i * 2 for i in range(6)}
    assert all(name.startswith("test-double") for name in names)


def test_fan_out_surfaces_exceptions_per_item() -> None:
    pool = WorkerPool()

    def work(item: int) -> int:
        if item == 2:
            raise ValueError("boom")
        return item

    outcomes = {}
    for item, future in pool.fan_out(work, [1, 2, 3]):
        outcomes[item] = future.exception()
    assert isinstance(outcomes[2], ValueError)
    assert outcomes[1] is None and outcomes[3] is None


def test_fan_out_with_no_items() -> None:
    assert list(WorkerPool().fan_out(lambda item: item, [])) == []


@pytest.mark.parametrize("workers", [1, 3])
def test_fan_out_bounded_workers(workers: int) -> None:
    active = 0
    peak = 0
    lock = threading.Lock()
    release = threading.Event()

    def work(_item: int) -> None:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        release.wait(0.05)
        with lock:
            active -= 1

    list(WorkerPool().fan_out(work, range(6), max_workers=workers))
    assert peak <= workers
