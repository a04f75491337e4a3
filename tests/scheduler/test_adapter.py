from __future__ import annotations

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from clerk_trades.scheduler import PIPELINE_JOB_ID, APSchedulerAdapter


class StubScheduler:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def add_job(self, callback, **kwargs):  # noqa: ANN001
        self.calls.append({"callback": callback, **kwargs})

    def get_jobs(self):
        return []

    def start(self):
        self.calls.append({"event": "started"})

    def shutdown(self, wait=False):  # noqa: ARG002
        self.calls.append({"event": "shutdown", "wait": wait})

    def remove_job(self, job_id):  # noqa: ANN001
        if job_id != PIPELINE_JOB_ID:
            raise KeyError(job_id)
        self.calls.append({"event": "remove", "id": job_id})


def test_build_trigger_enforces_minimum() -> None:
    trigger = APSchedulerAdapter._build_trigger(24)
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval.total_seconds() == 24 * 3600
    with pytest.raises(ValueError, match="minimum duration must be 3h"):
        APSchedulerAdapter._build_trigger(2)


def test_schedule_pipeline_uses_scheduler() -> None:
    adapter = APSchedulerAdapter()
    stub = StubScheduler()
    adapter.scheduler = stub  # type: ignore[assignment]

    def tick() -> None:
        return None

    adapter.schedule_pipeline(6, tick)
    job = stub.calls[0]
    assert job["callback"] is tick
    assert job["id"] == PIPELINE_JOB_ID
    assert job["replace_existing"] is True
    assert job["max_instances"] == 1
    assert job["trigger"].interval.total_seconds() == 6 * 3600

    adapter.start()
    adapter.start()
    adapter.cancel_pipeline()
    adapter.shutdown()
    adapter.shutdown()
    events = [call.get("event") for call in stub.calls[1:]]
    assert events == ["started", "remove", "shutdown"]
    assert adapter.list_jobs() == []
