"""APScheduler wrapper exposing the recurring pipeline job."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import MIN_INTERVAL_HOURS
from ..logging_conf import component_logger

PIPELINE_JOB_ID = "pipeline::tick"


class APSchedulerAdapter:
    """Own the background scheduler that re-runs the pipeline on an interval.

    Shutting the scheduler down stops future ticks only; a tick already
    running finishes on its own thread.
    """

    def __init__(self) -> None:
        self.scheduler = BackgroundScheduler()
        self.logger = component_logger("scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_pipeline(self, interval_hours: int, callback: Callable[[], object]) -> None:
        trigger = self._build_trigger(interval_hours)
        self.scheduler.add_job(
            callback,
            trigger=trigger,
            id=PIPELINE_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", every=f"{interval_hours}h")

    def cancel_pipeline(self) -> None:
        try:
            self.scheduler.remove_job(PIPELINE_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=PIPELINE_JOB_ID)

    @staticmethod
    def _build_trigger(interval_hours: int) -> IntervalTrigger:
        if interval_hours < MIN_INTERVAL_HOURS:
            raise ValueError(f"minimum duration must be {MIN_INTERVAL_HOURS}h")
        return IntervalTrigger(hours=interval_hours)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "PIPELINE_JOB_ID"]
