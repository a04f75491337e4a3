"""Scheduling adapters."""

from .apsched_adapter import PIPELINE_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "PIPELINE_JOB_ID"]
