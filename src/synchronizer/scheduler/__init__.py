"""Scheduler package for triggering sync runs."""

from .sync_scheduler import (
    SyncScheduler,
    SchedulerError,
    SchedulerState,
    TICK_JOB_ID,
    is_trigger_due,
    last_occurrence
)

__all__ = [
    "SyncScheduler",
    "SchedulerError",
    "SchedulerState",
    "TICK_JOB_ID",
    "is_trigger_due",
    "last_occurrence"
]
