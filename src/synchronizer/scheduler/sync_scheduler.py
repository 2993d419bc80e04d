"""Daily trigger scheduling and manual triggering of sync runs."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED

from ..config import ConfigError, SynchronizerConfig, TriggerTime, SyncEndpoints, validate_endpoints
from ..core import (
    ChangeTracker,
    EventKind,
    EventSink,
    FileCopier,
    LoggingEventSink,
    StateStore,
    SyncEvent,
    SyncReport,
    TreeWalker
)
from ..utils.logging import get_logger, timed


TICK_JOB_ID = "schedule_tick"


class SchedulerError(Exception):
    """Raised when scheduler operations fail."""
    pass


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def last_occurrence(now: datetime, trigger: time) -> datetime:
    """Most recent moment at or before ``now`` matching the time of day ``trigger``."""
    occurrence = datetime.combine(now.date(), trigger, tzinfo=now.tzinfo)
    if occurrence > now:
        occurrence -= timedelta(days=1)
    return occurrence


def is_trigger_due(now: datetime, trigger: time, window_seconds: int) -> bool:
    """True if ``now`` lies in ``[trigger, trigger + window]``, including across midnight."""
    return now - last_occurrence(now, trigger) <= timedelta(seconds=window_seconds)


class SyncScheduler:
    """Runs the tree sync at two daily trigger times, or on demand.

    Sync runs execute on a single worker thread that owns the change record,
    so the asyncio loop and the schedule tick stay responsive. At most one run
    is in flight; triggers arriving meanwhile are rejected with a warning event.
    """

    def __init__(
        self,
        config: SynchronizerConfig,
        events: Optional[EventSink] = None,
        tracker: Optional[ChangeTracker] = None,
        copier: Optional[FileCopier] = None,
        state_store: Optional[StateStore] = None
    ):
        """Initialize sync scheduler.

        Args:
            config: Endpoint and schedule configuration
            events: Receives human-readable events (defaults to the logger)
            tracker: Change record, a fresh one if omitted
            copier: File copier used by the tree walker
            state_store: Optional persistence for the change record
        """
        self.events = events or LoggingEventSink()
        self.tracker = tracker or ChangeTracker()
        self.walker = TreeWalker(self.tracker, copier or FileCopier(), self.events)
        self.state_store = state_store
        self.logger = get_logger(self.__class__.__name__)

        self.source_root = config.source_root
        self.dest_root = config.dest_root
        self.trigger_times: List[time] = [t.to_time() for t in config.schedule.trigger_times]
        self.tick_interval_seconds = config.schedule.tick_interval_seconds
        self.trigger_window_seconds = config.schedule.trigger_window_seconds

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,
                'misfire_grace_time': self.tick_interval_seconds
            }
        )
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)

        # One thread owns every change record mutation
        self.worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sync-worker")

        self.state = SchedulerState.STOPPED
        self.is_syncing = False
        self.run_count = 0
        self.last_report: Optional[SyncReport] = None
        self.last_run_at: Optional[datetime] = None
        self._fired: Dict[int, datetime] = {}

        if self.state_store:
            self.state_store.load(self.tracker)

        self.logger.info(
            "Sync scheduler initialized",
            source_root=self.source_root,
            dest_root=self.dest_root,
            trigger_times=[t.strftime("%H:%M") for t in self.trigger_times]
        )

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    def set_endpoints(self, source_root: str, dest_root: str) -> None:
        """Replace the source/destination pair used by future runs."""
        self.source_root = source_root
        self.dest_root = dest_root
        self.logger.info("Endpoints updated", source_root=source_root, dest_root=dest_root)

    def set_trigger_times(
        self,
        first: Union[str, time, TriggerTime],
        second: Union[str, time, TriggerTime]
    ) -> None:
        """Replace both daily trigger times."""
        self.trigger_times = [
            TriggerTime.model_validate(value).to_time() for value in (first, second)
        ]
        self._fired.clear()
        self.logger.info(
            "Trigger times updated",
            trigger_times=[t.strftime("%H:%M") for t in self.trigger_times]
        )

    async def start(self) -> None:
        """Validate the endpoints and start the periodic tick.

        Raises:
            ConfigError: The endpoints are unusable; the scheduler stays stopped.
            SchedulerError: The tick job could not be registered.
        """
        if self.is_running:
            self.logger.warning("Scheduler is already running")
            return

        self._validate()

        try:
            if not self.scheduler.running:
                self.scheduler.start()

            self.scheduler.add_job(
                func=self.tick,
                trigger=IntervalTrigger(seconds=self.tick_interval_seconds),
                id=TICK_JOB_ID,
                name="Scheduled sync check",
                replace_existing=True
            )
        except Exception as e:
            self.logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Failed to start scheduler: {e}")

        self.state = SchedulerState.RUNNING
        self._emit(
            EventKind.LIFECYCLE,
            f"synchronization started at {self._timestamp()}. "
            f"Next check at scheduled times {', '.join(t.strftime('%H:%M') for t in self.trigger_times)}."
        )

    async def stop(self) -> None:
        """Cancel future ticks. A run already in progress finishes normally."""
        if not self.is_running:
            self.logger.warning("Scheduler is not running")
            return

        if self.scheduler.get_job(TICK_JOB_ID):
            self.scheduler.remove_job(TICK_JOB_ID)

        self.state = SchedulerState.STOPPED
        self._emit(EventKind.LIFECYCLE, f"synchronization stopped at {self._timestamp()}")

    async def tick(self, now: Optional[datetime] = None) -> Optional[SyncReport]:
        """Run one sync if ``now`` is inside a trigger window not yet served.

        Returns:
            The sync report, or None if nothing was due or the run was rejected
        """
        if not self.is_running:
            return None

        now = now or datetime.now()
        due = self._due_occurrences(now)
        if not due:
            return None

        for index, occurrence in due:
            self._fired[index] = occurrence

        self.logger.info(
            "Scheduled trigger reached",
            triggers=[occurrence.strftime("%H:%M") for _, occurrence in due]
        )

        try:
            return await self._run("scheduled")
        except ConfigError as e:
            self.logger.warning("Scheduled sync skipped", error=str(e))
            return None

    async def manual_sync_now(self) -> Optional[SyncReport]:
        """Run a sync immediately, whatever the state or time of day.

        Raises:
            ConfigError: The endpoints are unusable; nothing was traversed.
        """
        self._emit(EventKind.LIFECYCLE, "manual synchronization triggered")
        return await self._run("manual")

    @timed("sync run")
    async def _run(self, trigger: str) -> Optional[SyncReport]:
        if self.is_syncing:
            self._emit(
                EventKind.WARNING,
                f"synchronization already in progress, {trigger} trigger ignored",
                trigger=trigger
            )
            return None

        endpoints = self._validate()

        self.is_syncing = True
        loop = asyncio.get_running_loop()
        try:
            report = await loop.run_in_executor(
                self.worker, self.walker.sync, endpoints.source_root, endpoints.dest_root
            )
        finally:
            self.is_syncing = False

        self.run_count += 1
        self.last_report = report
        self.last_run_at = datetime.now()

        if self.state_store:
            await self._save_state(loop)

        self._emit(
            EventKind.LIFECYCLE,
            f"synchronization completed at {self._timestamp()}",
            trigger=trigger,
            files_copied=report.files_copied,
            files_failed=report.files_failed
        )
        return report

    async def close(self) -> None:
        """Stop ticking, shut down APScheduler and the worker, save state."""
        if self.is_running:
            await self.stop()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        if self.state_store:
            await self._save_state(asyncio.get_running_loop())

        self.worker.shutdown(wait=True)
        self.logger.info("Sync scheduler closed")

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status for display."""
        job = self.scheduler.get_job(TICK_JOB_ID) if self.scheduler.running else None
        report = self.last_report
        return {
            "state": self.state.value,
            "is_syncing": self.is_syncing,
            "source_root": self.source_root,
            "dest_root": self.dest_root,
            "trigger_times": [t.strftime("%H:%M") for t in self.trigger_times],
            "next_tick": job.next_run_time if job else None,
            "run_count": self.run_count,
            "last_run_at": self.last_run_at,
            "tracked_files": len(self.tracker),
            "last_result": {
                "success": report.success,
                "files_copied": report.files_copied,
                "files_skipped": report.files_skipped,
                "files_failed": report.files_failed,
                "duration": report.duration
            } if report else None
        }

    def _due_occurrences(self, now: datetime) -> List[Tuple[int, datetime]]:
        due = []
        for index, trigger in enumerate(self.trigger_times):
            if not is_trigger_due(now, trigger, self.trigger_window_seconds):
                continue
            occurrence = last_occurrence(now, trigger)
            if self._fired.get(index) != occurrence:
                due.append((index, occurrence))
        return due

    def _validate(self) -> SyncEndpoints:
        try:
            return validate_endpoints(self.source_root, self.dest_root)
        except ConfigError as e:
            self._emit(
                EventKind.VALIDATION,
                str(e),
                reason=getattr(e, "reason", None)
            )
            raise

    async def _save_state(self, loop: asyncio.AbstractEventLoop) -> None:
        try:
            await loop.run_in_executor(self.worker, self.state_store.save, self.tracker)
        except OSError as e:
            self.logger.warning(
                "Failed to save state snapshot",
                file_path=str(self.state_store.file_path),
                error=str(e)
            )

    def _emit(self, kind: EventKind, message: str, **fields) -> None:
        self.events.emit(SyncEvent(kind=kind, message=message, fields=fields))

    @staticmethod
    def _timestamp() -> str:
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def _job_error(self, event):
        """Handle job error event."""
        self.logger.error(
            "Scheduled job failed",
            job_id=event.job_id,
            error=str(event.exception)
        )

    def _job_missed(self, event):
        """Handle job missed event."""
        self.logger.warning(
            "Scheduled job missed",
            job_id=event.job_id,
            scheduled_run_time=event.scheduled_run_time
        )
