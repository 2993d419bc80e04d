"""Recursive traversal that mirrors a source tree into a destination tree."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple, Union

from .change_tracker import ChangeTracker
from .events import EventKind, EventSink, SyncEvent
from .file_copier import FileCopier, OutcomeKind, SyncOutcome
from ..utils.logging import get_logger, timed


@dataclass
class SyncReport:
    """Result of one sync run over a source/destination pair."""

    source_root: str
    dest_root: str
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    files_created: int = 0
    files_updated: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    directories_failed: int = 0

    @property
    def files_copied(self) -> int:
        """Total files that were created or updated."""
        return self.files_created + self.files_updated

    @property
    def files_processed(self) -> int:
        return self.files_copied + self.files_skipped + self.files_failed

    @property
    def success(self) -> bool:
        return self.files_failed == 0 and self.directories_failed == 0

    @property
    def duration(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def count(self, outcome: SyncOutcome) -> None:
        if outcome.kind == OutcomeKind.CREATED:
            self.files_created += 1
        elif outcome.kind == OutcomeKind.UPDATED:
            self.files_updated += 1
        elif outcome.kind == OutcomeKind.SKIPPED:
            self.files_skipped += 1
        else:
            self.files_failed += 1


def file_mtime(path: Union[str, Path]) -> datetime:
    """Modification time of ``path`` as an aware UTC datetime."""
    return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)


class TreeWalker:
    """Depth-first walk that copies new and modified files.

    Directories are created in the destination as they are reached, so empty
    source directories are mirrored too. Nothing is ever deleted from the
    destination.
    """

    def __init__(self, tracker: ChangeTracker, copier: FileCopier, events: EventSink):
        self.tracker = tracker
        self.copier = copier
        self.events = events
        self.logger = get_logger(self.__class__.__name__)

    @timed("tree sync")
    def sync(self, source_dir: Union[str, Path], dest_dir: Union[str, Path]) -> SyncReport:
        """Mirror ``source_dir`` into ``dest_dir``.

        Per-file and per-directory failures are reported as events and never
        raised; a failed directory only stops the walk below that directory.
        """
        source = Path(source_dir).absolute()
        dest = Path(dest_dir).absolute()
        report = SyncReport(source_root=str(source), dest_root=str(dest))

        self.logger.info("Starting tree sync", source=str(source), destination=str(dest))
        self._process_directory(source, dest, PurePosixPath(), report)
        report.finished_at = datetime.now()

        self.logger.info(
            "Tree sync finished",
            source=str(source),
            files_created=report.files_created,
            files_updated=report.files_updated,
            files_skipped=report.files_skipped,
            files_failed=report.files_failed,
            directories_failed=report.directories_failed,
            duration=f"{report.duration:.2f}s"
        )
        return report

    def _process_directory(
        self,
        source_dir: Path,
        dest_dir: Path,
        relative: PurePosixPath,
        report: SyncReport
    ) -> None:
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            report.directories_failed += 1
            self._emit(
                EventKind.OUTCOME,
                f"failed to create directory: {dest_dir}",
                is_error=True,
                path=str(dest_dir),
                reason="mkdir",
                error=str(e)
            )
            return

        try:
            files, subdirs = self._list_directory(source_dir)
        except OSError as e:
            report.directories_failed += 1
            self._emit(
                EventKind.OUTCOME,
                f"failed to read directory: {source_dir}",
                is_error=True,
                path=str(source_dir),
                reason="list",
                error=str(e)
            )
            return

        for name in files:
            self._process_file(source_dir / name, dest_dir / name, relative / name, report)

        for name in subdirs:
            self._process_directory(source_dir / name, dest_dir / name, relative / name, report)

    def _process_file(
        self,
        source_file: Path,
        dest_file: Path,
        relative: PurePosixPath,
        report: SyncReport
    ) -> None:
        key = str(source_file)

        try:
            mtime = file_mtime(source_file)
        except OSError as e:
            report.files_failed += 1
            self._emit(
                EventKind.OUTCOME,
                f"failed to read file: {source_file}",
                is_error=True,
                path=key,
                reason="stat",
                error=str(e)
            )
            return

        if not self.tracker.should_copy(key, mtime):
            report.count(SyncOutcome(OutcomeKind.SKIPPED))
            return

        if self.tracker.is_known(key):
            self._emit(EventKind.DISCOVERY, f"modified file detected: {relative}", path=str(relative))
        else:
            self._emit(EventKind.DISCOVERY, f"new file detected: {relative}", path=str(relative))

        outcome = self.copier.copy(source_file, dest_file)
        # Recorded even on failure, so a broken file is not retried until it changes again
        self.tracker.record(key, mtime)
        report.count(outcome)

        if outcome.succeeded:
            self._emit(
                EventKind.OUTCOME,
                f"copied: {source_file} to {dest_file}",
                source=key,
                destination=str(dest_file),
                outcome=outcome.kind.value
            )
        else:
            self._emit(
                EventKind.OUTCOME,
                self._failure_message(outcome.reason, source_file, dest_file),
                is_error=True,
                source=key,
                destination=str(dest_file),
                reason=outcome.reason,
                error=outcome.error
            )

    @staticmethod
    def _list_directory(directory: Path) -> Tuple[List[str], List[str]]:
        """Regular files and real subdirectories of ``directory``, sorted by name."""
        files: List[str] = []
        subdirs: List[str] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)
        return sorted(files), sorted(subdirs)

    @staticmethod
    def _failure_message(reason: Optional[str], source_file: Path, dest_file: Path) -> str:
        if reason == "mkdir":
            return f"failed to create directory: {dest_file.parent}"
        if reason == "remove-existing":
            return f"failed to remove existing file: {dest_file}"
        return f"failed to copy file: {source_file}"

    def _emit(self, kind: EventKind, message: str, is_error: bool = False, **fields) -> None:
        self.events.emit(SyncEvent(kind=kind, message=message, fields=fields, is_error=is_error))
