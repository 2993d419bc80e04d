"""Core synchronization engine package."""

from .change_tracker import ChangeTracker
from .events import (
    EventKind,
    SyncEvent,
    EventSink,
    LoggingEventSink,
    CollectingEventSink,
    CompositeEventSink
)
from .file_copier import FileCopier, FilesystemError, OutcomeKind, SyncOutcome
from .state_store import StateStore
from .tree_walker import TreeWalker, SyncReport, file_mtime

__all__ = [
    "ChangeTracker",
    "EventKind",
    "SyncEvent",
    "EventSink",
    "LoggingEventSink",
    "CollectingEventSink",
    "CompositeEventSink",
    "FileCopier",
    "FilesystemError",
    "OutcomeKind",
    "SyncOutcome",
    "StateStore",
    "TreeWalker",
    "SyncReport",
    "file_mtime"
]
