"""Remembers the last observed modification time of each source file."""

import threading
from datetime import datetime
from typing import Dict, Optional


class ChangeTracker:
    """In-memory change record: absolute source path -> last seen mtime (UTC).

    A path is present once a copy has been attempted for it with the stored
    mtime or a newer one. Equal mtimes count as unchanged, so a file whose
    content changes while its mtime is preserved is not recopied.
    """

    def __init__(self):
        self._records: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def should_copy(self, path: str, current_mtime: datetime) -> bool:
        """True if the path is unknown or its recorded mtime is strictly older."""
        with self._lock:
            recorded = self._records.get(path)
        return recorded is None or recorded < current_mtime

    def is_known(self, path: str) -> bool:
        with self._lock:
            return path in self._records

    def record(self, path: str, mtime: datetime) -> None:
        with self._lock:
            self._records[path] = mtime

    def get(self, path: str) -> Optional[datetime]:
        with self._lock:
            return self._records.get(path)

    def snapshot(self) -> Dict[str, datetime]:
        with self._lock:
            return dict(self._records)

    def restore(self, records: Dict[str, datetime]) -> None:
        """Replace the whole record, e.g. from a saved snapshot."""
        with self._lock:
            self._records = dict(records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
