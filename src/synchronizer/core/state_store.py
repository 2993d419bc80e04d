"""JSON snapshot of the change record, so a restart does not re-copy everything."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

from .change_tracker import ChangeTracker
from ..utils.logging import get_logger


SNAPSHOT_VERSION = 1


class StateStore:
    """Loads and saves a ChangeTracker as ``{"version": 1, "entries": {path: iso}}``."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path).expanduser()
        self.logger = get_logger(self.__class__.__name__)

    def load(self, tracker: ChangeTracker) -> int:
        """Restore ``tracker`` from the snapshot file.

        A missing file leaves the tracker empty. An unreadable or malformed
        snapshot is reported and ignored, which means one full re-copy pass.

        Returns:
            Number of entries restored
        """
        if not self.file_path.exists():
            self.logger.info("No state snapshot found", file_path=str(self.file_path))
            return 0

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            entries = self._decode(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            self.logger.warning(
                "Ignoring unreadable state snapshot",
                file_path=str(self.file_path),
                error=str(e)
            )
            return 0

        tracker.restore(entries)
        self.logger.info("State snapshot loaded", file_path=str(self.file_path), entries=len(entries))
        return len(entries)

    def save(self, tracker: ChangeTracker) -> None:
        """Write the tracker atomically (temp file, then replace)."""
        records = tracker.snapshot()
        payload = {
            "version": SNAPSHOT_VERSION,
            "saved_at": datetime.now().isoformat(),
            "entries": {path: mtime.isoformat() for path, mtime in records.items()},
        }

        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.file_path)

        self.logger.debug("State snapshot saved", file_path=str(self.file_path), entries=len(records))

    @staticmethod
    def _decode(data) -> Dict[str, datetime]:
        if data.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version: {data.get('version')!r}")
        entries = {}
        for path, value in data.get("entries", {}).items():
            mtime = datetime.fromisoformat(value)
            # Snapshots written without an offset are taken as UTC
            if mtime.tzinfo is None:
                mtime = mtime.replace(tzinfo=timezone.utc)
            entries[str(path)] = mtime
        return entries
