"""Materializes a single source file at its destination path."""

import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..utils.logging import get_logger


PathLike = Union[str, Path]


class FilesystemError(Exception):
    """A filesystem step failed for one file or directory."""

    def __init__(self, operation: str, path: PathLike, cause: Optional[BaseException] = None):
        self.operation = operation
        self.path = str(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed for {self.path}{detail}")


class OutcomeKind(str, Enum):
    """What happened to one file during a sync run."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    """Per-file result; ``reason`` is set only for failures."""

    kind: OutcomeKind
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind in (OutcomeKind.CREATED, OutcomeKind.UPDATED)

    @classmethod
    def failed(cls, reason: str, error: Optional[str] = None) -> "SyncOutcome":
        return cls(OutcomeKind.FAILED, reason=reason, error=error)


CREATED = SyncOutcome(OutcomeKind.CREATED)
UPDATED = SyncOutcome(OutcomeKind.UPDATED)
SKIPPED = SyncOutcome(OutcomeKind.SKIPPED)

# Failure reasons
MKDIR = "mkdir"
REMOVE_EXISTING = "remove-existing"
COPY = "copy"


class FileCopier:
    """Copies file content into the destination tree, one attempt per file."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def copy(self, src_file: PathLike, dst_file: PathLike) -> SyncOutcome:
        """Copy ``src_file`` to ``dst_file``, replacing any existing file.

        Parent directories are created as needed. Only content is copied;
        timestamps and permissions are not carried over.

        Returns:
            CREATED or UPDATED on success, otherwise FAILED with reason
            ``mkdir``, ``remove-existing`` or ``copy``.
        """
        src = Path(src_file)
        dst = Path(dst_file)

        try:
            self._ensure_parent(dst)
            existed = self._remove_existing(dst)
            self._copy_bytes(src, dst)
        except FilesystemError as e:
            self.logger.warning(
                "File copy failed",
                source=str(src),
                destination=str(dst),
                operation=e.operation,
                error=str(e.cause)
            )
            return SyncOutcome.failed(e.operation, str(e.cause) if e.cause else None)

        self.logger.debug("File copied", source=str(src), destination=str(dst), existed=existed)
        return UPDATED if existed else CREATED

    def _ensure_parent(self, dst: Path) -> None:
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(MKDIR, dst.parent, e)

    def _remove_existing(self, dst: Path) -> bool:
        if not dst.exists() and not dst.is_symlink():
            return False
        try:
            dst.unlink()
        except OSError as e:
            raise FilesystemError(REMOVE_EXISTING, dst, e)
        return True

    def _copy_bytes(self, src: Path, dst: Path) -> None:
        try:
            shutil.copyfile(src, dst)
        except OSError as e:
            raise FilesystemError(COPY, src, e)
