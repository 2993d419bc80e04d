"""Validation of the source/destination endpoint pair."""

from dataclasses import dataclass
from pathlib import Path

from .loader import ConfigError


MISSING_SOURCE = "missing-source"
CANNOT_CREATE_DESTINATION = "cannot-create-destination"
EMPTY_PATH = "empty-path"


class ValidationError(ConfigError):
    """Raised when the endpoints cannot be used to start synchronization."""

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True)
class SyncEndpoints:
    """Absolute source and destination roots for one sync run."""

    source_root: Path
    dest_root: Path


def validate_endpoints(source_root, dest_root, create_destination: bool = True) -> SyncEndpoints:
    """Check the endpoint pair and create the destination root if needed.

    Raises:
        ValidationError: ``empty-path`` if either path is blank,
            ``missing-source`` if the source is not an existing directory,
            ``cannot-create-destination`` if the destination cannot be created.
    """
    if not str(source_root or "").strip() or not str(dest_root or "").strip():
        raise ValidationError(EMPTY_PATH, "please enter both source and destination paths")

    source = Path(source_root).expanduser().absolute()
    dest = Path(dest_root).expanduser().absolute()

    if not source.is_dir():
        raise ValidationError(MISSING_SOURCE, f"source directory does not exist: {source}")

    if create_destination and not dest.is_dir():
        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ValidationError(
                CANNOT_CREATE_DESTINATION,
                f"could not create destination directory: {dest} ({e.strerror or e})"
            )

    return SyncEndpoints(source_root=source, dest_root=dest)
