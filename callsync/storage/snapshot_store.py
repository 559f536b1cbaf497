"""Snapshot persistence with file rotation."""

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError

from callsync.errors import InvalidSnapshot, IOFailure
from callsync.models.records import Snapshot
from callsync.storage.record_source import RecordSource

log = structlog.stdlib.get_logger()

ROTATED_SUFFIX = ".old"


class SnapshotStore(ABC):
    """Persists and retrieves the reference snapshot of tracked records."""

    @abstractmethod
    def capture_snapshot(self) -> Snapshot:
        """
        Produce the current snapshot and persist it as the new reference point.

        This is the only mutating operation of the store. A capture that
        fails leaves the current reference untouched.

        Raises:
            IOFailure: If the snapshot cannot be captured or persisted
            InvalidSnapshot: If the captured records contain duplicate keys
        """

    @abstractmethod
    def prior_snapshot(self) -> Snapshot:
        """
        Return the snapshot captured by the previous successful run.

        Returns:
            The stored snapshot, or an empty one if none exists

        Raises:
            IOFailure: If the stored snapshot cannot be read
        """


class FileSnapshotStore(SnapshotStore):
    """Keeps the reference snapshot as a JSON file.

    Capturing rotates the current reference to ``<name>.old`` before the
    fresh snapshot is written in its place.
    """

    def __init__(self, source: RecordSource, snapshot_path: Path):
        """
        Initialize the store.

        Args:
            source: Where current call records are read from
            snapshot_path: Location of the reference snapshot file
        """
        self._source = source
        self._path = Path(snapshot_path)
        log.info("file_snapshot_store_initialized", snapshot_path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def rotated_path(self) -> Path:
        return self._path.with_name(self._path.name + ROTATED_SUFFIX)

    def capture_snapshot(self) -> Snapshot:
        records = self._source.read_records()
        snapshot = Snapshot(records=records, captured_at=datetime.now(timezone.utc))

        # A rejected capture must not replace the reference
        try:
            snapshot.validate_keys()
        except InvalidSnapshot as e:
            log.error(
                "snapshot_capture_rejected",
                snapshot_path=str(self._path),
                duplicate_keys=e.duplicate_keys[:5],
            )
            raise

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._rotate()
            atomic_write_text(self._path, snapshot.model_dump_json(indent=2))
        except OSError as e:
            log.error("snapshot_capture_failed", snapshot_path=str(self._path), error=str(e))
            raise IOFailure(f"Failed to persist snapshot {self._path}: {e}") from e

        log.info(
            "snapshot_captured",
            snapshot_path=str(self._path),
            record_count=len(snapshot),
        )
        return snapshot

    def prior_snapshot(self) -> Snapshot:
        return self._read(self._path)

    def rotated_snapshot(self) -> Snapshot:
        """Return the snapshot that was the reference before the last capture."""
        return self._read(self.rotated_path)

    def _rotate(self) -> None:
        if self._path.exists():
            shutil.copy2(self._path, self.rotated_path)
            log.debug("snapshot_rotated", rotated_path=str(self.rotated_path))

    def _read(self, path: Path) -> Snapshot:
        try:
            payload = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.info("no_snapshot_found", snapshot_path=str(path))
            return Snapshot()
        except (OSError, UnicodeDecodeError) as e:
            raise IOFailure(f"Failed to read snapshot {path}: {e}") from e

        try:
            return Snapshot.model_validate_json(payload)
        except ValidationError as e:
            raise IOFailure(f"Snapshot file is corrupt {path}: {e}") from e


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a temporary file and ``os.replace``."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
