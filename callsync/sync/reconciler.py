"""Reconciliation of the primary snapshot file with its mirror copy."""

import hashlib
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from callsync.errors import IOFailure, SyncConflict
from callsync.models.lifecycle import SyncOutcome

log = structlog.stdlib.get_logger()

BASE_SUFFIX = ".base"
HASH_CHUNK_SIZE = 64 * 1024


class Reconciler(ABC):
    """Makes two copies of the persisted snapshot identical."""

    @abstractmethod
    def sync_if_different(self, copy_a: Path, copy_b: Path) -> SyncOutcome:
        """
        Synchronize two copies when they differ.

        Must be idempotent: a second call with no intervening change
        returns ``SyncOutcome.SKIPPED``.

        Raises:
            SyncConflict: If the difference cannot be resolved
        """


class FileReconciler(Reconciler):
    """Hash-based reconciler for two local files.

    The content hash agreed at the last reconciliation is recorded next to
    ``copy_b`` as ``<name>.base``. A copy whose hash moved away from the base
    is ahead and is copied over the other one. When both moved to different
    contents the copies have diverged and ``SyncConflict`` is raised. Without
    a base, ``copy_a`` is authoritative.
    """

    def sync_if_different(self, copy_a: Path, copy_b: Path) -> SyncOutcome:
        copy_a, copy_b = Path(copy_a), Path(copy_b)
        base_path = self.base_path(copy_b)

        try:
            hash_a = file_sha256(copy_a)
            hash_b = file_sha256(copy_b)

            if hash_a == hash_b:
                if hash_a is not None and read_base(base_path) != hash_a:
                    write_base(base_path, hash_a)
                log.info("copies_identical", copy_a=str(copy_a), copy_b=str(copy_b))
                return SyncOutcome.SKIPPED

            source, target = self._choose_direction(copy_a, hash_a, copy_b, hash_b, base_path)

            atomic_copy(source, target)
            write_base(base_path, file_sha256(target))
        except OSError as e:
            log.error("reconciliation_io_failed", copy_a=str(copy_a), copy_b=str(copy_b), error=str(e))
            raise IOFailure(f"Failed to reconcile {copy_a} and {copy_b}: {e}") from e

        log.info("copies_synced", source=str(source), target=str(target))
        return SyncOutcome.SYNCED

    @staticmethod
    def base_path(copy_b: Path) -> Path:
        return copy_b.with_name(copy_b.name + BASE_SUFFIX)

    def _choose_direction(
        self,
        copy_a: Path,
        hash_a: str | None,
        copy_b: Path,
        hash_b: str | None,
        base_path: Path,
    ) -> tuple[Path, Path]:
        # A missing copy is always behind
        if hash_b is None:
            return copy_a, copy_b
        if hash_a is None:
            return copy_b, copy_a

        base = read_base(base_path)
        if base is None:
            return copy_a, copy_b

        a_changed = hash_a != base
        b_changed = hash_b != base

        if a_changed and b_changed:
            log.warning(
                "copies_diverged",
                copy_a=str(copy_a),
                copy_b=str(copy_b),
                base_hash=base[:16],
            )
            raise SyncConflict(
                f"Both {copy_a} and {copy_b} changed since the last reconciliation"
            )
        if a_changed:
            return copy_a, copy_b
        return copy_b, copy_a


def file_sha256(path: Path) -> str | None:
    """SHA-256 hex digest of a file, or None if it does not exist."""
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
    except FileNotFoundError:
        return None
    return digest.hexdigest()


def read_base(base_path: Path) -> str | None:
    try:
        return base_path.read_text(encoding="utf-8").strip() or None
    except FileNotFoundError:
        return None


def write_base(base_path: Path, content_hash: str | None) -> None:
    if content_hash is None:
        return
    base_path.parent.mkdir(parents=True, exist_ok=True)
    base_path.write_text(content_hash + "\n", encoding="utf-8")


def atomic_copy(source: Path, target: Path) -> None:
    """Copy ``source`` over ``target`` so that readers never see a partial file."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    os.close(fd)
    try:
        shutil.copy2(source, tmp_name)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
