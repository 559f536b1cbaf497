"""Diff computation between a prior and a fresh snapshot."""

import structlog

from callsync.models.records import CallRecord, DiffResult, Snapshot

log = structlog.stdlib.get_logger()


class DiffEngine:
    """Detects call records that are new relative to the prior snapshot.

    The engine is pure: it reads both snapshots and never mutates them.
    Key uniqueness is a precondition checked by the caller.
    """

    def compare(self, old: Snapshot, new: Snapshot) -> DiffResult:
        """
        Compare two snapshots.

        Args:
            old: Snapshot captured by the previous run
            new: Snapshot captured by the current run

        Returns:
            DiffResult with new entries in ``new``'s order and removed keys in
            ``old``'s order
        """
        old_keys: set[str] = set(old.keys)
        new_keys: set[str] = set(new.keys)

        new_entries = self.detect_new_entries(new.records, old_keys)
        removed_keys = tuple(key for key in old.keys if key not in new_keys)

        diff = DiffResult(new_entries=tuple(new_entries), removed_keys=removed_keys)

        log.info(
            "diff_computed",
            old_record_count=len(old),
            new_record_count=len(new),
            new_entries=diff.new_entry_count,
            removed_entries=len(removed_keys),
        )
        return diff

    def detect_new_entries(
        self, records: list[CallRecord], known_keys: set[str]
    ) -> list[CallRecord]:
        """
        Select records whose key is not among ``known_keys``.

        Args:
            records: Current records, in capture order
            known_keys: Keys of the prior snapshot

        Returns:
            New records, order preserved
        """
        return [record for record in records if record.key not in known_keys]
