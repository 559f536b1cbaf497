"""Snapshot storage and call-log sources."""

from callsync.storage.record_source import JsonExportSource, RecordSource
from callsync.storage.snapshot_store import FileSnapshotStore, SnapshotStore

__all__ = ["FileSnapshotStore", "JsonExportSource", "RecordSource", "SnapshotStore"]
