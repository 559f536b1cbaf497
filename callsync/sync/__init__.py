"""Synchronization pipeline: diffing, reconciliation and the run lifecycle."""

from callsync.sync.context import CallerContext, InlineContext, QueueContext
from callsync.sync.diff_engine import DiffEngine
from callsync.sync.factory import build_lifecycle
from callsync.sync.lifecycle import RunHandle, SyncLifecycle, is_valid_path
from callsync.sync.reconciler import FileReconciler, Reconciler

__all__ = [
    "CallerContext",
    "DiffEngine",
    "FileReconciler",
    "InlineContext",
    "QueueContext",
    "Reconciler",
    "RunHandle",
    "SyncLifecycle",
    "build_lifecycle",
    "is_valid_path",
]
