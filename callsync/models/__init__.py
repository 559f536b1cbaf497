"""Data models for the call-log sync pipeline."""

from callsync.models.config import (
    AppConfig,
    LifecycleConfig,
    LoggingConfig,
    StorageConfig,
    WebhookConfig,
)
from callsync.models.lifecycle import LifecycleState, RunResult, SyncOutcome
from callsync.models.records import CallRecord, CallType, DiffResult, Snapshot

__all__ = [
    "CallRecord",
    "CallType",
    "Snapshot",
    "DiffResult",
    "LifecycleState",
    "RunResult",
    "SyncOutcome",
    "AppConfig",
    "StorageConfig",
    "WebhookConfig",
    "LifecycleConfig",
    "LoggingConfig",
]
