"""Error taxonomy for the call-log synchronization pipeline."""


class CallSyncError(Exception):
    """Base class for pipeline failures."""

    pass


class IOFailure(CallSyncError):
    """Raised when a snapshot cannot be captured or read."""

    pass


class InvalidSnapshot(CallSyncError):
    """Raised when a snapshot violates key uniqueness."""

    def __init__(self, duplicate_keys: list[str]):
        self.duplicate_keys = duplicate_keys
        preview = ", ".join(duplicate_keys[:5])
        super().__init__(f"Snapshot contains {len(duplicate_keys)} duplicate key(s): {preview}")


class DeliveryFailure(CallSyncError):
    """Raised when the notifier could not transmit a diff.

    The lifecycle recovers from this locally: the failure is recorded on the
    run result and reconciliation still runs.
    """

    pass


class SyncConflict(CallSyncError):
    """Raised when both copies changed independently since the last reconciliation."""

    pass


class AlreadyRunning(CallSyncError):
    """Raised when perform_fetch() is invoked while a run is in flight."""

    pass
