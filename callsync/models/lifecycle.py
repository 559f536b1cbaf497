"""Models describing pipeline state and run results."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class LifecycleState(str, Enum):
    """Stages of one synchronization run."""

    INIT = "Init"
    THREAD_SWITCH = "ThreadSwitch"
    FILE_ROTATION = "FileRotation"
    DIFF_DETECTION = "DiffDetection"
    UPLOAD = "Upload"
    SYNC_FILES = "SyncFiles"
    NO_CHANGE = "NoChange"
    UI_UPDATE = "UiUpdate"
    ERROR = "Error"
    COMPLETE = "Complete"


class SyncOutcome(str, Enum):
    """Outcome of reconciling two snapshot copies."""

    SKIPPED = "skipped"
    SYNCED = "synced"


class RunResult(BaseModel):
    """Terminal summary of one run, delivered to the observer exactly once."""

    run_id: str = Field(default=..., description="Identifier of the run")
    final_state: LifecycleState = Field(default=..., description="Last state reached")
    new_entry_count: int = Field(default=0, ge=0, description="Number of new call records")
    error_message: str | None = Field(default=None, description="Failure message, if any")
    delivery_error: str | None = Field(
        default=None, description="Notifier failure recovered during the run"
    )
    sync_outcome: SyncOutcome | None = Field(
        default=None, description="Reconciliation outcome when SyncFiles ran"
    )
    transitions: list[LifecycleState] = Field(
        default_factory=list, description="States traversed, in order"
    )
    started_at: datetime = Field(default=..., description="Run start timestamp")
    finished_at: datetime = Field(default=..., description="Run end timestamp")

    @property
    def success(self) -> bool:
        """Check if the run completed without an unrecovered error."""
        return self.error_message is None

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        """Text shown to the user: the success summary or the error, never both."""
        if self.error_message is not None:
            return f"Error: {self.error_message}"
        return f"Sync Complete! New Entries: {self.new_entry_count}"
