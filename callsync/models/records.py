"""Pydantic models for call records, snapshots and diffs."""

from collections import Counter
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from callsync.errors import InvalidSnapshot


class CallType(str, Enum):
    """Kind of call as exported by the device call log."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
    MISSED = "missed"
    REJECTED = "rejected"
    BLOCKED = "blocked"
    VOICEMAIL = "voicemail"
    UNKNOWN = "unknown"


class CallRecord(BaseModel):
    """A single entry of the device call log."""

    model_config = ConfigDict(frozen=True)

    number: str = Field(default=..., min_length=1, description="Remote phone number")
    name: str | None = Field(default=None, description="Cached contact name, if any")
    call_type: CallType = Field(default=CallType.UNKNOWN, description="Call direction/outcome")
    timestamp: datetime = Field(default=..., description="When the call started")
    duration_seconds: int = Field(default=0, ge=0, description="Call duration in seconds")

    @property
    def key(self) -> str:
        """Composite identity of the record within a snapshot."""
        return f"{self.number}|{self.timestamp.isoformat()}|{self.call_type.value}"

    def describe(self) -> str:
        """One-line human readable rendering used in notifications."""
        who = f"{self.name} ({self.number})" if self.name else self.number
        return (
            f"[{self.timestamp.isoformat()}] {self.call_type.value} {who} "
            f"- {self.duration_seconds}s"
        )


class Snapshot(BaseModel):
    """Ordered records captured at one point in time."""

    records: list[CallRecord] = Field(default_factory=list, description="Records in capture order")
    captured_at: datetime | None = Field(default=None, description="Capture timestamp")

    def __len__(self) -> int:
        return len(self.records)

    @property
    def keys(self) -> list[str]:
        return [record.key for record in self.records]

    def duplicate_keys(self) -> list[str]:
        """Keys that occur more than once, in first-seen order."""
        counts = Counter(self.keys)
        seen: set[str] = set()
        duplicates = []
        for key in self.keys:
            if counts[key] > 1 and key not in seen:
                seen.add(key)
                duplicates.append(key)
        return duplicates

    def validate_keys(self) -> None:
        """
        Check the key uniqueness invariant.

        Raises:
            InvalidSnapshot: If any key occurs more than once
        """
        duplicates = self.duplicate_keys()
        if duplicates:
            raise InvalidSnapshot(duplicates)


class DiffResult(BaseModel):
    """Result of comparing a prior snapshot with a fresh one."""

    model_config = ConfigDict(frozen=True)

    new_entries: tuple[CallRecord, ...] = Field(
        default=(), description="Records present in the new snapshot but not in the old one"
    )
    removed_keys: tuple[str, ...] = Field(
        default=(), description="Keys present in the old snapshot but not in the new one"
    )

    @property
    def has_changes(self) -> bool:
        """Whether any new entries were detected."""
        return bool(self.new_entries)

    @property
    def new_entry_count(self) -> int:
        return len(self.new_entries)
