"""Sources of call records read at capture time."""

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from callsync.errors import IOFailure
from callsync.models.records import CallRecord, CallType

log = structlog.stdlib.get_logger()

# android.provider.CallLog.Calls.TYPE values
ANDROID_CALL_TYPES: dict[int, CallType] = {
    1: CallType.INCOMING,
    2: CallType.OUTGOING,
    3: CallType.MISSED,
    4: CallType.VOICEMAIL,
    5: CallType.REJECTED,
    6: CallType.BLOCKED,
}


class RecordSource(ABC):
    """Provides the current call records of the device."""

    @abstractmethod
    def read_records(self) -> list[CallRecord]:
        """
        Read all current call records.

        Raises:
            IOFailure: If the records cannot be read
        """


class JsonExportSource(RecordSource):
    """Reads a call-log export: a JSON array of call objects.

    Both the normalized layout (``number``, ``name``, ``call_type``,
    ``timestamp``, ``duration_seconds``) and the raw Android content-provider
    layout (``number``, ``name``, ``type``, ``date`` in epoch milliseconds,
    ``duration``) are accepted.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    def read_records(self) -> list[CallRecord]:
        log.debug("reading_call_log_export", path=str(self._path))

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise IOFailure(f"Call-log export not found: {self._path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise IOFailure(f"Failed to read call-log export {self._path}: {e}") from e
        except json.JSONDecodeError as e:
            raise IOFailure(f"Call-log export is not valid JSON {self._path}: {e}") from e

        if not isinstance(raw, list):
            raise IOFailure(f"Call-log export must be a JSON array: {self._path}")

        records = []
        for index, entry in enumerate(raw):
            try:
                records.append(parse_call_entry(entry))
            except (ValidationError, ValueError, TypeError, OverflowError, OSError) as e:
                raise IOFailure(f"Malformed call entry #{index} in {self._path}: {e}") from e

        log.info("call_log_export_read", path=str(self._path), record_count=len(records))
        return records


def parse_call_entry(entry: Any) -> CallRecord:
    """
    Convert one exported call object into a CallRecord.

    Args:
        entry: Decoded JSON object

    Returns:
        CallRecord

    Raises:
        ValueError: If the entry is not an object or lacks a timestamp
    """
    if not isinstance(entry, dict):
        raise ValueError(f"expected an object, got {type(entry).__name__}")

    if "timestamp" in entry:
        timestamp = entry["timestamp"]
    elif "date" in entry:
        timestamp = datetime.fromtimestamp(int(entry["date"]) / 1000, tz=timezone.utc)
    else:
        raise ValueError("missing 'timestamp' or 'date'")

    call_type: Any = entry.get("call_type", entry.get("type", CallType.UNKNOWN))
    if isinstance(call_type, int) or (isinstance(call_type, str) and call_type.isdigit()):
        call_type = ANDROID_CALL_TYPES.get(int(call_type), CallType.UNKNOWN)

    return CallRecord(
        number=str(entry.get("number", "")),
        name=entry.get("name") or None,
        call_type=call_type,
        timestamp=timestamp,
        duration_seconds=int(entry.get("duration_seconds", entry.get("duration", 0))),
    )
