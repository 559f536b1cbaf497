"""Property-based tests for logging functionality.

**Feature: callsync, Property 13: Log entry format**

Every log entry carries a timestamp, the severity level, the event name,
the emitting thread and any bound run context.
"""

import json
import logging
import threading
from datetime import datetime
from io import StringIO
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from hypothesis import given, settings
from hypothesis import strategies as st

from callsync.models.config import LoggingConfig
from callsync.utils.logging_config import (
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    build_processors,
    configure_from_config,
)


def capture_json_logs() -> StringIO:
    """Route stdlib logging into a buffer and render structlog events as JSON."""
    log_buffer = StringIO()
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG,
        stream=log_buffer,
        force=True,
    )
    structlog.configure(
        processors=build_processors(json_logs=True),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,  # Don't cache for testing
    )
    return log_buffer


def read_entries(log_buffer: StringIO) -> list[dict]:
    lines = [line for line in log_buffer.getvalue().splitlines() if line.strip()]
    try:
        return [json.loads(line) for line in lines]
    except json.JSONDecodeError as e:
        raise AssertionError(f"Log output is not valid JSON: {lines}") from e


@given(
    log_level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    error_message=st.text(min_size=1, max_size=200),
)
@settings(max_examples=100)
def test_log_format_contains_required_fields(log_level: str, error_message: str) -> None:
    """
    Property 13: Log entry format

    *For any* logged event, the entry contains timestamp, level, event,
    thread and call-site fields.
    """
    log_buffer = capture_json_logs()

    log = structlog.stdlib.get_logger("test_logger")
    getattr(log, log_level.lower())("state_transition", error=error_message)

    (entry,) = read_entries(log_buffer)

    datetime.fromisoformat(entry["timestamp"].replace("Z", "+00:00"))
    assert entry["level"].upper() == log_level.upper()
    assert entry["event"] == "state_transition"
    assert entry["error"] == error_message
    assert entry["thread_name"] == threading.current_thread().name
    assert entry["func_name"] == "test_log_format_contains_required_fields"

    structlog.reset_defaults()


@given(run_id=st.text(min_size=1, max_size=12, alphabet="0123456789abcdef"))
@settings(max_examples=30)
def test_bound_run_context_is_merged(run_id: str) -> None:
    """Context bound with contextvars appears on every entry until cleared."""
    log_buffer = capture_json_logs()
    log = structlog.stdlib.get_logger("test_logger")

    structlog.contextvars.bind_contextvars(run_id=run_id)
    try:
        log.info("sync_started")
        log.info("diff_computed", new_entries=0)
    finally:
        structlog.contextvars.clear_contextvars()
    log.info("after_clear")

    first, second, third = read_entries(log_buffer)
    assert first["run_id"] == run_id
    assert second["run_id"] == run_id
    assert "run_id" not in third

    structlog.reset_defaults()


def test_worker_thread_name_is_recorded() -> None:
    log_buffer = capture_json_logs()
    log = structlog.stdlib.get_logger("test_logger")

    worker = threading.Thread(target=lambda: log.info("stage_started"), name="callsync-worker")
    worker.start()
    worker.join()

    (entry,) = read_entries(log_buffer)
    assert entry["thread_name"] == "callsync-worker"

    structlog.reset_defaults()


def test_configure_from_config_adds_rotating_file_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "callsync.log"
    before = list(logging.root.handlers)

    configure_from_config(LoggingConfig(log_level="DEBUG", log_file=str(log_file)))
    try:
        added = [h for h in logging.root.handlers if h not in before]
        (handler,) = [h for h in added if isinstance(h, RotatingFileHandler)]
        assert handler.maxBytes == LOG_FILE_MAX_BYTES
        assert handler.backupCount == LOG_FILE_BACKUP_COUNT
        assert Path(handler.baseFilename) == log_file
    finally:
        for handler in logging.root.handlers[:]:
            if handler not in before:
                logging.root.removeHandler(handler)
                handler.close()
        structlog.reset_defaults()


def test_console_renderer_is_used_without_json() -> None:
    processors = build_processors(json_logs=False)

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    assert isinstance(build_processors(json_logs=True)[-1], structlog.processors.JSONRenderer)
