#!/usr/bin/env python3
"""
Run one call-log synchronization.

This script:
- Rotates the call-log snapshot and detects new calls
- Posts new calls to the configured webhook
- Reconciles the primary snapshot with its mirror copy

Designed to be run on a schedule (e.g., via cron or a systemd timer). The
caller must make sure the call-log export is readable before running.

Usage:
    python scripts/run_sync.py [--config CONFIG_PATH] [--timeout SECONDS]
"""

import argparse
import sys

from callsync.models.lifecycle import LifecycleState, RunResult
from callsync.sync.context import QueueContext
from callsync.sync.factory import build_lifecycle
from callsync.utils.config_loader import ConfigLoader, ConfigurationError
from callsync.utils.logging_config import configure_from_config, get_logger

log = get_logger(__name__)


def perform_sync(config_path: str | None = None, timeout: float | None = None) -> RunResult:
    """
    Perform one synchronization run and wait for its result.

    Args:
        config_path: Optional path to configuration file
        timeout: Optional seconds to wait for the run to complete

    Returns:
        RunResult of the run

    Raises:
        ConfigurationError: If the configuration cannot be loaded
        TimeoutError: If the run does not complete in time
    """
    config = ConfigLoader().load_config(config_path)
    configure_from_config(config.logging)
    ConfigLoader().validate_config(config)

    def on_transition(state: LifecycleState) -> None:
        print(f"  -> {state.value}")

    context = QueueContext()
    with build_lifecycle(config, context=context, on_transition=on_transition) as lifecycle:
        handle = lifecycle.perform_fetch()
        return context.run_until_complete(handle, timeout=timeout)


def print_summary(result: RunResult) -> None:
    print("\n" + "=" * 60)
    print("SYNCHRONIZATION SUMMARY")
    print("=" * 60)

    if result.success:
        print("Status: ✓ SUCCESS")
    else:
        print("Status: ✗ FAILED")
    print(result.summary())
    if result.delivery_error:
        print(f"Upload: failed ({result.delivery_error})")
    if result.sync_outcome:
        print(f"Mirror: {result.sync_outcome.value}")
    print(f"Duration: {result.duration_seconds:.2f} seconds")

    print("=" * 60)


def main() -> None:
    """Main entry point for the sync script."""
    parser = argparse.ArgumentParser(description="Call-log snapshot synchronization")
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file",
        default=None,
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the run to complete",
        default=None,
    )

    args = parser.parse_args()

    try:
        result = perform_sync(config_path=args.config, timeout=args.timeout)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    except TimeoutError as e:
        log.error("sync_timed_out", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print_summary(result)
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
