"""Wiring of the concrete collaborators from application configuration."""

import requests
import structlog

from callsync.models.config import AppConfig
from callsync.notify.webhook import WebhookNotifier
from callsync.storage.record_source import JsonExportSource
from callsync.storage.snapshot_store import FileSnapshotStore
from callsync.sync.context import CallerContext
from callsync.sync.lifecycle import CompleteListener, SyncLifecycle, TransitionListener
from callsync.sync.reconciler import FileReconciler

log = structlog.stdlib.get_logger()


def build_lifecycle(
    config: AppConfig,
    context: CallerContext,
    on_transition: TransitionListener | None = None,
    on_complete: CompleteListener | None = None,
    session: requests.Session | None = None,
) -> SyncLifecycle:
    """
    Build a SyncLifecycle backed by the file store, webhook and file reconciler.

    Args:
        config: Application configuration
        context: Caller context that runs UiUpdate, Complete and the listeners
        on_transition: Optional transition listener
        on_complete: Optional completion listener
        session: Optional requests session for the webhook notifier

    Returns:
        Configured SyncLifecycle
    """
    storage = config.storage
    store = FileSnapshotStore(
        source=JsonExportSource(storage.source_path),
        snapshot_path=storage.primary_path,
    )

    notifier = None
    if config.has_remote_target():
        notifier = WebhookNotifier.from_config(config.webhook, session=session)

    log.info(
        "building_lifecycle",
        primary_path=str(storage.primary_path),
        mirror_path=str(storage.resolved_mirror_path),
        has_remote_target=config.has_remote_target(),
    )

    return SyncLifecycle(
        store=store,
        reconciler=FileReconciler(),
        copies=(storage.primary_path, storage.resolved_mirror_path),
        has_remote_target=config.has_remote_target,
        notifier=notifier,
        context=context,
        on_transition=on_transition,
        on_complete=on_complete,
        sync_without_remote=config.lifecycle.sync_without_remote,
    )
