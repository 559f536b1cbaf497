"""Staged synchronization lifecycle for the call-log snapshot."""

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

import structlog

from callsync.errors import AlreadyRunning, DeliveryFailure
from callsync.models.lifecycle import LifecycleState, RunResult, SyncOutcome
from callsync.models.records import DiffResult
from callsync.notify.webhook import Notifier
from callsync.storage.snapshot_store import SnapshotStore
from callsync.sync.context import CallerContext
from callsync.sync.diff_engine import DiffEngine
from callsync.sync.reconciler import Reconciler

log = structlog.stdlib.get_logger()

S = LifecycleState

# Allowed successors of each state. DiffDetection -> SyncFiles is only taken
# when sync_without_remote is enabled.
TRANSITIONS: dict[Optional[LifecycleState], frozenset[LifecycleState]] = {
    None: frozenset({S.INIT}),
    S.INIT: frozenset({S.THREAD_SWITCH, S.ERROR}),
    S.THREAD_SWITCH: frozenset({S.FILE_ROTATION, S.ERROR}),
    S.FILE_ROTATION: frozenset({S.DIFF_DETECTION, S.ERROR}),
    S.DIFF_DETECTION: frozenset({S.UPLOAD, S.NO_CHANGE, S.UI_UPDATE, S.SYNC_FILES, S.ERROR}),
    S.UPLOAD: frozenset({S.SYNC_FILES, S.ERROR}),
    S.SYNC_FILES: frozenset({S.UI_UPDATE, S.ERROR}),
    S.NO_CHANGE: frozenset({S.UI_UPDATE, S.ERROR}),
    S.UI_UPDATE: frozenset({S.COMPLETE, S.ERROR}),
    S.ERROR: frozenset({S.COMPLETE}),
    S.COMPLETE: frozenset(),
}

TransitionListener = Callable[[LifecycleState], None]
CompleteListener = Callable[[RunResult], None]


def is_valid_path(states: Iterable[LifecycleState]) -> bool:
    """Check that ``states`` is a complete run from Init to Complete without revisits."""
    previous: Optional[LifecycleState] = None
    seen: set[LifecycleState] = set()
    for state in states:
        if state in seen or state not in TRANSITIONS[previous]:
            return False
        seen.add(state)
        previous = state
    return previous is S.COMPLETE


class InvalidTransition(RuntimeError):
    """Raised when the lifecycle attempts a transition outside the state machine."""

    pass


class SyncRun:
    """State owned by one in-flight run.

    The run is mutated by the background worker during the blocking stages
    and by the caller context afterwards; the hand-off between the two goes
    through the caller context's queue.
    """

    def __init__(self, notify: Callable[[LifecycleState], None]):
        self.run_id: str = uuid.uuid4().hex[:12]
        self.started_at: datetime = datetime.now(timezone.utc)
        self.state: Optional[LifecycleState] = None
        self.transitions: list[LifecycleState] = []
        self.diff: DiffResult | None = None
        self.delivery_error: str | None = None
        self.sync_outcome: SyncOutcome | None = None
        self.error_message: str | None = None
        self._notify = notify

    def advance(self, to_state: LifecycleState) -> None:
        """
        Move to ``to_state`` and notify observers.

        Raises:
            InvalidTransition: If the transition is not part of the state machine
        """
        if to_state not in TRANSITIONS[self.state] or to_state in self.transitions:
            raise InvalidTransition(f"Cannot transition from {self.state} to {to_state}")

        log.info(
            "state_transition",
            run_id=self.run_id,
            from_state=self.state.value if self.state else None,
            to_state=to_state.value,
        )
        self.state = to_state
        self.transitions.append(to_state)
        self._notify(to_state)

    def fail(self, error: Exception) -> None:
        """Record ``error`` and move to Error."""
        self.error_message = str(error) or type(error).__name__
        log.error(
            "run_failed",
            run_id=self.run_id,
            state=self.state.value if self.state else None,
            error_type=type(error).__name__,
            error=self.error_message,
        )
        self.advance(S.ERROR)

    @property
    def new_entry_count(self) -> int:
        if self.error_message is not None or self.diff is None:
            return 0
        return self.diff.new_entry_count

    def to_result(self) -> RunResult:
        return RunResult(
            run_id=self.run_id,
            final_state=self.state or S.INIT,
            new_entry_count=self.new_entry_count,
            error_message=self.error_message,
            delivery_error=self.delivery_error,
            sync_outcome=self.sync_outcome,
            transitions=list(self.transitions),
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
        )


class RunHandle:
    """Handle returned by :meth:`SyncLifecycle.perform_fetch`.

    Blocking on :meth:`result` from the thread that drains a
    :class:`~callsync.sync.context.QueueContext` would never return; pump the
    context with ``run_until_complete`` instead.
    """

    def __init__(self, run_id: str, future: "Future[RunResult]"):
        self.run_id = run_id
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> RunResult:
        return self._future.result(timeout=timeout)

    def add_done_callback(self, fn: Callable[["RunHandle"], None]) -> None:
        self._future.add_done_callback(lambda _: fn(self))


class SyncLifecycle:
    """Orchestrates snapshot rotation, diffing, upload and reconciliation.

    Each call to :meth:`perform_fetch` runs:
    1. FileRotation: read the prior snapshot, capture a fresh one
    2. DiffDetection: validate keys and compute the diff
    3. Upload and SyncFiles when there are new entries and a remote target,
       NoChange when there are none
    4. UiUpdate and Complete back on the caller context

    Blocking stages run on a single background worker. Only one run may be
    in flight; an overlapping call raises AlreadyRunning.
    """

    def __init__(
        self,
        store: SnapshotStore,
        reconciler: Reconciler,
        copies: tuple[Path, Path],
        has_remote_target: Callable[[], bool],
        context: CallerContext,
        notifier: Notifier | None = None,
        diff_engine: DiffEngine | None = None,
        on_transition: TransitionListener | None = None,
        on_complete: CompleteListener | None = None,
        sync_without_remote: bool = False,
    ):
        """
        Initialize the lifecycle.

        Args:
            store: Snapshot store captured during FileRotation
            reconciler: Reconciler run during SyncFiles
            copies: The two snapshot copies handed to the reconciler (primary, mirror)
            has_remote_target: Configuration query deciding whether to upload
            context: Caller context that runs UiUpdate, Complete and every listener
                     notification. Use QueueContext to get them back on the owning
                     thread; InlineContext runs them on the background worker
            notifier: Notifier used during Upload (required for uploads)
            diff_engine: Optional diff engine (a new DiffEngine if None)
            on_transition: Optional listener invoked once per transition, in order
            on_complete: Optional listener invoked once per run with its RunResult
            sync_without_remote: Reconcile copies after new entries even without a remote target
        """
        self._store = store
        self._reconciler = reconciler
        self._copies = copies
        self._has_remote_target = has_remote_target
        self._notifier = notifier
        self._diff_engine = diff_engine or DiffEngine()
        self._context = context
        self._sync_without_remote = sync_without_remote

        self._transition_listeners: list[TransitionListener] = []
        self._complete_listeners: list[CompleteListener] = []
        if on_transition is not None:
            self._transition_listeners.append(on_transition)
        if on_complete is not None:
            self._complete_listeners.append(on_complete)

        self._run_lock = threading.Lock()
        self._active_run_id: str | None = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="callsync-worker")

        log.info("sync_lifecycle_initialized", sync_without_remote=sync_without_remote)

    def add_transition_listener(self, listener: TransitionListener) -> None:
        self._transition_listeners.append(listener)

    def add_complete_listener(self, listener: CompleteListener) -> None:
        self._complete_listeners.append(listener)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def perform_fetch(self) -> RunHandle:
        """
        Start one run and return immediately.

        Returns:
            RunHandle resolved with the RunResult once the run reaches Complete

        Raises:
            AlreadyRunning: If a run is already in flight
        """
        if not self._run_lock.acquire(blocking=False):
            log.warning("run_rejected_already_running", active_run_id=self._active_run_id)
            raise AlreadyRunning(f"Run {self._active_run_id} is still in progress")

        run = SyncRun(notify=self._notify_transition)
        future: "Future[RunResult]" = Future()
        self._active_run_id = run.run_id

        log.info("sync_run_started", run_id=run.run_id)

        try:
            run.advance(S.INIT)
            run.advance(S.THREAD_SWITCH)
            self._executor.submit(self._run_blocking_stages, run, future)
        except Exception as e:
            run.fail(e)
            self._context.post(lambda: self._finish(run, future))

        return RunHandle(run.run_id, future)

    def close(self) -> None:
        """Stop the background worker after the in-flight run, if any."""
        self._executor.shutdown(wait=True)
        log.info("sync_lifecycle_closed")

    def __enter__(self) -> "SyncLifecycle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run_blocking_stages(self, run: SyncRun, future: "Future[RunResult]") -> None:
        try:
            run.advance(S.FILE_ROTATION)
            prior = self._store.prior_snapshot()
            fresh = self._store.capture_snapshot()

            run.advance(S.DIFF_DETECTION)
            prior.validate_keys()
            fresh.validate_keys()
            diff = self._diff_engine.compare(prior, fresh)
            run.diff = diff

            notifier = self._remote_notifier() if diff.has_changes else None

            if not diff.has_changes:
                run.advance(S.NO_CHANGE)
            elif notifier is not None:
                run.advance(S.UPLOAD)
                self._upload(run, notifier, diff)
                run.advance(S.SYNC_FILES)
                self._sync_files(run)
            elif self._sync_without_remote:
                run.advance(S.SYNC_FILES)
                self._sync_files(run)
            else:
                log.info(
                    "upload_skipped_no_remote_target",
                    run_id=run.run_id,
                    new_entries=diff.new_entry_count,
                )
        except Exception as e:
            run.fail(e)
            self._context.post(lambda: self._finish(run, future))
            return

        self._context.post(lambda: self._update_ui(run, future))

    def _remote_notifier(self) -> Notifier | None:
        """The notifier to upload with, or None when there is no usable remote target."""
        if not self._has_remote_target():
            return None
        if self._notifier is None:
            log.warning("remote_target_configured_without_notifier")
        return self._notifier

    def _upload(self, run: SyncRun, notifier: Notifier, diff: DiffResult) -> None:
        try:
            notifier.deliver(diff)
        except DeliveryFailure as e:
            run.delivery_error = str(e)
            log.warning("delivery_failed_continuing", run_id=run.run_id, error=str(e))

    def _sync_files(self, run: SyncRun) -> None:
        copy_a, copy_b = self._copies
        run.sync_outcome = self._reconciler.sync_if_different(copy_a, copy_b)
        log.info("files_reconciled", run_id=run.run_id, outcome=run.sync_outcome.value)

    def _update_ui(self, run: SyncRun, future: "Future[RunResult]") -> None:
        try:
            run.advance(S.UI_UPDATE)
            log.info(
                "sync_summary",
                run_id=run.run_id,
                message=f"Sync Complete! New Entries: {run.new_entry_count}",
                delivery_error=run.delivery_error,
            )
        except Exception as e:
            run.fail(e)
        self._finish(run, future)

    def _finish(self, run: SyncRun, future: "Future[RunResult]") -> None:
        try:
            run.advance(S.COMPLETE)
            result = run.to_result()
        finally:
            self._active_run_id = None
            self._run_lock.release()

        log.info(
            "sync_run_completed",
            run_id=run.run_id,
            success=result.success,
            new_entry_count=result.new_entry_count,
            duration_seconds=result.duration_seconds,
            transitions=[state.value for state in result.transitions],
        )
        self._context.post(lambda: self._deliver_result(result, future))

    def _notify_transition(self, state: LifecycleState) -> None:
        listeners = list(self._transition_listeners)

        def notify() -> None:
            for listener in listeners:
                self._invoke_listener(listener, state)

        self._context.post(notify)

    def _deliver_result(self, result: RunResult, future: "Future[RunResult]") -> None:
        for listener in list(self._complete_listeners):
            self._invoke_listener(listener, result)
        future.set_result(result)

    def _invoke_listener(self, listener: Callable, payload) -> None:
        try:
            listener(payload)
        except Exception:
            log.exception("listener_failed", listener=getattr(listener, "__name__", repr(listener)))
