from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from ..db.repository import ProjectRepository
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.project import Project

"""Debounced commit of project snapshots.

State transitions: idle → pending_commit → committing → idle

- Every mutation hands the latest snapshot to schedule(), which (re)starts a
  quiet-period timer.
- When the timer elapses the snapshot is stamped with a fresh last_modified
  and written with exactly one repository.put().
- At most one write is in flight. A timer that elapses during a write is
  deferred until that write resolves, so writes never overlap and the newest
  edit always gets written.
- A failed write leaves the controller in pending_commit; the next mutation or
  retry() tries again.
"""

__all__ = [
    "CommitState",
    "Scheduler",
    "ThreadingScheduler",
    "PersistenceController",
]

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.0


class CommitState(Enum):
    IDLE = "idle"
    PENDING_COMMIT = "pending_commit"
    COMMITTING = "committing"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Cancellable one-shot timer primitive."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Scheduler backed by threading.Timer (daemon threads)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class PersistenceController:
    """Per-project debounce/commit state machine."""

    def __init__(
        self,
        repository: ProjectRepository,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._repository = repository
        self._delay = delay_seconds
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._error_log = error_log
        self._cond = threading.Condition()
        self._state = CommitState.IDLE
        self._pending: Project | None = None
        self._timer: TimerHandle | None = None
        self._generation = 0
        self._in_flight = False
        self._deferred = False
        self._saving_listeners: list[Callable[[bool], None]] = []
        self.last_committed: Project | None = None
        self.last_error: Exception | None = None
        self.write_count = 0

    # -- observables -----------------------------------------------------------

    @property
    def state(self) -> CommitState:
        return self._state

    @property
    def saving(self) -> bool:
        return self._state is not CommitState.IDLE

    def add_saving_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a callback receiving the saving flag on every change; returns an unregister function."""
        self._saving_listeners.append(listener)

        def _remove() -> None:
            if listener in self._saving_listeners:
                self._saving_listeners.remove(listener)

        return _remove

    def _emit_saving(self, before: bool) -> None:
        after = self.saving
        if after == before:
            return
        for listener in list(self._saving_listeners):
            listener(after)

    # -- transitions -----------------------------------------------------------

    def schedule(self, snapshot: Project) -> None:
        """Record the latest snapshot and restart the quiet-period timer."""
        with self._cond:
            before = self.saving
            self._pending = snapshot
            self._deferred = False
            self._state = CommitState.PENDING_COMMIT
            self._restart_timer()
        self._emit_saving(before)

    def retry(self) -> bool:
        """Restart the timer for a snapshot whose write failed. False if nothing is pending."""
        with self._cond:
            if self._pending is None:
                return False
            self._restart_timer()
        return True

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._generation += 1
        generation = self._generation
        self._timer = self._scheduler.call_later(self._delay, lambda: self._on_timer(generation))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1

    def _on_timer(self, generation: int) -> None:
        with self._cond:
            if generation != self._generation or self._pending is None:
                return  # superseded by a newer mutation
            self._timer = None
            if self._in_flight:
                self._deferred = True
                return
            snapshot = self._begin_commit()
        self._run_commits(snapshot)

    def _begin_commit(self) -> Project:
        assert self._pending is not None
        snapshot = self._pending.with_last_modified(self._clock())
        self._pending = None
        self._in_flight = True
        self._state = CommitState.COMMITTING
        return snapshot

    def _run_commits(self, snapshot: Project | None) -> None:
        while snapshot is not None:
            error: Exception | None = None
            try:
                self._repository.put(snapshot.id, snapshot)
            except Exception as e:  # any backend failure keeps the controller retryable
                error = e

            with self._cond:
                before = self._state is not CommitState.IDLE
                self._in_flight = False
                self.write_count += 1
                if error is None:
                    self.last_committed = snapshot
                    self.last_error = None
                    if self._pending is None:
                        self._state = CommitState.IDLE
                else:
                    self.last_error = error
                    if self._pending is None:
                        self._pending = snapshot
                    self._state = CommitState.PENDING_COMMIT
                next_snapshot = None
                if self._deferred and self._pending is not None:
                    self._deferred = False
                    next_snapshot = self._begin_commit()
                self._cond.notify_all()

            if error is None:
                logger.debug(f"saved project={snapshot.id}")
            else:
                self._report(snapshot, error)
            self._emit_saving(before)
            snapshot = next_snapshot

    def _report(self, snapshot: Project, error: Exception) -> None:
        logger.error(f"save failed project={snapshot.id}: {error}")
        if self._error_log is not None:
            self._error_log.append(
                ErrorRecord.create(snapshot.id, "put", "PERSISTENCE_ERROR", str(error))
            )

    # -- synchronous entry points --------------------------------------------------

    def flush(self, timeout: float | None = None) -> bool:
        """Write any pending snapshot now, waiting for an in-flight write first.

        Returns:
            True when nothing is left pending and the last write succeeded
        """
        with self._cond:
            if not self._cond.wait_for(lambda: not self._in_flight, timeout=timeout):
                return False
            if self._pending is None:
                return self.last_error is None
            self._cancel_timer()
            snapshot = self._begin_commit()
        self._run_commits(snapshot)
        return self._pending is None and self.last_error is None

    def discard(self, timeout: float | None = None) -> None:
        """Drop any pending snapshot without writing it (the project is being deleted)."""
        with self._cond:
            self._cond.wait_for(lambda: not self._in_flight, timeout=timeout)
            before = self.saving
            self._cancel_timer()
            self._pending = None
            self._deferred = False
            self._state = CommitState.IDLE
        self._emit_saving(before)

    def close(self) -> bool:
        ok = self.flush()
        with self._cond:
            self._cancel_timer()
        return ok
