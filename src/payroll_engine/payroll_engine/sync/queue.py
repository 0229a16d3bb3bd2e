from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional, Protocol

from ..attendance.model import AttendanceEvent
from ..common.datetime_utils import now_local
from ..core.constants import (
    DEFAULT_SYNC_BASE_DELAY_SECONDS,
    DEFAULT_SYNC_MAX_ATTEMPTS,
    DEFAULT_SYNC_MAX_DELAY_SECONDS,
)
from ..core.enums import EventType
from ..core.exceptions import ConcurrencyConflictError, DomainError
from .model import SyncQueueItem
from .store import SyncQueueStore

logger = logging.getLogger(__name__)


class TransientSyncError(Exception):
    """A replay attempt failed in a way worth retrying (timeout, 5xx, ...)."""


class ConnectivityLostError(TransientSyncError):
    """The link dropped mid-replay; the pass suspends instead of burning attempts."""


class ReplayTarget(Protocol):
    def submit(self, event: AttendanceEvent) -> None:
        """Deliver one event.

        Raise DomainError when the server rejects it for good, TransientSyncError
        (or ConnectivityLostError) when it may succeed later.
        """

        raise NotImplementedError


@dataclass
class ReplayReport:
    synced: list[str] = field(default_factory=list)
    rejected: list[DomainError] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    exhausted: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suspended: bool = False
    pending: int = 0


class OfflineSyncQueue:
    """Client-held queue of attendance actions, replayed idempotently.

    Items are keyed by dedup key: enqueuing a key twice is a no-op and a
    synced item is never sent again, so a suspended replay resumes where it
    stopped.
    """

    def __init__(
        self,
        store: SyncQueueStore,
        *,
        max_attempts: int = DEFAULT_SYNC_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_SYNC_BASE_DELAY_SECONDS,
        max_delay: float = DEFAULT_SYNC_MAX_DELAY_SECONDS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._store = store
        self._max_attempts = max(1, int(max_attempts))
        self._base_delay = float(base_delay)
        self._max_delay = float(max_delay)
        self._clock = clock
        self._guard = threading.Lock()
        self._replaying = threading.Lock()
        self._items = store.load()

    # -------- capture side --------
    def enqueue(self, event: AttendanceEvent) -> SyncQueueItem:
        with self._guard:
            for item in self._items:
                if item.dedup_key == event.dedup_key:
                    return item
            next_id = max((i.item_id for i in self._items), default=0) + 1
            item = SyncQueueItem.from_event(next_id, event, created_at=self._clock())
            self._items.append(item)
            self._store.save(self._items)
            return item

    def items(self) -> list[SyncQueueItem]:
        with self._guard:
            return list(self._items)

    def pending(self) -> list[SyncQueueItem]:
        with self._guard:
            live = [i for i in self._items if i.is_pending and i.attempts < self._max_attempts]
        return sorted(live, key=lambda i: (i.original_timestamp, i.item_id))

    def _persist(self) -> None:
        with self._guard:
            self._store.save(self._items)

    # -------- replay side --------
    def resolve_conflicts(self) -> list[str]:
        """Among pending CHECK_INs for one employee/date the earliest wins.

        A losing check-in from another device takes that device's later items
        for the same employee/date with it, so they never land in the winner's
        session.
        """
        pending = self.pending()
        groups: dict[tuple[int, date], list[SyncQueueItem]] = {}
        for item in pending:
            if item.action == EventType.CHECK_IN:
                groups.setdefault((item.employee_id, item.original_timestamp.date()), []).append(item)

        warnings: list[str] = []

        def discard(item: SyncQueueItem, reason: str) -> None:
            item.discarded = True
            item.last_error = reason
            msg = f"Discarded {item.action.value} {item.dedup_key} for employee {item.employee_id}: {reason}"
            logger.warning(msg)
            warnings.append(msg)

        for (employee_id, work_date), items in groups.items():
            winner, *losers = items
            for loser in losers:
                discard(
                    loser,
                    f"check-in {winner.dedup_key} at {winner.original_timestamp.isoformat()} on {work_date} is earlier",
                )
                if loser.device_id == winner.device_id:
                    continue
                for follower in pending:
                    if (
                        follower.is_pending
                        and follower.action != EventType.CHECK_IN
                        and follower.employee_id == employee_id
                        and follower.device_id == loser.device_id
                        and follower.original_timestamp.date() == work_date
                        and follower.original_timestamp >= loser.original_timestamp
                    ):
                        discard(follower, f"follows discarded check-in {loser.dedup_key} from {loser.device_id}")
        if warnings:
            self._persist()
        return warnings

    def _delay_for(self, attempts: int) -> float:
        return min(self._max_delay, self._base_delay * (2 ** max(0, attempts - 1)))

    def replay(self, target: ReplayTarget, *, cancel: Optional[threading.Event] = None) -> ReplayReport:
        """Push pending items oldest first.

        ``cancel`` is the cancellation point: it is checked between items and
        interrupts backoff waits. A busy queue (another replay running) raises
        ConcurrencyConflictError.
        """
        cancel = cancel or threading.Event()
        if not self._replaying.acquire(blocking=False):
            raise ConcurrencyConflictError("Sync replay already running")
        try:
            report = ReplayReport(warnings=self.resolve_conflicts())
            for item in self.pending():
                if cancel.is_set():
                    report.suspended = True
                    break
                if not self._replay_item(item, target, cancel, report):
                    report.suspended = True
                    break
            report.pending = len(self.pending())
        finally:
            self._replaying.release()

        logger.info(
            "Sync replay: synced=%s rejected=%s discarded=%s pending=%s suspended=%s",
            len(report.synced),
            len(report.rejected),
            len(report.discarded),
            report.pending,
            report.suspended,
        )
        return report

    def _replay_item(
        self,
        item: SyncQueueItem,
        target: ReplayTarget,
        cancel: threading.Event,
        report: ReplayReport,
    ) -> bool:
        """Returns False when the pass must suspend."""
        event = item.to_event()
        while item.attempts < self._max_attempts:
            try:
                target.submit(event)
            except ConnectivityLostError as exc:
                item.last_error = str(exc) or "connectivity lost"
                self._persist()
                return False
            except (TransientSyncError, ConcurrencyConflictError) as exc:
                item.attempts += 1
                item.last_error = str(exc)
                self._persist()
                if item.attempts >= self._max_attempts:
                    logger.warning("Giving up on %s after %s attempts: %s", item.dedup_key, item.attempts, exc)
                    report.exhausted.append(item.dedup_key)
                    return True
                if cancel.wait(self._delay_for(item.attempts)):
                    return False
            except DomainError as exc:
                item.discarded = True
                item.last_error = f"{exc.code.value}: {exc.message}"
                self._persist()
                logger.warning("Server rejected %s: %s", item.dedup_key, item.last_error)
                report.rejected.append(exc)
                report.discarded.append(item.dedup_key)
                return True
            else:
                item.synced = True
                item.last_error = None
                self._persist()
                report.synced.append(item.dedup_key)
                return True
        return True


def queue_from_settings(settings: Any, store: SyncQueueStore) -> OfflineSyncQueue:
    """Build the queue from a settings module (``config.development`` etc.)."""
    return OfflineSyncQueue(
        store,
        max_attempts=int(getattr(settings, "SYNC_MAX_ATTEMPTS", DEFAULT_SYNC_MAX_ATTEMPTS)),
        base_delay=float(getattr(settings, "SYNC_BASE_DELAY_SECONDS", DEFAULT_SYNC_BASE_DELAY_SECONDS)),
        max_delay=float(getattr(settings, "SYNC_MAX_DELAY_SECONDS", DEFAULT_SYNC_MAX_DELAY_SECONDS)),
    )


class LocalReplayTarget(ReplayTarget):
    """Replays straight into an in-process AttendanceService."""

    def __init__(self, attendance_service):
        self._service = attendance_service

    def submit(self, event: AttendanceEvent) -> None:
        self._service.record_event(event)


class SyncReplayTask:
    """The single background replay task of one client.

    ``connectivity_lost`` trips the cancellation point; the current pass
    suspends and ``connectivity_restored`` resumes with whatever is still
    pending.
    """

    def __init__(self, queue: OfflineSyncQueue, target: ReplayTarget, *, idle_interval: float = 30.0):
        self._queue = queue
        self._target = target
        self._idle_interval = float(idle_interval)
        self._online = threading.Event()
        self._cancel = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_report: Optional[ReplayReport] = None

    def connectivity_restored(self) -> None:
        self._cancel.clear()
        self._online.set()

    def connectivity_lost(self) -> None:
        self._online.clear()
        self._cancel.set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="sync-replay", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self._cancel.set()
        self._online.set()
        if self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            if not self._online.wait(self._idle_interval) or self._stop.is_set():
                continue
            try:
                self.last_report = self._queue.replay(self._target, cancel=self._cancel)
            except ConcurrencyConflictError:
                logger.debug("Replay already running, skipping this round")
            # idle until the next round, or until cancelled/stopped
            self._cancel.wait(self._idle_interval)
