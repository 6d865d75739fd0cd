"""Reconciliation between the local snapshot and the remote store.

Local state is always written first; everything here runs afterwards on a
background executor and may fail without touching local state.

Pull policy (initial adoption): on this session's first successful pull, a
non-empty local snapshot wins over a remote snapshot that nobody else has
changed since the session started, and is pushed wholesale, overwriting the
remote. Rows this session wrote itself do not count as remote changes.
In every other case the remote snapshot is adopted locally. This is
first-writer-wins at dataset level; concurrent edits from several devices
are resolved by last-write-wins per entity, not merged.

Failed pushes are logged and not retried, and nothing is rolled back. The
status stays ``error`` until the next successful push or pull.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from practice.domain.exceptions import RemoteError
from practice.domain.models import Patient, new_identifier
from practice.domain.operations import (
    ATTENDANCE_TABLE,
    PATIENTS_TABLE,
    OperationKind,
    RemoteOperation,
    latest_update,
    rows_to_patients,
    snapshot_operations,
)
from practice.services.feed import ChangeEvent, Unsubscribe
from practice.utils.timeutils import utcnow
from remote_store.base import RemoteSnapshot, RemoteStore

LOGGER = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass(frozen=True)
class PullResult:
    """Outcome of a pull: the patients to hold locally and how they were chosen."""

    patients: Tuple[Patient, ...]
    adopted: bool
    synced_at: datetime
    generation: int = 0


@dataclass(frozen=True)
class LocalSnapshot:
    """Local patients as read for a pull, tagged with the store's change counter."""

    patients: Tuple[Patient, ...]
    generation: int = 0


SnapshotProvider = Callable[[], LocalSnapshot]
PullHandler = Callable[[PullResult], None]


class SyncEngine:
    """Pushes local mutations and pulls remote snapshots in the background."""

    def __init__(
        self,
        remote: RemoteStore,
        *,
        executor: Optional[Executor] = None,
        workers: int = 1,
        clock: Callable[[], datetime] = utcnow,
        session_id: Optional[str] = None,
    ) -> None:
        self.remote = remote
        self.session_id = session_id or new_identifier()
        self._clock = clock
        self.session_started_at = clock()
        # A single worker keeps pushes in intent order.
        self._executor = executor or ThreadPoolExecutor(max_workers=workers, thread_name_prefix="practice-sync")
        self._owns_executor = executor is None
        self._lock = threading.Lock()
        self._first_pull_done = False
        # (table, id) -> updated_at of rows this session wrote.
        self._written: Dict[Tuple[str, str], datetime] = {}
        self._status = SyncStatus.IDLE
        self.last_error: Optional[str] = None
        self.last_synced_at: Optional[datetime] = None
        self._snapshot_provider: Optional[SnapshotProvider] = None
        self._on_pull: Optional[PullHandler] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    # ---------------------------------------------------------------------
    # Status
    # ---------------------------------------------------------------------
    @property
    def status(self) -> SyncStatus:
        with self._lock:
            return self._status

    def _mark(self, status: SyncStatus) -> None:
        with self._lock:
            self._status = status

    def _succeed(self, when: datetime) -> None:
        with self._lock:
            self._status = SyncStatus.SYNCED
            self.last_error = None
            self.last_synced_at = when

    def _fail(self, stage: str, exc: Exception) -> None:
        LOGGER.error("Sync %s failed; keeping local state: %s", stage, exc)
        with self._lock:
            self._status = SyncStatus.ERROR
            self.last_error = str(exc)

    # ---------------------------------------------------------------------
    # Push
    # ---------------------------------------------------------------------
    def enqueue(self, operations: Iterable[RemoteOperation]) -> Optional[Future]:
        """Schedule ``operations`` for a fire-and-forget push, in order."""

        operations = tuple(operations)
        if not operations:
            return None
        return self._executor.submit(self._push, operations)

    def enqueue_snapshot(self, patients: Sequence[Patient]) -> Future:
        """Schedule a wholesale overwrite of the remote with ``patients``."""

        patients = tuple(patients)
        return self._executor.submit(self._push_snapshot_task, patients)

    def _push(self, operations: Tuple[RemoteOperation, ...]) -> bool:
        self._mark(SyncStatus.SYNCING)
        try:
            for operation in operations:
                self._apply(operation)
        except RemoteError as exc:
            self._fail("push", exc)
            return False
        self._succeed(self._clock())
        return True

    def _push_snapshot_task(self, patients: Tuple[Patient, ...]) -> bool:
        self._mark(SyncStatus.SYNCING)
        try:
            self.push_snapshot(patients)
        except RemoteError as exc:
            self._fail("snapshot push", exc)
            return False
        self._succeed(self._clock())
        return True

    def _apply(self, operation: RemoteOperation) -> None:
        LOGGER.debug("Pushing %s %s %s", operation.kind.value, operation.table, operation.entity_id)
        key = (operation.table, operation.entity_id)
        if operation.kind is OperationKind.UPSERT:
            self.remote.upsert(operation.table, operation.payload, origin=self.session_id)
            with self._lock:
                self._written[key] = operation.updated_at
        else:
            self.remote.delete(operation.table, operation.entity_id, origin=self.session_id)
            with self._lock:
                self._written.pop(key, None)

    def push_snapshot(self, patients: Sequence[Patient], remote: Optional[RemoteSnapshot] = None) -> None:
        """Make the remote hold exactly ``patients``. Raises ``RemoteError``."""

        now = self._clock()
        if remote is None:
            remote = self.remote.fetch_all()

        local_patient_ids = {patient.id for patient in patients}
        local_record_ids = {record.id for patient in patients for record in patient.attendance}

        stale = [
            RemoteOperation.delete(ATTENDANCE_TABLE, row["id"], now)
            for row in remote.attendance
            if row["id"] not in local_record_ids
        ]
        stale.extend(
            RemoteOperation.delete(PATIENTS_TABLE, row["id"], now)
            for row in remote.patients
            if row["id"] not in local_patient_ids
        )
        operations = stale + snapshot_operations(patients, now)

        LOGGER.info(
            "Pushing local snapshot wholesale: patients=%d stale_rows=%d",
            len(patients),
            len(stale),
        )
        for operation in operations:
            self._apply(operation)

    # ---------------------------------------------------------------------
    # Pull
    # ---------------------------------------------------------------------
    def _foreign_rows(self, table: str, rows: Iterable[Mapping[str, Any]]) -> Iterator[Mapping[str, Any]]:
        """Rows not last written by this session."""

        with self._lock:
            written = dict(self._written)
        for row in rows:
            ours = written.get((table, row["id"]))
            stamp = latest_update([row])
            if ours is not None and (stamp is None or stamp <= ours):
                continue
            yield row

    def _remote_predates_session(self, remote: RemoteSnapshot) -> bool:
        rows: List[Mapping[str, Any]] = list(self._foreign_rows(PATIENTS_TABLE, remote.patients))
        rows.extend(self._foreign_rows(ATTENDANCE_TABLE, remote.attendance))
        latest = latest_update(rows)
        return latest is None or latest <= self.session_started_at

    def pull(self, local_patients: Sequence[Patient]) -> PullResult:
        """Fetch the remote snapshot and decide which side wins.

        Raises ``RemoteError`` after logging and flagging the failure.
        """

        with self._lock:
            first_pull = not self._first_pull_done
        self._mark(SyncStatus.SYNCING)

        try:
            remote = self.remote.fetch_all()
            now = self._clock()
            if first_pull and local_patients and self._remote_predates_session(remote):
                LOGGER.info(
                    "First pull of session %s: local snapshot is authoritative (local=%d remote=%d)",
                    self.session_id,
                    len(local_patients),
                    len(remote.patients),
                )
                self.push_snapshot(local_patients, remote)
                result = PullResult(tuple(local_patients), adopted=False, synced_at=now)
            else:
                try:
                    patients = rows_to_patients(remote.patients, remote.attendance)
                except (PydanticValidationError, KeyError) as exc:
                    raise RemoteError(f"Remote snapshot is malformed: {exc}") from exc
                LOGGER.info("Adopting remote snapshot: patients=%d", len(patients))
                result = PullResult(patients, adopted=True, synced_at=now)
        except RemoteError as exc:
            self._fail("pull", exc)
            raise

        with self._lock:
            self._first_pull_done = True
        self._succeed(result.synced_at)
        return result

    def request_pull(self) -> Future:
        """Schedule a background pull whose result goes to the pull handler."""

        return self._executor.submit(self._background_pull)

    def _background_pull(self) -> Optional[PullResult]:
        local = self._snapshot_provider() if self._snapshot_provider else LocalSnapshot(())
        try:
            result = replace(self.pull(local.patients), generation=local.generation)
        except RemoteError:
            return None
        if self._on_pull is not None:
            self._on_pull(result)
        return result

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------
    def start(self, snapshot_provider: SnapshotProvider, on_pull: PullHandler) -> Future:
        """Subscribe to remote changes and schedule the startup pull."""

        self._snapshot_provider = snapshot_provider
        self._on_pull = on_pull
        self._unsubscribe = self.remote.subscribe(self._on_remote_change)
        LOGGER.info("Sync session %s started", self.session_id)
        return self.request_pull()

    def _on_remote_change(self, event: ChangeEvent) -> None:
        if event.origin == self.session_id:
            return
        LOGGER.info(
            "Remote %s on %s %s from session %s; pulling",
            event.event,
            event.table,
            event.entity_id,
            event.origin or "unknown",
        )
        self.request_pull()

    def stop(self) -> None:
        """Unsubscribe from the feed. In-flight pushes are left to finish."""

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        LOGGER.info("Sync session %s stopped", self.session_id)
