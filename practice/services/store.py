"""Command layer: the single serialized entry point for state changes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from practice.domain import commands
from practice.domain.commands import CommandResult
from practice.domain.exceptions import ConfirmationRequired
from practice.domain.models import AppState, Patient
from practice.domain.stats import DashboardStats, compute_stats
from practice.domain.status import AttendanceStatus
from practice.services.cache import LocalCache
from practice.services.sync import LocalSnapshot, PullResult, SyncEngine
from practice.utils.timeutils import utcnow

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[AppState], None]
Confirm = Callable[[Patient], bool]


class PracticeStore:
    """Owns the current snapshot and applies intents to it one at a time.

    Every change runs under one lock: compute the next snapshot, persist it
    to the local cache, hand the remote operations to the sync engine and
    notify listeners. Pulled remote snapshots go through the same lock.
    """

    def __init__(
        self,
        cache: LocalCache,
        *,
        sync: Optional[SyncEngine] = None,
        state: Optional[AppState] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.cache = cache
        self.sync = sync
        self._clock = clock
        self._state = state if state is not None else AppState()
        self._generation = 0
        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []

    @classmethod
    def open(
        cls,
        cache: LocalCache,
        *,
        sync: Optional[SyncEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "PracticeStore":
        """Start from the cached snapshot, or an empty one on first launch."""

        state = cache.read()
        if state is None:
            LOGGER.info("No cached state found; starting with an empty snapshot")
            state = AppState()
        else:
            LOGGER.info("Loaded cached state: patients=%d", len(state.patients))
        return cls(cache, sync=sync, state=state, clock=clock)

    # ---------------------------------------------------------------------
    # Reading
    # ---------------------------------------------------------------------
    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    def stats(self) -> DashboardStats:
        return compute_stats(self.state.patients)

    def local_snapshot(self) -> LocalSnapshot:
        """Current patients tagged with the number of committed intents so far."""

        with self._lock:
            return LocalSnapshot(self._state.patients, self._generation)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ---------------------------------------------------------------------
    # Serialization point
    # ---------------------------------------------------------------------
    def _commit(self, reduce: Callable[[AppState], CommandResult]) -> AppState:
        with self._lock:
            result = reduce(self._state)
            self._generation += 1
            self._install(result.state)
            if self.sync is not None and result.operations:
                self.sync.enqueue(result.operations)
            return result.state

    def _install(self, state: AppState) -> None:
        self._state = state
        self.cache.write(state)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("State listener failed")

    # ---------------------------------------------------------------------
    # Intents
    # ---------------------------------------------------------------------
    def add_patient(
        self,
        name: str,
        *,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> AppState:
        now = self._clock()
        return self._commit(
            lambda state: commands.add_patient(state, name, now=now, phone=phone, email=email, notes=notes)
        )

    def update_patient(self, patient_id: str, **changes: Optional[str]) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.update_patient(state, patient_id, now=now, **changes))

    def delete_patient(self, patient_id: str, confirm: Confirm) -> AppState:
        """Delete a patient and its records once ``confirm(patient)`` agrees."""

        patient = commands.find_patient(self.state, patient_id)
        if not confirm(patient):
            LOGGER.info("Deletion of patient %s was not confirmed", patient_id)
            raise ConfirmationRequired(f"Deleting patient {patient_id} requires confirmation")

        now = self._clock()
        return self._commit(lambda state: commands.delete_patient(state, patient_id, now=now))

    def add_attendance(self, patient_id: str, *, date: Optional[datetime] = None) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.add_attendance(state, patient_id, now=now, date=date))

    def delete_attendance(self, patient_id: str, record_id: str) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.delete_attendance(state, patient_id, record_id, now=now))

    def advance_attendance(self, patient_id: str, record_id: str) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.advance_attendance(state, patient_id, record_id, now=now))

    def set_attendance_status(self, patient_id: str, record_id: str, status: AttendanceStatus) -> AppState:
        now = self._clock()
        return self._commit(
            lambda state: commands.set_attendance_status(state, patient_id, record_id, status, now=now)
        )

    def set_amount(self, patient_id: str, record_id: str, amount: float) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.set_amount(state, patient_id, record_id, amount, now=now))

    def set_date(self, patient_id: str, record_id: str, date: datetime) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.set_date(state, patient_id, record_id, date, now=now))

    def toggle_paid(self, patient_id: str, record_id: str) -> AppState:
        now = self._clock()
        return self._commit(lambda state: commands.toggle_paid(state, patient_id, record_id, now=now))

    def toggle_dark_mode(self) -> AppState:
        return self._commit(commands.toggle_dark_mode)

    def import_patients(self, patients: Sequence[Patient]) -> AppState:
        """Replace every patient and overwrite the remote with the new list."""

        with self._lock:
            state = self._commit(lambda current: commands.replace_patients(current, patients))
            if self.sync is not None:
                self.sync.enqueue_snapshot(state.patients)
        LOGGER.info("Imported %d patients", len(state.patients))
        return state

    # ---------------------------------------------------------------------
    # Sync
    # ---------------------------------------------------------------------
    def apply_pull(self, result: PullResult) -> AppState:
        """Install the outcome of a pull; adopted remote data overwrites local.

        A remote snapshot is only adopted when no intent was committed after
        the local snapshot it was compared with was read; otherwise a fresh
        pull is scheduled behind the pending pushes.
        """

        with self._lock:
            stale = result.adopted and result.generation != self._generation
            if not stale:
                if result.adopted:
                    state = commands.adopt_remote(self._state, result.patients, synced_at=result.synced_at)
                else:
                    state = self._state.model_copy(update={"last_update": result.synced_at})
                self._install(state)
                return state

        # Local intents were committed while the pull was in flight.
        LOGGER.info("Discarding remote snapshot read before local changes; pulling again")
        self.request_pull()
        return self.state

    def start_sync(self) -> Optional[Future]:
        if self.sync is None:
            return None
        return self.sync.start(self.local_snapshot, self.apply_pull)

    def request_pull(self) -> Optional[Future]:
        if self.sync is None:
            return None
        return self.sync.request_pull()

    def stop_sync(self) -> None:
        if self.sync is not None:
            self.sync.stop()
