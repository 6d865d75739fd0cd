"""Pure state transitions for every user intent.

Each reducer takes the current ``AppState`` and returns a ``CommandResult``
holding the next state together with the remote operations that mirror the
change. Reducers never mutate their input, never touch I/O and receive the
clock value explicitly, so replaying the same intents yields the same state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple

from practice.domain.exceptions import NotFoundError, ValidationError
from practice.domain.models import (
    AppState,
    AttendanceRecord,
    Patient,
    new_identifier,
    validate_patient,
    validate_patients,
    validate_record,
)
from practice.domain.operations import (
    ATTENDANCE_TABLE,
    PATIENTS_TABLE,
    RemoteOperation,
    patient_to_row,
    record_to_row,
)
from practice.domain.status import AttendanceStatus, advance, set_status

PATIENT_EDITABLE_FIELDS = ("name", "phone", "email", "notes")


@dataclass(frozen=True)
class CommandResult:
    state: AppState
    operations: Tuple[RemoteOperation, ...] = ()


def find_patient(state: AppState, patient_id: str) -> Patient:
    for patient in state.patients:
        if patient.id == patient_id:
            return patient
    raise NotFoundError(f"Unknown patient {patient_id}")


def find_record(patient: Patient, record_id: str) -> AttendanceRecord:
    for record in patient.attendance:
        if record.id == record_id:
            return record
    raise NotFoundError(f"Unknown attendance record {record_id} for patient {patient.id}")


def _with_patient(state: AppState, patient: Patient) -> AppState:
    patients = tuple(patient if item.id == patient.id else item for item in state.patients)
    return state.model_copy(update={"patients": patients})


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------
def add_patient(
    state: AppState,
    name: str,
    *,
    now: datetime,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    notes: Optional[str] = None,
    patient_id: Optional[str] = None,
) -> CommandResult:
    """Create a patient with an empty attendance list."""

    patient = Patient(
        id=patient_id or new_identifier(),
        name=(name or "").strip(),
        phone=_clean(phone),
        email=_clean(email),
        notes=_clean(notes),
        created_at=now,
        updated_at=now,
    )
    validate_patient(patient)
    if any(item.id == patient.id for item in state.patients):
        raise ValidationError("id", f"duplicate identifier {patient.id}")

    next_state = state.model_copy(update={"patients": state.patients + (patient,)})
    return CommandResult(
        next_state,
        (RemoteOperation.upsert(PATIENTS_TABLE, patient_to_row(patient), now),),
    )


def update_patient(state: AppState, patient_id: str, *, now: datetime, **changes: Optional[str]) -> CommandResult:
    """Edit the name or contact fields of a patient."""

    unknown = set(changes) - set(PATIENT_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(sorted(unknown)[0], "field is not editable")

    patient = find_patient(state, patient_id)
    update = {key: _clean(value) for key, value in changes.items()}
    if "name" in changes:
        update["name"] = (changes["name"] or "").strip()
    update["updated_at"] = now

    edited = patient.model_copy(update=update)
    validate_patient(edited)
    return CommandResult(
        _with_patient(state, edited),
        (RemoteOperation.upsert(PATIENTS_TABLE, patient_to_row(edited), now),),
    )


def delete_patient(state: AppState, patient_id: str, *, now: datetime) -> CommandResult:
    """Remove a patient together with every record it owns."""

    patient = find_patient(state, patient_id)
    remaining = tuple(item for item in state.patients if item.id != patient_id)
    operations = [RemoteOperation.delete(ATTENDANCE_TABLE, record.id, now) for record in patient.attendance]
    operations.append(RemoteOperation.delete(PATIENTS_TABLE, patient.id, now))
    return CommandResult(state.model_copy(update={"patients": remaining}), tuple(operations))


def replace_patients(state: AppState, patients: Sequence[Patient]) -> CommandResult:
    """Swap in a whole patient list (import). The caller pushes it wholesale."""

    patients = tuple(patients)
    validate_patients(patients)
    return CommandResult(state.model_copy(update={"patients": patients}))


def adopt_remote(state: AppState, patients: Iterable[Patient], *, synced_at: datetime) -> AppState:
    """Overwrite the local patients with a pulled remote snapshot."""

    return state.model_copy(update={"patients": tuple(patients), "last_update": synced_at})


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------
def _touch_records(
    state: AppState,
    patient: Patient,
    attendance: Tuple[AttendanceRecord, ...],
    now: datetime,
    operation: RemoteOperation,
) -> CommandResult:
    edited = patient.model_copy(update={"attendance": attendance, "updated_at": now})
    return CommandResult(
        _with_patient(state, edited),
        (RemoteOperation.upsert(PATIENTS_TABLE, patient_to_row(edited), now), operation),
    )


def _update_record(
    state: AppState,
    patient_id: str,
    record_id: str,
    change: Callable[[AttendanceRecord], AttendanceRecord],
    now: datetime,
) -> CommandResult:
    patient = find_patient(state, patient_id)
    record = change(find_record(patient, record_id))
    validate_record(record)

    attendance = tuple(record if item.id == record_id else item for item in patient.attendance)
    operation = RemoteOperation.upsert(ATTENDANCE_TABLE, record_to_row(patient_id, record, now), now)
    return _touch_records(state, patient, attendance, now, operation)


def add_attendance(
    state: AppState,
    patient_id: str,
    *,
    now: datetime,
    record_id: Optional[str] = None,
    date: Optional[datetime] = None,
) -> CommandResult:
    """Append an unmarked, unbilled record dated ``date`` (default: now)."""

    patient = find_patient(state, patient_id)
    record = AttendanceRecord(id=record_id or new_identifier(), date=date or now)
    validate_record(record)
    if any(item.id == record.id for item in patient.attendance):
        raise ValidationError("attendance.id", f"duplicate identifier {record.id}")

    operation = RemoteOperation.upsert(ATTENDANCE_TABLE, record_to_row(patient_id, record, now), now)
    return _touch_records(state, patient, patient.attendance + (record,), now, operation)


def delete_attendance(state: AppState, patient_id: str, record_id: str, *, now: datetime) -> CommandResult:
    patient = find_patient(state, patient_id)
    find_record(patient, record_id)
    attendance = tuple(item for item in patient.attendance if item.id != record_id)
    operation = RemoteOperation.delete(ATTENDANCE_TABLE, record_id, now)
    return _touch_records(state, patient, attendance, now, operation)


def advance_attendance(state: AppState, patient_id: str, record_id: str, *, now: datetime) -> CommandResult:
    return _update_record(state, patient_id, record_id, advance, now)


def set_attendance_status(
    state: AppState,
    patient_id: str,
    record_id: str,
    status: AttendanceStatus,
    *,
    now: datetime,
) -> CommandResult:
    try:
        status = AttendanceStatus(status)
    except ValueError:
        raise ValidationError("status", f"unknown status {status!r}") from None
    return _update_record(state, patient_id, record_id, lambda record: set_status(record, status), now)


def set_amount(state: AppState, patient_id: str, record_id: str, amount: float, *, now: datetime) -> CommandResult:
    return _update_record(
        state,
        patient_id,
        record_id,
        lambda record: record.model_copy(update={"amount": float(amount)}),
        now,
    )


def set_date(state: AppState, patient_id: str, record_id: str, date: datetime, *, now: datetime) -> CommandResult:
    # Records validate their date on construction only, so rebuild.
    return _update_record(
        state,
        patient_id,
        record_id,
        lambda record: AttendanceRecord(**{**record.model_dump(), "date": date}),
        now,
    )


def toggle_paid(state: AppState, patient_id: str, record_id: str, *, now: datetime) -> CommandResult:
    return _update_record(
        state,
        patient_id,
        record_id,
        lambda record: record.model_copy(update={"paid": not record.paid}),
        now,
    )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
def toggle_dark_mode(state: AppState) -> CommandResult:
    """Flip the display preference. Local only, never pushed."""

    return CommandResult(state.model_copy(update={"dark_mode": not state.dark_mode}))
