"""Remote operations and the row shapes of the remote tables."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from practice.domain.models import AttendanceRecord, Patient
from practice.utils.timeutils import ensure_utc

LOGGER = logging.getLogger(__name__)

PATIENTS_TABLE = "patients"
ATTENDANCE_TABLE = "attendance"
TABLES = (PATIENTS_TABLE, ATTENDANCE_TABLE)


class OperationKind(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class RemoteOperation:
    """A single write to replay against the remote store.

    Upserts carry the full row so interleaved pushes can only clobber whole
    entities, never corrupt one.
    """

    kind: OperationKind
    table: str
    entity_id: str
    updated_at: datetime
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def upsert(cls, table: str, row: Dict[str, Any], updated_at: datetime) -> "RemoteOperation":
        return cls(OperationKind.UPSERT, table, row["id"], updated_at, dict(row))

    @classmethod
    def delete(cls, table: str, entity_id: str, updated_at: datetime) -> "RemoteOperation":
        return cls(OperationKind.DELETE, table, entity_id, updated_at)


def patient_to_row(patient: Patient) -> Dict[str, Any]:
    """Map a patient onto the ``patients`` table (attendance excluded)."""

    return {
        "id": patient.id,
        "name": patient.name,
        "phone": patient.phone,
        "email": patient.email,
        "notes": patient.notes,
        "created_at": patient.created_at.isoformat(),
        "updated_at": patient.updated_at.isoformat(),
    }


def record_to_row(patient_id: str, record: AttendanceRecord, updated_at: datetime) -> Dict[str, Any]:
    """Map a record onto the ``attendance`` table."""

    return {
        "id": record.id,
        "patient_id": patient_id,
        "date": record.date.isoformat(),
        "status": record.status.value,
        "amount": record.amount,
        "paid": record.paid,
        "updated_at": updated_at.isoformat(),
    }


def snapshot_operations(patients: Iterable[Patient], updated_at: datetime) -> List[RemoteOperation]:
    """Upserts for every patient and record, parents first."""

    operations: List[RemoteOperation] = []
    for patient in patients:
        operations.append(RemoteOperation.upsert(PATIENTS_TABLE, patient_to_row(patient), updated_at))
        for record in patient.attendance:
            operations.append(
                RemoteOperation.upsert(
                    ATTENDANCE_TABLE,
                    record_to_row(patient.id, record, updated_at),
                    updated_at,
                )
            )
    return operations


def rows_to_patients(
    patient_rows: Iterable[Mapping[str, Any]],
    attendance_rows: Iterable[Mapping[str, Any]],
) -> Tuple[Patient, ...]:
    """Rebuild domain patients from remote rows.

    Patients keep the remote order; each patient's records are sorted by
    date. Records whose parent is missing are dropped.
    """

    patient_rows = list(patient_rows)
    known_ids = {row["id"] for row in patient_rows}
    records: Dict[str, List[AttendanceRecord]] = defaultdict(list)

    for row in attendance_rows:
        patient_id = row.get("patient_id")
        if patient_id not in known_ids:
            LOGGER.warning(
                "Dropping orphan attendance row id=%s patient_id=%s",
                row.get("id"),
                patient_id,
            )
            continue
        records[patient_id].append(
            AttendanceRecord(
                id=row["id"],
                date=row["date"],
                status=row.get("status"),
                amount=row.get("amount") or 0,
                paid=bool(row.get("paid")),
            )
        )

    patients = []
    for row in patient_rows:
        owned = sorted(records.get(row["id"], []), key=lambda record: record.date)
        patients.append(
            Patient(
                id=row["id"],
                name=row["name"],
                phone=row.get("phone"),
                email=row.get("email"),
                notes=row.get("notes"),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
                attendance=tuple(owned),
            )
        )
    return tuple(patients)


def latest_update(rows: Iterable[Mapping[str, Any]]) -> Optional[datetime]:
    """Return the newest ``updated_at`` among ``rows`` (aware UTC), if any."""

    latest: Optional[datetime] = None
    for row in rows:
        value = row.get("updated_at")
        if value is None:
            continue
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        value = ensure_utc(value)
        if latest is None or value > latest:
            latest = value
    return latest
