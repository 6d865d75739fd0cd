"""Domain entities and their invariants."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from practice.domain.exceptions import ValidationError
from practice.domain.status import AttendanceStatus, INITIAL_STATUS, status_from_wire
from practice.utils.timeutils import ensure_utc, utcnow


class DomainModel(BaseModel):
    """Immutable base; JSON form uses camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class AttendanceRecord(DomainModel):
    """A single attendance session and its charge."""

    id: str
    date: datetime = Field(default_factory=utcnow)
    status: AttendanceStatus = INITIAL_STATUS
    amount: float = 0.0
    paid: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> AttendanceStatus:
        return status_from_wire(value)

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def billable(self) -> bool:
        return self.amount > 0


class Patient(DomainModel):
    """A patient and the attendance records it owns."""

    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    attendance: Tuple[AttendanceRecord, ...] = ()

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AppState(DomainModel):
    """Full domain snapshot plus the display preference persisted with it."""

    patients: Tuple[Patient, ...] = ()
    dark_mode: bool = False
    last_update: Optional[datetime] = None

    @field_validator("last_update")
    @classmethod
    def _normalize_last_update(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_empty(self) -> bool:
        return not self.patients

    def to_document(self) -> dict:
        """Return the JSON-ready ``{patients, darkMode}`` document."""

        return self.model_dump(mode="json", by_alias=True)


def new_identifier() -> str:
    return str(uuid.uuid4())


def is_valid_identifier(value: Any) -> bool:
    """Return True when ``value`` is a canonical UUID string."""

    if not isinstance(value, str) or not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def validate_record(record: AttendanceRecord, *, field_prefix: str = "attendance") -> None:
    """Raise ``ValidationError`` when ``record`` breaks an invariant."""

    if not is_valid_identifier(record.id):
        raise ValidationError(f"{field_prefix}.id", "malformed identifier")
    if not math.isfinite(record.amount):
        raise ValidationError(f"{field_prefix}.amount", "must be a finite number")
    if record.amount < 0:
        raise ValidationError(f"{field_prefix}.amount", "must not be negative")


def validate_patient(patient: Patient) -> None:
    """Raise ``ValidationError`` when ``patient`` breaks an invariant.

    Checks the identifier, a non-blank name, and every owned record
    (identifier format, uniqueness within the patient, non-negative amount).
    """

    if not is_valid_identifier(patient.id):
        raise ValidationError("id", "malformed identifier")
    if not patient.name or not patient.name.strip():
        raise ValidationError("name", "must not be empty")

    seen = set()
    for record in patient.attendance:
        validate_record(record)
        if record.id in seen:
            raise ValidationError("attendance.id", f"duplicate identifier {record.id}")
        seen.add(record.id)


def validate_patients(patients: Iterable[Patient]) -> None:
    """Validate a full patient list, including global identifier uniqueness."""

    patient_ids = set()
    record_ids = set()
    for patient in patients:
        validate_patient(patient)
        if patient.id in patient_ids:
            raise ValidationError("id", f"duplicate identifier {patient.id}")
        patient_ids.add(patient.id)
        for record in patient.attendance:
            if record.id in record_ids:
                raise ValidationError("attendance.id", f"duplicate identifier {record.id}")
            record_ids.add(record.id)
