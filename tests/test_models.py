"""Domain entity validation and wire format."""

import math
from datetime import datetime, timezone

import pytest

from practice.domain.exceptions import ValidationError
from practice.domain.models import (
    AppState,
    AttendanceRecord,
    Patient,
    is_valid_identifier,
    new_identifier,
    validate_patient,
    validate_patients,
)
from practice.domain.status import AttendanceStatus


def make_patient(**overrides) -> Patient:
    values = {"id": new_identifier(), "name": "Ana"}
    values.update(overrides)
    return Patient(**values)


def test_identifiers_are_uuids() -> None:
    assert is_valid_identifier(new_identifier())
    assert not is_valid_identifier("patient-1")
    assert not is_valid_identifier("")
    assert not is_valid_identifier(None)


def test_valid_patient_passes() -> None:
    record = AttendanceRecord(id=new_identifier(), amount=80)
    validate_patient(make_patient(attendance=(record,)))


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"id": "not-a-uuid"}, "id"),
        ({"name": "   "}, "name"),
        ({"name": ""}, "name"),
    ],
)
def test_patient_invariants(overrides: dict, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        validate_patient(make_patient(**overrides))

    assert excinfo.value.field == field


def test_negative_and_non_finite_amounts_are_rejected() -> None:
    for amount in (-1.0, math.inf, math.nan):
        patient = make_patient(attendance=(AttendanceRecord(id=new_identifier(), amount=amount),))
        with pytest.raises(ValidationError) as excinfo:
            validate_patient(patient)
        assert excinfo.value.field == "attendance.amount"


def test_duplicate_record_ids_are_rejected() -> None:
    record_id = new_identifier()
    patient = make_patient(
        attendance=(AttendanceRecord(id=record_id), AttendanceRecord(id=record_id)),
    )

    with pytest.raises(ValidationError):
        validate_patient(patient)


def test_record_ids_are_unique_across_patients() -> None:
    record_id = new_identifier()
    first = make_patient(attendance=(AttendanceRecord(id=record_id),))
    second = make_patient(name="Bruno", attendance=(AttendanceRecord(id=record_id),))

    with pytest.raises(ValidationError) as excinfo:
        validate_patients([first, second])

    assert excinfo.value.field == "attendance.id"


def test_duplicate_patient_ids_are_rejected() -> None:
    patient = make_patient()

    with pytest.raises(ValidationError):
        validate_patients([patient, patient])


def test_entities_are_immutable() -> None:
    patient = make_patient()

    with pytest.raises(Exception):
        patient.name = "Bruno"


def test_document_uses_camel_case() -> None:
    created = datetime(2026, 1, 5, 10, 30, tzinfo=timezone.utc)
    record = AttendanceRecord(id=new_identifier(), date=created, status=AttendanceStatus.PRESENT, amount=50)
    state = AppState(patients=(make_patient(created_at=created, updated_at=created, attendance=(record,)),))

    document = state.to_document()

    assert set(document) == {"patients", "darkMode", "lastUpdate"}
    patient = document["patients"][0]
    assert patient["createdAt"].startswith("2026-01-05T10:30:00")
    assert patient["attendance"][0]["status"] == "present"
    assert patient["attendance"][0]["paid"] is False


def test_document_accepts_null_status_and_naive_dates() -> None:
    document = {
        "patients": [
            {
                "id": new_identifier(),
                "name": "Ana",
                "createdAt": "2026-01-05T10:30:00",
                "updatedAt": "2026-01-05T10:30:00",
                "attendance": [{"id": new_identifier(), "date": "2026-01-06T09:00:00", "status": None}],
            }
        ],
        "darkMode": True,
    }

    state = AppState.model_validate(document)

    record = state.patients[0].attendance[0]
    assert record.status is AttendanceStatus.UNSET
    assert record.date.tzinfo is not None
    assert state.dark_mode is True
    assert state.last_update is None
