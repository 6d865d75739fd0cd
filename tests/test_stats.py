"""Dashboard aggregation."""

import pytest

from practice.domain.models import AttendanceRecord, Patient, new_identifier
from practice.domain.stats import compute_stats
from practice.domain.status import AttendanceStatus


def record(status: AttendanceStatus = AttendanceStatus.UNSET, amount: float = 0.0, paid: bool = False):
    return AttendanceRecord(id=new_identifier(), status=status, amount=amount, paid=paid)


def patient(*records: AttendanceRecord, name: str = "Ana") -> Patient:
    return Patient(id=new_identifier(), name=name, attendance=records)


def test_empty_snapshot_has_zero_rates() -> None:
    stats = compute_stats([])

    assert stats.total_patients == 0
    assert stats.attendance_rate == 0
    assert stats.payment_rate == 0
    assert stats.pending_collection == 0


def test_single_present_record() -> None:
    stats = compute_stats([patient(record(AttendanceStatus.PRESENT))])

    assert stats.total_attendances == 1
    assert stats.total_absences == 0
    assert stats.attendance_rate == 100


def test_status_counts_and_attendance_rate() -> None:
    stats = compute_stats(
        [
            patient(record(AttendanceStatus.PRESENT), record(AttendanceStatus.ABSENT)),
            patient(
                record(AttendanceStatus.HOLIDAY),
                record(AttendanceStatus.MY_ABSENCE),
                record(AttendanceStatus.UNSET),
                name="Bruno",
            ),
        ]
    )

    assert stats.total_patients == 2
    assert stats.total_attendances == 1
    assert stats.total_absences == 1
    assert stats.total_holidays == 1
    assert stats.total_my_absences == 1
    assert stats.attendance_rate == pytest.approx(25.0)


def test_unset_records_only_is_zero_rate() -> None:
    stats = compute_stats([patient(record(), record())])

    assert stats.total_attendances == 0
    assert stats.attendance_rate == 0


def test_billing_figures() -> None:
    stats = compute_stats(
        [
            patient(
                record(AttendanceStatus.PRESENT, amount=100, paid=True),
                record(AttendanceStatus.PRESENT, amount=50),
                record(AttendanceStatus.ABSENT, amount=0, paid=True),
            )
        ]
    )

    assert stats.total_billed == 150
    assert stats.total_collected == 100
    assert stats.pending_collection == 50
    assert stats.pending_payments == 1
    assert stats.payment_rate == pytest.approx(100 / 150 * 100)


def test_paid_flag_on_zero_amount_is_ignored() -> None:
    stats = compute_stats([patient(record(amount=0, paid=True))])

    assert stats.total_collected == 0
    assert stats.pending_payments == 0
    assert stats.payment_rate == 0


def test_camel_case_dump() -> None:
    dumped = compute_stats([]).model_dump(by_alias=True)

    assert "attendanceRate" in dumped
    assert "pendingCollection" in dumped
