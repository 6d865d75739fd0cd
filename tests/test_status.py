"""Attendance status cycle."""

import pytest

from practice.domain.models import AttendanceRecord, new_identifier
from practice.domain.status import (
    NEXT_STATUS,
    AttendanceStatus,
    advance,
    next_status,
    set_status,
    status_from_wire,
)


def test_cycle_order() -> None:
    """Advance walks present, absent, holiday, my_absence, unset and wraps."""

    order = [AttendanceStatus.PRESENT]
    for _ in range(5):
        order.append(next_status(order[-1]))

    assert order == [
        AttendanceStatus.PRESENT,
        AttendanceStatus.ABSENT,
        AttendanceStatus.HOLIDAY,
        AttendanceStatus.MY_ABSENCE,
        AttendanceStatus.UNSET,
        AttendanceStatus.PRESENT,
    ]


def test_transition_table_is_total() -> None:
    assert set(NEXT_STATUS) == set(AttendanceStatus)
    assert set(NEXT_STATUS.values()) == set(AttendanceStatus)


@pytest.mark.parametrize("status", list(AttendanceStatus))
def test_five_advances_return_to_start(status: AttendanceStatus) -> None:
    record = AttendanceRecord(id=new_identifier(), status=status)

    advanced = record
    for _ in range(5):
        advanced = advance(advanced)

    assert advanced == record


def test_new_record_starts_unset_and_advances_to_present() -> None:
    record = AttendanceRecord(id=new_identifier())

    assert record.status is AttendanceStatus.UNSET
    assert advance(record).status is AttendanceStatus.PRESENT
    assert record.status is AttendanceStatus.UNSET


def test_set_status_assigns_directly() -> None:
    record = AttendanceRecord(id=new_identifier(), status=AttendanceStatus.PRESENT)

    assert set_status(record, AttendanceStatus.MY_ABSENCE).status is AttendanceStatus.MY_ABSENCE
    assert set_status(record, "holiday").status is AttendanceStatus.HOLIDAY


def test_null_status_reads_as_unset() -> None:
    assert status_from_wire(None) is AttendanceStatus.UNSET
    assert status_from_wire("absent") is AttendanceStatus.ABSENT

    with pytest.raises(ValueError):
        status_from_wire("late")
