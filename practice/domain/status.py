"""Attendance status cycle."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict

if TYPE_CHECKING:
    from practice.domain.models import AttendanceRecord


class AttendanceStatus(str, Enum):
    """Attendance outcome of a single session."""

    PRESENT = "present"
    ABSENT = "absent"
    HOLIDAY = "holiday"
    MY_ABSENCE = "my_absence"
    UNSET = "unset"


INITIAL_STATUS = AttendanceStatus.UNSET

NEXT_STATUS: Dict[AttendanceStatus, AttendanceStatus] = {
    AttendanceStatus.PRESENT: AttendanceStatus.ABSENT,
    AttendanceStatus.ABSENT: AttendanceStatus.HOLIDAY,
    AttendanceStatus.HOLIDAY: AttendanceStatus.MY_ABSENCE,
    AttendanceStatus.MY_ABSENCE: AttendanceStatus.UNSET,
    AttendanceStatus.UNSET: AttendanceStatus.PRESENT,
}

# Statuses that count towards the attendance rate.
COUNTED_STATUSES = frozenset(NEXT_STATUS) - {AttendanceStatus.UNSET}


def next_status(status: AttendanceStatus) -> AttendanceStatus:
    """Return the status that follows ``status`` in the advance cycle."""

    return NEXT_STATUS[AttendanceStatus(status)]


def advance(record: "AttendanceRecord") -> "AttendanceRecord":
    """Return a copy of ``record`` moved one step along the cycle."""

    return record.model_copy(update={"status": next_status(record.status)})


def set_status(record: "AttendanceRecord", status: AttendanceStatus) -> "AttendanceRecord":
    """Return a copy of ``record`` with ``status`` assigned directly."""

    return record.model_copy(update={"status": AttendanceStatus(status)})


def status_from_wire(value: object) -> AttendanceStatus:
    """Normalize stored status values; ``None`` means not marked."""

    if value is None or value == "":
        return AttendanceStatus.UNSET
    if isinstance(value, AttendanceStatus):
        return value
    return AttendanceStatus(str(value))
