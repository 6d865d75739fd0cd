"""Dashboard statistics derived from a domain snapshot."""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from practice.domain.models import Patient
from practice.domain.status import COUNTED_STATUSES, AttendanceStatus


class DashboardStats(BaseModel):
    """Aggregates rendered on the dashboard."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total_patients: int = 0
    total_attendances: int = 0
    total_absences: int = 0
    total_holidays: int = 0
    total_my_absences: int = 0
    pending_payments: int = 0
    total_billed: float = 0.0
    total_collected: float = 0.0
    pending_collection: float = 0.0
    attendance_rate: float = 0.0
    payment_rate: float = 0.0


def _rate(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def compute_stats(patients: Sequence[Patient]) -> DashboardStats:
    """Aggregate attendance and payment figures over every record.

    ``unset`` records count towards none of the status totals. Only records
    with a positive amount take part in billing; ``paid`` on a zero amount
    is ignored.
    """

    counts = {status: 0 for status in AttendanceStatus}
    total_billed = 0.0
    total_collected = 0.0
    pending_payments = 0

    for patient in patients:
        for record in patient.attendance:
            counts[record.status] += 1
            if record.amount > 0:
                total_billed += record.amount
                if record.paid:
                    total_collected += record.amount
                else:
                    pending_payments += 1

    total_attendances = counts[AttendanceStatus.PRESENT]
    marked = sum(counts[status] for status in COUNTED_STATUSES)

    return DashboardStats(
        total_patients=len(patients),
        total_attendances=total_attendances,
        total_absences=counts[AttendanceStatus.ABSENT],
        total_holidays=counts[AttendanceStatus.HOLIDAY],
        total_my_absences=counts[AttendanceStatus.MY_ABSENCE],
        pending_payments=pending_payments,
        total_billed=total_billed,
        total_collected=total_collected,
        pending_collection=total_billed - total_collected,
        attendance_rate=_rate(total_attendances, marked),
        payment_rate=_rate(total_collected, total_billed),
    )
