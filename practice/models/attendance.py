"""Attendance table of the remote store."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice.models.base import Base

if TYPE_CHECKING:
    from practice.models.patient import PatientRow


class Attendance(Base):
    """Remote copy of one attendance record."""

    __tablename__ = "attendance"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        default="unset",
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, index=True)

    patient: Mapped["PatientRow"] = relationship(back_populates="attendance")
