"""Patient and attendance intents exposed to the UI."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field

from practice.domain.models import AppState
from practice.domain.stats import compute_stats
from practice.domain.status import AttendanceStatus
from practice.services.store import PracticeStore

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> PracticeStore:
    """Return the store attached to the running application."""

    return request.app.state.store


def render(store: PracticeStore, state: Optional[AppState] = None) -> Dict[str, Any]:
    """Snapshot plus dashboard statistics, as the UI consumes them."""

    if state is None:
        state = store.state
    return {
        "state": state.to_document(),
        "stats": compute_stats(state.patients).model_dump(by_alias=True),
    }


class PatientCreate(BaseModel):
    """Payload of the "add patient" intent."""

    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class PatientUpdate(BaseModel):
    """Payload of the "edit patient" intent; omitted fields stay unchanged."""

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class AttendanceCreate(BaseModel):
    """Payload of the "add attendance" intent; the date defaults to now."""

    date: Optional[datetime] = None


class StatusUpdate(BaseModel):
    """Payload of the "set status" intent."""

    status: AttendanceStatus


class AmountUpdate(BaseModel):
    """Payload of the "set amount" intent."""

    amount: float = Field(ge=0)


class DateUpdate(BaseModel):
    """Payload of the "set date" intent."""

    date: datetime


@router.get("/state")
def read_state(store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return store.state.to_document()


@router.get("/stats")
def read_stats(store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return store.stats().model_dump(by_alias=True)


@router.get("/patients")
def list_patients(
    search: str = Query(default=""),
    store: PracticeStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    """List patients whose name contains ``search`` (case-insensitive)."""

    needle = search.strip().lower()
    return [
        patient.model_dump(mode="json", by_alias=True)
        for patient in store.state.patients
        if needle in patient.name.lower()
    ]


@router.post("/patients", status_code=status.HTTP_201_CREATED)
def add_patient(payload: PatientCreate, store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    state = store.add_patient(
        payload.name,
        phone=payload.phone,
        email=payload.email,
        notes=payload.notes,
    )
    LOGGER.debug("Added patient; total=%d", len(state.patients))
    return render(store, state)


@router.patch("/patients/{patient_id}")
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    state = store.update_patient(patient_id, **payload.model_dump(exclude_unset=True))
    return render(store, state)


@router.delete("/patients/{patient_id}")
def delete_patient(
    patient_id: str,
    confirm: bool = Query(default=False),
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    state = store.delete_patient(patient_id, confirm=lambda _patient: confirm)
    return render(store, state)


@router.post("/patients/{patient_id}/attendance", status_code=status.HTTP_201_CREATED)
def add_attendance(
    patient_id: str,
    payload: Optional[AttendanceCreate] = None,
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    state = store.add_attendance(patient_id, date=payload.date if payload else None)
    return render(store, state)


@router.delete("/patients/{patient_id}/attendance/{record_id}")
def delete_attendance(patient_id: str, record_id: str, store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return render(store, store.delete_attendance(patient_id, record_id))


@router.post("/patients/{patient_id}/attendance/{record_id}/advance")
def advance_attendance(patient_id: str, record_id: str, store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return render(store, store.advance_attendance(patient_id, record_id))


@router.put("/patients/{patient_id}/attendance/{record_id}/status")
def set_attendance_status(
    patient_id: str,
    record_id: str,
    payload: StatusUpdate,
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    return render(store, store.set_attendance_status(patient_id, record_id, payload.status))


@router.put("/patients/{patient_id}/attendance/{record_id}/amount")
def set_amount(
    patient_id: str,
    record_id: str,
    payload: AmountUpdate,
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    return render(store, store.set_amount(patient_id, record_id, payload.amount))


@router.put("/patients/{patient_id}/attendance/{record_id}/date")
def set_date(
    patient_id: str,
    record_id: str,
    payload: DateUpdate,
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    return render(store, store.set_date(patient_id, record_id, payload.date))


@router.post("/patients/{patient_id}/attendance/{record_id}/paid")
def toggle_paid(patient_id: str, record_id: str, store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return render(store, store.toggle_paid(patient_id, record_id))


@router.post("/preferences/dark-mode")
def toggle_dark_mode(store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    return render(store, store.toggle_dark_mode())
