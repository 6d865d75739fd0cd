"""Sync status, manual refresh, and flat JSON export/import."""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, status

from practice.routers.patients import get_store, render
from practice.services.store import PracticeStore
from practice.services.transfer import dump_patients, parse_patients

router = APIRouter()


@router.get("/sync/status")
def sync_status(store: PracticeStore = Depends(get_store)) -> Dict[str, Any]:
    """Report the sync signal rendered next to the patient list."""

    engine = store.sync
    if engine is None:
        return {"status": "disabled", "lastError": None, "lastSyncedAt": None, "sessionId": None}

    last_synced_at = engine.last_synced_at
    return {
        "status": engine.status.value,
        "lastError": engine.last_error,
        "lastSyncedAt": last_synced_at.isoformat() if last_synced_at else None,
        "sessionId": engine.session_id,
    }


@router.post("/sync/pull", status_code=status.HTTP_202_ACCEPTED)
def request_pull(store: PracticeStore = Depends(get_store)) -> Dict[str, str]:
    scheduled = store.request_pull() is not None
    return {"status": "scheduled" if scheduled else "disabled"}


@router.get("/export")
def export_patients(store: PracticeStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return dump_patients(store.state)


@router.post("/import")
def import_patients(
    payload: Any = Body(...),
    store: PracticeStore = Depends(get_store),
) -> Dict[str, Any]:
    """Replace the whole patient list with an exported array."""

    patients = parse_patients(payload)
    return render(store, store.import_patients(patients))
