"""HTTP routers for the attendance UI."""

from fastapi import APIRouter


def get_api_router() -> APIRouter:
    """Combine the patient and sync routers."""

    from practice.routers.patients import router as patients_router
    from practice.routers.sync import router as sync_router

    api_router = APIRouter()
    api_router.include_router(patients_router, tags=["patients"])
    api_router.include_router(sync_router, tags=["sync"])
    return api_router
