"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from practice.domain.exceptions import ConfirmationRequired, NotFoundError, ValidationError
from practice.routers import get_api_router
from practice.services.bootstrap import build_store
from practice.services.store import PracticeStore
from practice.utils.config import Settings, get_settings
from practice.utils.logging_config import configure_logging


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def _validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"field": exc.field, "reason": exc.reason},
        )

    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ConfirmationRequired)
    async def _confirmation_required(_request: Request, exc: ConfirmationRequired) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


def create_app(store: Optional[PracticeStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; without ``store`` one is built from settings at startup."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.store is None
        if owned:
            configure_logging(settings.log_level)
            app.state.store = build_store(settings)
            app.state.store.start_sync()
        try:
            yield
        finally:
            if owned:
                app.state.store.stop_sync()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.store = store
    app.include_router(get_api_router())
    register_exception_handlers(app)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Return service health status."""

        return {"status": "ok"}

    @app.get("/version")
    def version() -> dict[str, str]:
        """Return application version metadata."""

        return {"version": settings.app_version}

    return app


app = create_app()
