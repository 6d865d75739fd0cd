"""Remote store backed by the SQLAlchemy ``patients``/``attendance`` tables."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice.domain.exceptions import RemoteError
from practice.domain.operations import ATTENDANCE_TABLE, PATIENTS_TABLE
from practice.models.attendance import Attendance
from practice.models.base import Base
from practice.models.patient import PatientRow
from practice.services.db import get_session
from practice.services.feed import ChangeFeed
from remote_store.base import PublishingStore, RemoteSnapshot, Row

LOGGER = logging.getLogger(__name__)

MODELS: Dict[str, Type[Base]] = {
    PATIENTS_TABLE: PatientRow,
    ATTENDANCE_TABLE: Attendance,
}
DATETIME_COLUMNS = {"created_at", "updated_at", "date"}


def _to_row(instance: Base) -> Row:
    return {column.name: getattr(instance, column.name) for column in instance.__table__.columns}


def _coerce(model: Type[Base], row: Row) -> Dict[str, Any]:
    columns = {column.name for column in model.__table__.columns}
    values: Dict[str, Any] = {}
    for key, value in row.items():
        if key not in columns:
            continue
        if key in DATETIME_COLUMNS and isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        values[key] = value
    return values


class SqlRemoteStore(PublishingStore):
    """Adapter over a relational database reachable through SQLAlchemy."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        super().__init__(feed)
        self._session_factory = session_factory

    def fetch_all(self) -> RemoteSnapshot:
        try:
            with get_session(self._session_factory) as session:
                patients = session.scalars(select(PatientRow).order_by(PatientRow.updated_at.desc())).all()
                attendance = session.scalars(select(Attendance).order_by(Attendance.updated_at.desc())).all()
                snapshot = RemoteSnapshot(
                    patients=[_to_row(item) for item in patients],
                    attendance=[_to_row(item) for item in attendance],
                )
        except SQLAlchemyError as exc:
            raise RemoteError(f"Fetching remote snapshot failed: {exc}") from exc

        LOGGER.debug(
            "Fetched remote snapshot: patients=%d attendance=%d",
            len(snapshot.patients),
            len(snapshot.attendance),
        )
        return snapshot

    def upsert(self, table: str, row: Row, *, origin: str = "") -> None:
        self._check_table(table)
        model = MODELS[table]
        try:
            with get_session(self._session_factory) as session:
                session.merge(model(**_coerce(model, row)))
        except SQLAlchemyError as exc:
            raise RemoteError(f"Upserting {table} {row.get('id')} failed: {exc}") from exc
        self._publish(table, "UPSERT", row["id"], origin)

    def delete(self, table: str, entity_id: str, *, origin: str = "") -> None:
        self._check_table(table)
        model = MODELS[table]
        try:
            with get_session(self._session_factory) as session:
                instance = session.get(model, entity_id)
                if instance is None:
                    LOGGER.debug("Delete of missing %s %s is a no-op", table, entity_id)
                    return
                session.delete(instance)
        except SQLAlchemyError as exc:
            raise RemoteError(f"Deleting {table} {entity_id} failed: {exc}") from exc
        self._publish(table, "DELETE", entity_id, origin)
