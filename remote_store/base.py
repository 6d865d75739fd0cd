"""Remote store contract shared by the SQL and REST adapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from practice.domain.operations import TABLES
from practice.services.feed import ChangeEvent, ChangeFeed, Listener, Unsubscribe

LOGGER = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass
class RemoteSnapshot:
    """Rows of both tables, each ordered by ``updated_at`` descending."""

    patients: List[Row] = field(default_factory=list)
    attendance: List[Row] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.patients and not self.attendance


class RemoteStore(Protocol):
    def fetch_all(self) -> RemoteSnapshot: ...

    def upsert(self, table: str, row: Row, *, origin: str = "") -> None: ...

    def delete(self, table: str, entity_id: str, *, origin: str = "") -> None: ...

    def subscribe(self, listener: Listener) -> Unsubscribe: ...


class PublishingStore:
    """Announces committed writes on an optional change feed."""

    def __init__(self, feed: Optional[ChangeFeed] = None) -> None:
        self.feed = feed

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown remote table {table!r}")

    def _publish(self, table: str, event: str, entity_id: str, origin: str) -> None:
        if self.feed is None:
            return
        self.feed.publish(ChangeEvent(table=table, event=event, entity_id=entity_id, origin=origin))

    def subscribe(self, listener: Listener) -> Unsubscribe:
        if self.feed is None:
            LOGGER.info("Remote store has no change feed; relying on explicit pulls")
            return lambda: None
        return self.feed.subscribe(listener)
