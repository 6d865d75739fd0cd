"""PostgREST (Supabase-style) remote store adapter."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from practice.domain.exceptions import RemoteError
from practice.domain.operations import ATTENDANCE_TABLE, PATIENTS_TABLE
from practice.services.feed import ChangeFeed
from remote_store.base import PublishingStore, RemoteSnapshot, Row

LOGGER = logging.getLogger(__name__)


class RestRemoteStore(PublishingStore):
    """Adapter for a hosted Postgres exposed through the PostgREST protocol."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str],
        feed: Optional[ChangeFeed] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(feed)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or ""
        self._timeout = timeout_seconds
        self._transport = transport

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def fetch_all(self) -> RemoteSnapshot:
        with self._http_client() as client:
            snapshot = RemoteSnapshot(
                patients=self._select(client, PATIENTS_TABLE),
                attendance=self._select(client, ATTENDANCE_TABLE),
            )

        LOGGER.debug(
            "Fetched remote snapshot: patients=%d attendance=%d",
            len(snapshot.patients),
            len(snapshot.attendance),
        )
        return snapshot

    def upsert(self, table: str, row: Row, *, origin: str = "") -> None:
        self._check_table(table)
        with self._http_client() as client:
            self._send(
                client,
                "POST",
                f"/{table}",
                params={"on_conflict": "id"},
                json=row,
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            )
        self._publish(table, "UPSERT", row["id"], origin)

    def delete(self, table: str, entity_id: str, *, origin: str = "") -> None:
        self._check_table(table)
        with self._http_client() as client:
            self._send(client, "DELETE", f"/{table}", params={"id": f"eq.{entity_id}"})
        self._publish(table, "DELETE", entity_id, origin)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _http_client(self) -> httpx.Client:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        return httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _select(self, client: httpx.Client, table: str) -> List[Row]:
        response = self._send(
            client,
            "GET",
            f"/{table}",
            params={"select": "*", "order": "updated_at.desc"},
        )
        payload = response.json()
        if not isinstance(payload, list):
            raise RemoteError(f"Unexpected {table} payload: {type(payload).__name__}")
        return payload

    @staticmethod
    def _send(client: httpx.Client, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise RemoteError(f"{method} {url} timed out") from exc
        except httpx.HTTPStatusError as exc:
            detail: Dict[str, Any] = {"status": exc.response.status_code, "body": exc.response.text}
            raise RemoteError(f"{method} {url} failed: {detail}") from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"{method} {url} failed: {exc}") from exc
        return response
