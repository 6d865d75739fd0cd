"""Local snapshot cache backed by a key-value store."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

import redis
from pydantic import ValidationError as PydanticValidationError

from practice.domain.exceptions import PersistenceError
from practice.domain.models import AppState

LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "patient-attendance-state"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class FileKeyValueStore:
    """One file per key inside ``directory``; writes replace the file atomically."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        temp_path = path.with_suffix(".json.tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisKeyValueStore:
    """Redis string keys; requires a Redis configured with persistence."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self.client.get(name=key)

    def set(self, key: str, value: str) -> None:
        self.client.set(name=key, value=value)

    def delete(self, key: str) -> None:
        self.client.delete(key)


class LocalCache:
    """Whole-snapshot persistence under a single fixed key.

    ``write`` never raises: a failed write is logged and the in-memory
    snapshot stays authoritative. ``read`` returns ``None`` when nothing was
    stored yet or the stored document cannot be decoded.
    """

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY) -> None:
        self.store = store
        self.key = key

    def write(self, state: AppState) -> None:
        try:
            self.store.set(self.key, json.dumps(state.to_document()))
        except Exception as exc:
            error = PersistenceError(f"Saving state under {self.key!r} failed: {exc}")
            LOGGER.error("%s", error)

    def read(self) -> Optional[AppState]:
        try:
            raw_state = self.store.get(self.key)
        except Exception as exc:
            LOGGER.error("Loading state under %r failed: %s", self.key, exc)
            return None

        if raw_state is None:
            LOGGER.debug("No cached state under %r", self.key)
            return None

        try:
            return AppState.model_validate(json.loads(raw_state))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            LOGGER.warning("Cached state under %r is unreadable; ignoring: %s", self.key, exc)
            return None

    def clear(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as exc:
            LOGGER.error("Clearing state under %r failed: %s", self.key, exc)
