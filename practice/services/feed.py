"""Remote change feed: table events fanned out to subscribers."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Protocol

import redis

LOGGER = logging.getLogger(__name__)

DEFAULT_CHANNEL = "patients-changes"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed write on a remote table and the session that made it."""

    table: str
    event: str
    entity_id: str
    origin: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        data: Dict[str, Any] = json.loads(raw)
        return cls(
            table=data["table"],
            event=data["event"],
            entity_id=data["entity_id"],
            origin=data.get("origin", ""),
        )


Listener = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


class ChangeFeed(Protocol):
    def publish(self, event: ChangeEvent) -> None: ...

    def subscribe(self, listener: Listener) -> Unsubscribe: ...


def _deliver(listener: Listener, event: ChangeEvent) -> None:
    try:
        listener(event)
    except Exception:
        LOGGER.exception("Change listener failed for %s %s", event.table, event.entity_id)


class InMemoryChangeFeed:
    """Synchronous in-process feed for a store shared inside one process."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            _deliver(listener, event)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class RedisChangeFeed:
    """Feed over a Redis pub/sub channel, shared by every device session."""

    def __init__(self, client: redis.Redis, channel: str = DEFAULT_CHANNEL) -> None:
        self.client = client
        self.channel = channel

    @classmethod
    def from_url(cls, url: str, channel: str = DEFAULT_CHANNEL) -> "RedisChangeFeed":
        return cls(redis.Redis.from_url(url, decode_responses=True), channel)

    def publish(self, event: ChangeEvent) -> None:
        try:
            self.client.publish(self.channel, event.to_json())
        except redis.RedisError as exc:
            # Subscribers catch up on their next pull.
            LOGGER.warning("Publishing %s %s to %s failed: %s", event.event, event.entity_id, self.channel, exc)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def handle(message: Dict[str, Any]) -> None:
            data = message.get("data")
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            try:
                event = ChangeEvent.from_json(data)
            except (TypeError, ValueError, KeyError) as exc:
                LOGGER.warning("Ignoring malformed change message on %s: %s", self.channel, exc)
                return
            _deliver(listener, event)

        pubsub.subscribe(**{self.channel: handle})
        worker = pubsub.run_in_thread(sleep_time=0.5, daemon=True)
        LOGGER.info("Subscribed to change feed channel=%s", self.channel)

        def unsubscribe() -> None:
            worker.stop()
            pubsub.close()

        return unsubscribe
