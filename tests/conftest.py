"""Shared fixtures: deterministic clock, inline executor, throwaway stores."""

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from practice.services.cache import FileKeyValueStore, LocalCache
from practice.services.db import build_engine, build_session_factory
from practice.services.feed import InMemoryChangeFeed
from practice.services.store import PracticeStore
from practice.services.sync import SyncEngine
from remote_store.sql_adapter import SqlRemoteStore

START = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # pragma: no cover - surfaced through the future
            future.set_exception(exc)
        return future


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def cache(tmp_path: Path) -> LocalCache:
    return LocalCache(FileKeyValueStore(tmp_path / "cache"))


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture
def remote(feed: InMemoryChangeFeed) -> SqlRemoteStore:
    engine = build_engine("sqlite://")
    return SqlRemoteStore(build_session_factory(engine, create_tables=True), feed=feed)


@pytest.fixture
def make_engine(remote: SqlRemoteStore, clock: SteppingClock) -> Callable[..., SyncEngine]:
    def factory(**kwargs: Any) -> SyncEngine:
        kwargs.setdefault("executor", InlineExecutor())
        kwargs.setdefault("clock", clock)
        return SyncEngine(kwargs.pop("remote", remote), **kwargs)

    return factory


@pytest.fixture
def store(cache: LocalCache, clock: SteppingClock) -> PracticeStore:
    """Local-only store."""

    return PracticeStore(cache, clock=clock)
