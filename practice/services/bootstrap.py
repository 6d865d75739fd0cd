"""Wire cache, remote store, change feed and sync engine from settings."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from practice.services.cache import FileKeyValueStore, LocalCache, RedisKeyValueStore
from practice.services.db import build_engine, build_session_factory
from practice.services.feed import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from practice.services.store import PracticeStore
from practice.services.sync import SyncEngine
from practice.utils.config import Settings
from remote_store.base import RemoteStore
from remote_store.rest_adapter import RestRemoteStore
from remote_store.sql_adapter import SqlRemoteStore

LOGGER = logging.getLogger(__name__)


def build_cache(settings: Settings) -> LocalCache:
    if settings.cache_backend == "redis":
        return LocalCache(RedisKeyValueStore.from_url(settings.redis_url), key=settings.cache_key)
    return LocalCache(FileKeyValueStore(settings.cache_dir), key=settings.cache_key)


def build_feed(settings: Settings) -> ChangeFeed:
    if settings.change_feed == "redis":
        return RedisChangeFeed.from_url(settings.redis_url, settings.change_feed_channel)
    return InMemoryChangeFeed()


def build_remote(settings: Settings, feed: ChangeFeed) -> Optional[RemoteStore]:
    if settings.remote_backend == "none":
        LOGGER.info("Remote store disabled; running local-only")
        return None
    if settings.remote_backend == "rest":
        return RestRemoteStore(
            base_url=settings.remote_rest_url,
            api_key=settings.remote_api_key,
            feed=feed,
            timeout_seconds=settings.remote_timeout_seconds,
        )
    engine = build_engine(settings.remote_database_url, timeout_seconds=settings.remote_timeout_seconds)
    try:
        session_factory = build_session_factory(engine, create_tables=True)
    except SQLAlchemyError as exc:
        LOGGER.warning("Remote database unreachable at startup; continuing offline: %s", exc)
        session_factory = build_session_factory(engine)
    return SqlRemoteStore(session_factory, feed=feed)


def build_store(settings: Settings) -> PracticeStore:
    """Open the local snapshot and attach a sync engine when a remote is configured."""

    remote = build_remote(settings, build_feed(settings))
    sync = SyncEngine(remote, workers=settings.sync_workers) if remote is not None else None
    return PracticeStore.open(build_cache(settings), sync=sync)
