"""Settings and wiring of cache, remote and sync engine."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from practice.services.bootstrap import build_cache, build_feed, build_remote, build_store
from practice.services.cache import FileKeyValueStore, RedisKeyValueStore
from practice.services.feed import InMemoryChangeFeed, RedisChangeFeed
from practice.utils.config import Settings
from practice.utils.logging_config import configure_logging
from remote_store.rest_adapter import RestRemoteStore
from remote_store.sql_adapter import SqlRemoteStore


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("PRACTICE_REMOTE_BACKEND", "rest")
    monkeypatch.setenv("PRACTICE_REMOTE_TIMEOUT_SECONDS", "3.5")

    settings = Settings(_env_file=None)

    assert settings.remote_backend == "rest"
    assert settings.remote_timeout_seconds == 3.5
    assert settings.sync_workers == 1


def test_settings_reject_bad_values() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, remote_timeout_seconds=0)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, cache_backend="sqlite")


def test_local_only_store(tmp_path: Path) -> None:
    settings = Settings(_env_file=None, remote_backend="none", cache_dir=tmp_path)

    store = build_store(settings)

    assert store.sync is None
    assert isinstance(store.cache.store, FileKeyValueStore)
    assert store.state.patients == ()


def test_sql_remote_from_url(tmp_path: Path) -> None:
    settings = Settings(
        _env_file=None,
        remote_database_url=f"sqlite:///{tmp_path / 'remote.db'}",
        cache_dir=tmp_path,
    )

    store = build_store(settings)

    assert isinstance(store.sync.remote, SqlRemoteStore)
    assert store.sync.remote.fetch_all().is_empty
    store.stop_sync()


def test_rest_remote_and_redis_wiring() -> None:
    settings = Settings(
        _env_file=None,
        remote_backend="rest",
        remote_rest_url="https://project.supabase.co",
        remote_api_key="anon",
        cache_backend="redis",
        change_feed="redis",
    )

    feed = build_feed(settings)
    remote = build_remote(settings, feed)

    assert isinstance(feed, RedisChangeFeed)
    assert isinstance(build_cache(settings).store, RedisKeyValueStore)
    assert isinstance(remote, RestRemoteStore)
    assert remote.feed is feed


def test_default_feed_is_in_memory() -> None:
    assert isinstance(build_feed(Settings(_env_file=None)), InMemoryChangeFeed)


def test_configure_logging_sets_level() -> None:
    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    configure_logging("INFO")
