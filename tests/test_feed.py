"""Change feed fan-out."""

import json
from unittest.mock import MagicMock

import redis

from practice.services.feed import ChangeEvent, InMemoryChangeFeed, RedisChangeFeed

EVENT = ChangeEvent(table="patients", event="UPSERT", entity_id="p-1", origin="session-a")


def test_in_memory_feed_delivers_until_unsubscribed() -> None:
    feed = InMemoryChangeFeed()
    received = []
    unsubscribe = feed.subscribe(received.append)

    feed.publish(EVENT)
    unsubscribe()
    feed.publish(EVENT)

    assert received == [EVENT]


def test_failing_listener_does_not_block_others() -> None:
    feed = InMemoryChangeFeed()
    received = []

    def broken(_event: ChangeEvent) -> None:
        raise RuntimeError("boom")

    feed.subscribe(broken)
    feed.subscribe(received.append)
    feed.publish(EVENT)

    assert received == [EVENT]


def test_event_json_round_trip() -> None:
    assert ChangeEvent.from_json(EVENT.to_json()) == EVENT
    assert ChangeEvent.from_json(json.dumps({"table": "attendance", "event": "DELETE", "entity_id": "r"})).origin == ""


def test_redis_feed_publishes_on_channel() -> None:
    client = MagicMock()
    feed = RedisChangeFeed(client, channel="practice-test")

    feed.publish(EVENT)

    channel, payload = client.publish.call_args.args
    assert channel == "practice-test"
    assert ChangeEvent.from_json(payload) == EVENT


def test_redis_publish_failure_is_swallowed() -> None:
    client = MagicMock()
    client.publish.side_effect = redis.ConnectionError("down")

    RedisChangeFeed(client).publish(EVENT)


def test_redis_subscription_decodes_messages() -> None:
    client = MagicMock()
    pubsub = client.pubsub.return_value
    received = []
    feed = RedisChangeFeed(client, channel="practice-test")

    unsubscribe = feed.subscribe(received.append)
    handler = pubsub.subscribe.call_args.kwargs["practice-test"]
    handler({"type": "message", "data": EVENT.to_json().encode("utf-8")})
    handler({"type": "message", "data": "garbage"})
    unsubscribe()

    assert received == [EVENT]
    pubsub.run_in_thread.assert_called_once()
    pubsub.run_in_thread.return_value.stop.assert_called_once()
    pubsub.close.assert_called_once()
