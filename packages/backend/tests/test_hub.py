"""ChatHub tests: room registry, local fan-out and the Redis listener.

Learn: get_redis is swapped for a fake whose pubsub() objects replay a
scripted list of Redis events, so the listener's resubscribe path is
driven without a Redis server.
"""

import asyncio
import json
import uuid

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from peerconnect.realtime import hub as hub_module
from peerconnect.realtime.hub import ChatHub
from peerconnect.realtime.pubsub import group_channel, user_channel

SUBSCRIBED = {"type": "psubscribe", "channel": "peerconnect:*", "data": 1}


def _pmessage(channel: str, payload: dict) -> dict:
    return {"type": "pmessage", "channel": channel, "data": json.dumps(payload)}


class FakePubSub:
    """Replays `script`; exceptions in it are raised, then it idles."""

    def __init__(self, script: list):
        self.script = script
        self.patterns: list[str] = []
        self.closed = False

    async def psubscribe(self, pattern: str) -> None:
        self.patterns.append(pattern)

    async def listen(self):
        for item in self.script:
            if isinstance(item, Exception):
                raise item
            yield item
        await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis:
    def __init__(self, *scripts: list):
        self.pubsubs = [FakePubSub(s) for s in scripts]
        self.handed_out = 0

    def pubsub(self) -> FakePubSub:
        pubsub = self.pubsubs[self.handed_out]
        self.handed_out += 1
        return pubsub


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture()
def chat_hub():
    return ChatHub()


# ═══════════════════════════════════════════════════════════
# Registry and local delivery
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_group_delivery_skips_excluded_user(chat_hub, fake_socket):
    group_id, alice, bob = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    a, b = fake_socket(), fake_socket()
    chat_hub.register(alice, a)
    chat_hub.register(bob, b)
    chat_hub.join(group_id, alice)
    chat_hub.join(group_id, bob)

    await chat_hub.deliver_to_group(group_id, {"type": "user_typing"}, exclude_user=alice)
    assert a.sent == []
    assert b.frames("user_typing") == [{"type": "user_typing"}]


@pytest.mark.asyncio
async def test_last_socket_leaves_all_rooms(chat_hub, fake_socket):
    group_id, user_id = uuid.uuid4(), uuid.uuid4()
    first, second = fake_socket(), fake_socket()
    chat_hub.register(user_id, first)
    chat_hub.register(user_id, second)
    chat_hub.join(group_id, user_id)

    chat_hub.unregister(user_id, first)
    assert chat_hub.in_room(group_id, user_id)
    chat_hub.unregister(user_id, second)
    assert not chat_hub.in_room(group_id, user_id)
    assert not chat_hub.is_online(user_id)


# ═══════════════════════════════════════════════════════════
# Redis listener
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_listener_forwards_user_messages(chat_hub, fake_socket, monkeypatch):
    user_id = uuid.uuid4()
    socket = fake_socket()
    chat_hub.register(user_id, socket)
    redis = FakeRedis([
        SUBSCRIBED,
        _pmessage("peerconnect:group:not-a-uuid", {"message": {}}),
        _pmessage(user_channel(user_id), {"message": {"type": "notification"}}),
    ])
    monkeypatch.setattr(hub_module, "get_redis", lambda: redis)

    task = asyncio.create_task(chat_hub.run_listener())
    await _wait_for(lambda: socket.sent)
    task.cancel()
    await task

    assert socket.frames() == [{"type": "notification"}]
    assert redis.pubsubs[0].patterns == ["peerconnect:*"]
    assert redis.pubsubs[0].closed


@pytest.mark.asyncio
async def test_listener_resubscribes_after_connection_loss(
    chat_hub, fake_socket, monkeypatch
):
    group_id, user_id = uuid.uuid4(), uuid.uuid4()
    socket = fake_socket()
    chat_hub.register(user_id, socket)
    chat_hub.join(group_id, user_id)
    redis = FakeRedis(
        [SUBSCRIBED, RedisConnectionError("connection reset")],
        [
            SUBSCRIBED,
            _pmessage(
                group_channel(group_id),
                {"message": {"type": "new_message"}, "exclude": None},
            ),
        ],
    )
    monkeypatch.setattr(hub_module, "get_redis", lambda: redis)

    task = asyncio.create_task(chat_hub.run_listener(retry_delay=0))
    await _wait_for(lambda: socket.sent)
    assert not task.done()

    task.cancel()
    await task
    assert socket.frames("new_message") == [{"type": "new_message"}]
    assert redis.handed_out == 2
    assert all(p.closed for p in redis.pubsubs)
