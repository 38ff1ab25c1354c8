"""ChatHub — who is connected, which rooms they sit in, and fan-out.

Learn: the hub keeps two in-memory maps for *this* process:

    user_id  → set of open sockets (a user may have several tabs)
    group_id → set of user_ids that joined the room

publish_* goes through Redis when it is available so that every API
process sees every message; run_listener() (started in the lifespan)
pattern-subscribes and hands each message to deliver_*, which writes to
the local sockets, re-subscribing whenever the Redis connection drops.
Without Redis, publish_* calls deliver_* directly.
"""

import asyncio
import json
import uuid
from collections import defaultdict
from typing import Any, Optional, Protocol

import structlog
from redis.exceptions import RedisError

from peerconnect.realtime.pubsub import (
    CHANNEL_PREFIX,
    get_redis,
    group_channel,
    user_channel,
)

logger = structlog.get_logger()


class Socket(Protocol):
    async def send_text(self, data: str) -> None: ...


class ChatHub:
    """Per-process registry of chat sockets and rooms."""

    def __init__(self):
        self._sockets: dict[uuid.UUID, set[Socket]] = defaultdict(set)
        self._rooms: dict[uuid.UUID, set[uuid.UUID]] = defaultdict(set)

    # ─── Registry ───────────────────────────────────────

    def register(self, user_id: uuid.UUID, socket: Socket) -> None:
        self._sockets[user_id].add(socket)

    def unregister(self, user_id: uuid.UUID, socket: Socket) -> None:
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets.discard(socket)
        if not sockets:
            # Last tab closed: the user leaves every room
            del self._sockets[user_id]
            for group_id in list(self._rooms):
                self.leave(group_id, user_id)

    def join(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self._rooms[group_id].add(user_id)

    def leave(self, group_id: uuid.UUID, user_id: uuid.UUID) -> None:
        members = self._rooms.get(group_id)
        if members is None:
            return
        members.discard(user_id)
        if not members:
            del self._rooms[group_id]

    def in_room(self, group_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return user_id in self._rooms.get(group_id, ())

    def is_online(self, user_id: uuid.UUID) -> bool:
        return bool(self._sockets.get(user_id))

    def reset(self) -> None:
        self._sockets.clear()
        self._rooms.clear()

    # ─── Publishing ─────────────────────────────────────

    async def publish_to_group(
        self,
        group_id: uuid.UUID,
        message: dict,
        exclude_user: Optional[uuid.UUID] = None,
    ) -> None:
        payload = {
            "message": message,
            "exclude": str(exclude_user) if exclude_user else None,
        }
        if not await self._publish(group_channel(group_id), payload):
            await self.deliver_to_group(group_id, message, exclude_user)

    async def publish_to_user(self, user_id: uuid.UUID, message: dict) -> None:
        if not await self._publish(user_channel(user_id), {"message": message}):
            await self.deliver_to_user(user_id, message)

    async def _publish(self, channel: str, payload: dict) -> bool:
        """Publish via Redis. False means "deliver locally instead"."""
        try:
            redis = get_redis()
        except RuntimeError:
            return False
        try:
            await redis.publish(channel, json.dumps(payload))
            return True
        except RedisError as e:
            logger.warning("chat.publish_failed", channel=channel, error=str(e))
            return False

    # ─── Local delivery ─────────────────────────────────

    async def deliver_to_group(
        self,
        group_id: uuid.UUID,
        message: dict,
        exclude_user: Optional[uuid.UUID] = None,
    ) -> None:
        text = json.dumps(message)
        for user_id in list(self._rooms.get(group_id, ())):
            if user_id != exclude_user:
                await self._send_all(user_id, text)

    async def deliver_to_user(self, user_id: uuid.UUID, message: dict) -> None:
        await self._send_all(user_id, json.dumps(message))

    async def _send_all(self, user_id: uuid.UUID, text: str) -> None:
        for socket in list(self._sockets.get(user_id, ())):
            try:
                await socket.send_text(text)
            except Exception as e:
                # Socket died between receive loops; the gateway cleans up
                logger.debug("chat.send_failed", user_id=str(user_id), error=str(e))
                self.unregister(user_id, socket)

    # ─── Redis listener ─────────────────────────────────

    async def run_listener(self, retry_delay: float = 1.0) -> None:
        """Forward Redis messages to local sockets until cancelled.

        A lost subscription is logged and re-established after
        `retry_delay` seconds.
        """
        logger.info("chat.listener_started")
        while True:
            try:
                await self._listen()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("chat.listener_error")
            try:
                await asyncio.sleep(retry_delay)
            except asyncio.CancelledError:
                return
            logger.info("chat.listener_resubscribing")

    async def _listen(self) -> None:
        pubsub = get_redis().pubsub()
        try:
            await pubsub.psubscribe(f"{CHANNEL_PREFIX}:*")
            async for raw in pubsub.listen():
                if raw["type"] != "pmessage":
                    continue
                await self._dispatch(raw["channel"], raw["data"])
        finally:
            # Closing the pubsub connection drops its subscriptions
            await pubsub.aclose()

    async def _dispatch(self, channel: str, data: str) -> None:
        try:
            _, kind, target = channel.split(":", 2)
            payload: dict[str, Any] = json.loads(data)
            target_id = uuid.UUID(target)
        except ValueError:
            logger.warning("chat.bad_pubsub_message", channel=channel)
            return

        if kind == "group":
            exclude = payload.get("exclude")
            await self.deliver_to_group(
                target_id,
                payload["message"],
                uuid.UUID(exclude) if exclude else None,
            )
        elif kind == "user":
            await self.deliver_to_user(target_id, payload["message"])


# Singleton — one registry per process
hub = ChatHub()
