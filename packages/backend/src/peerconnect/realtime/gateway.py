"""Chat WebSocket endpoint — /chat?token=<access JWT>.

Learn: one long-lived connection per browser tab. The handshake
authenticates the token (close code 4001 on failure); after accept the
socket is registered with the hub and joined to every group the user
belongs to, then a `connected` frame is sent.

Client frames ({type, data}):
- chat_message     {groupId | meetingId, content} → persisted, fanned out
                   to the whole room (sender included, as confirmation)
- typing_indicator {groupId, isTyping} → fanned out to everyone else
- join_room        {groupId} → membership check, then room_history
- leave_room       {groupId}
- ping             → pong

A bad frame never closes the socket: the client gets an `error` frame.
"""

import json
import uuid
from typing import Any, Callable

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import authenticate_token
from peerconnect.db.engine import async_session_factory
from peerconnect.db.models import User
from peerconnect.errors import ServiceError, UnauthorizedError
from peerconnect.realtime import messages as msg
from peerconnect.realtime.hub import Socket, hub
from peerconnect.schemas.base import CamelModel
from peerconnect.schemas.chat import SendMessageRequest
from peerconnect.services.chat_service import ChatService, message_payload
from peerconnect.services.group_service import GroupService

logger = structlog.get_logger()
router = APIRouter()

CLOSE_UNAUTHORIZED = 4001


class RoomRequest(CamelModel):
    group_id: uuid.UUID


class TypingRequest(CamelModel):
    group_id: uuid.UUID
    is_typing: bool = True


class ChatConnection:
    """Protocol handler for one authenticated socket.

    Kept independent of Starlette so it can be driven with any object
    that has async send_text()/receive_text().
    """

    def __init__(
        self,
        socket: Socket,
        user: User,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
    ):
        self.socket = socket
        self.user = user
        self.session_factory = session_factory
        self._handlers = {
            msg.CHAT_MESSAGE: self.on_chat_message,
            msg.TYPING_INDICATOR: self.on_typing,
            msg.JOIN_ROOM: self.on_join_room,
            msg.LEAVE_ROOM: self.on_leave_room,
            msg.PING: self.on_ping,
        }

    # ─── Lifecycle ──────────────────────────────────────

    async def open(self) -> None:
        hub.register(self.user.id, self.socket)
        async with self.session_factory() as db:
            group_ids = await GroupService(db).user_group_ids(self.user.id)
        for group_id in group_ids:
            hub.join(group_id, self.user.id)

        await self.send(msg.envelope(msg.CONNECTED, {
            "userId": str(self.user.id),
            "userName": self.user.full_name,
            "rooms": [str(g) for g in group_ids],
        }))
        logger.info("chat.connected", user_id=str(self.user.id), rooms=len(group_ids))

    def close(self) -> None:
        hub.unregister(self.user.id, self.socket)
        logger.info("chat.disconnected", user_id=str(self.user.id))

    async def send(self, message: dict) -> None:
        await self.socket.send_text(json.dumps(message))

    # ─── Dispatch ───────────────────────────────────────

    async def handle_text(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await self.send(msg.error_envelope("Invalid message format"))
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
            await self.send(msg.error_envelope("Invalid message format"))
            return

        handler = self._handlers.get(frame["type"])
        if handler is None:
            await self.send(msg.error_envelope(f"Unsupported message type: {frame['type']}"))
            return

        data = frame.get("data") or {}
        try:
            await handler(data)
        except ValidationError:
            await self.send(msg.error_envelope(f"Invalid {frame['type']} payload"))
        except ServiceError as e:
            await self.send(msg.error_envelope(e.message))

    # ─── Handlers ───────────────────────────────────────

    async def on_chat_message(self, data: Any) -> None:
        body = SendMessageRequest.model_validate(data)
        async with self.session_factory() as db:
            await ChatService(db).send_message(
                self.user,
                body.content,
                group_id=body.group_id,
                meeting_id=body.meeting_id,
                message_type=body.message_type,
                file_url=body.file_url,
            )

    async def on_typing(self, data: Any) -> None:
        body = TypingRequest.model_validate(data)
        if not hub.in_room(body.group_id, self.user.id):
            await self.send(msg.error_envelope("You have not joined this room"))
            return
        await hub.publish_to_group(
            body.group_id,
            msg.envelope(msg.TYPING_INDICATOR, {
                "groupId": str(body.group_id),
                "userId": str(self.user.id),
                "userName": self.user.full_name,
                "isTyping": body.is_typing,
            }),
            exclude_user=self.user.id,
        )

    async def on_join_room(self, data: Any) -> None:
        body = RoomRequest.model_validate(data)
        async with self.session_factory() as db:
            chat = ChatService(db)
            await chat.groups.get_group(body.group_id)
            await chat.groups.require_membership(body.group_id, self.user.id)
            history = await chat.recent(body.group_id)
            payload = [message_payload(m) for m in history]

        hub.join(body.group_id, self.user.id)
        await self.send(msg.envelope(msg.ROOM_HISTORY, {
            "groupId": str(body.group_id),
            "messages": payload,
        }))

    async def on_leave_room(self, data: Any) -> None:
        body = RoomRequest.model_validate(data)
        hub.leave(body.group_id, self.user.id)

    async def on_ping(self, data: Any) -> None:
        await self.send(msg.envelope(msg.PONG))


@router.websocket("/chat")
async def chat_websocket(websocket: WebSocket):
    """WebSocket endpoint for group chat."""
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="Authentication required")
        return

    async with async_session_factory() as db:
        try:
            user = await authenticate_token(token, db)
        except UnauthorizedError as e:
            logger.info("chat.rejected", reason=e.message)
            await websocket.close(code=CLOSE_UNAUTHORIZED, reason=e.message)
            return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()
    connection = ChatConnection(websocket, user)
    await connection.open()
    try:
        while True:
            raw = await websocket.receive_text()
            await connection.handle_text(raw)
    except WebSocketDisconnect:
        pass
    finally:
        connection.close()
