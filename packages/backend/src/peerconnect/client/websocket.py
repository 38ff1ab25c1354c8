"""ChatSocket — a reconnecting client for the /chat WebSocket.

Learn: the client exposes three observable streams instead of raising:

    messages           every well-formed frame, stamped with receive time
    connection_status  True/False; new subscribers get the current value
    errors             human-readable error strings

Reconnect policy: after an *unclean* close (network drop, server crash,
failed handshake) attempt n is scheduled baseDelay × 2^(n-1) seconds later;
after max_reconnect_attempts failures nothing more is scheduled. A clean
close, including disconnect(), never reconnects. A successful open resets
the attempt counter.

Only one connection attempt can be in flight: connect() is a no-op while
a socket is open or a handshake is in progress.

A subscriber that raises is logged and skipped. Any other failure while
receiving closes the socket and counts as an unclean close.

    socket = ChatSocket("ws://localhost:3000")
    socket.messages.subscribe(print)
    socket.connect(access_token)
    await socket.send_message({"groupId": gid, "content": "hi"})
"""

import asyncio
import enum
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar
from urllib.parse import quote

import structlog
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from peerconnect.config import settings

logger = structlog.get_logger()

T = TypeVar("T")

NOT_CONNECTED = "WebSocket is not connected"
CONNECTION_ERROR = "WebSocket connection error"
INVALID_FORMAT = "Invalid message format received"


class ConnectionState(enum.StrEnum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


@dataclass
class WebSocketMessage:
    type: str
    data: Any
    timestamp: datetime


class Stream(Generic[T]):
    """Minimal observable: subscribe() returns an unsubscribe callable."""

    def __init__(self, replay: bool = False, initial: Optional[T] = None):
        self._subscribers: list[Callable[[T], None]] = []
        self._replay = replay
        self._value = initial

    @property
    def value(self) -> Optional[T]:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._subscribers.append(callback)
        if self._replay:
            callback(self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, value: T) -> None:
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                # A failing subscriber must not take the connection down
                logger.exception("chat_client.subscriber_error")


Scheduler = Callable[[float, Callable[[], None]], Any]
Connector = Callable[[str], Awaitable[Any]]


def _call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class ChatSocket:
    """Reconnecting client for the chat WebSocket."""

    def __init__(
        self,
        ws_url: Optional[str] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        *,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        connect: Connector = ws_connect,
        schedule: Scheduler = _call_later,
    ):
        self.ws_url = (ws_url or settings.ws_url).rstrip("/")
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.reconnect_attempts = 0

        self.messages: Stream[WebSocketMessage] = Stream()
        self.connection_status: Stream[bool] = Stream(replay=True, initial=False)
        self.errors: Stream[str] = Stream()

        self._token_provider = token_provider or (lambda: self._token)
        self._connector = connect
        self._schedule = schedule
        self._token: Optional[str] = None
        self._ws: Any = None
        self._connecting = False
        self._closing = False
        self._task: Optional[asyncio.Task] = None
        self._timer: Any = None

    # ─── State ──────────────────────────────────────────

    def is_connected(self) -> bool:
        return self._ws is not None and not self._closing

    @property
    def connection_state(self) -> ConnectionState:
        if self._connecting:
            return ConnectionState.CONNECTING
        if self._ws is not None:
            return ConnectionState.CLOSING if self._closing else ConnectionState.OPEN
        return ConnectionState.CLOSED

    def next_delay(self, attempt: int) -> float:
        """Delay before reconnect attempt `attempt` (1-based)."""
        return self.reconnect_delay * 2 ** (attempt - 1)

    # ─── Connecting ─────────────────────────────────────

    def connect(self, token: Optional[str] = None) -> None:
        """Start connecting in the background (requires a running loop)."""
        if self._ws is not None or self._connecting:
            return
        if token is not None:
            self._token = token
        self._connecting = True
        self._closing = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        url = f"{self.ws_url}/chat?token={quote(self._token_provider() or '')}"
        try:
            ws = await self._connector(url)
        except asyncio.CancelledError:
            self._connecting = False
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._connecting = False
            logger.warning("chat_client.connect_failed", error=str(e))
            self.errors.emit(CONNECTION_ERROR)
            self._handle_close(clean=False)
            return

        self._ws = ws
        self._connecting = False
        self.reconnect_attempts = 0
        logger.info("chat_client.connected", url=self.ws_url)
        self.connection_status.emit(True)

        clean = True
        try:
            async for raw in ws:
                self._handle_message(raw)
        except ConnectionClosedError as e:
            clean = False
            logger.warning("chat_client.connection_lost", error=str(e))
        except Exception:
            clean = False
            logger.exception("chat_client.receive_failed")
            await self._close_quietly(ws)
        finally:
            self._ws = None
        self._handle_close(clean=clean or self._closing)

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug("chat_client.close_failed", error=str(e))

    def _handle_message(self, raw: Any) -> None:
        try:
            frame = json.loads(raw)
        except (ValueError, TypeError):
            self.errors.emit(INVALID_FORMAT)
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
            self.errors.emit(INVALID_FORMAT)
            return
        self.messages.emit(WebSocketMessage(
            type=frame["type"],
            data=frame.get("data"),
            timestamp=datetime.now(timezone.utc),
        ))

    def _handle_close(self, clean: bool) -> None:
        self.connection_status.emit(False)
        if not clean and self.reconnect_attempts < self.max_reconnect_attempts:
            self._schedule_reconnect()
        elif not clean:
            logger.warning(
                "chat_client.reconnect_exhausted", attempts=self.reconnect_attempts
            )

    def _schedule_reconnect(self) -> None:
        self.reconnect_attempts += 1
        delay = self.next_delay(self.reconnect_attempts)
        logger.info(
            "chat_client.reconnect_scheduled",
            attempt=self.reconnect_attempts,
            delay=delay,
        )
        self._timer = self._schedule(delay, self._reconnect)

    def _reconnect(self) -> None:
        self._timer = None
        if self._closing:
            return
        self.connect()

    # ─── Sending ────────────────────────────────────────

    async def send_message(self, message: dict) -> bool:
        """Send a chat_message frame. Reports failures on `errors`, never raises."""
        if not self.is_connected():
            self.errors.emit(NOT_CONNECTED)
            return False
        return await self._send({"type": "chat_message", "data": message})

    async def send_typing_indicator(self, group_id: str, is_typing: bool) -> None:
        if self.is_connected():
            await self._send({
                "type": "typing_indicator",
                "data": {"groupId": group_id, "isTyping": is_typing},
            })

    async def _send(self, frame: dict) -> bool:
        try:
            await self._ws.send(json.dumps(frame))
            return True
        except ConnectionClosed:
            self.errors.emit(NOT_CONNECTED)
            return False

    # ─── Closing ────────────────────────────────────────

    async def disconnect(self) -> None:
        """Close cleanly; no reconnect follows."""
        self._closing = True
        if self._timer is not None and hasattr(self._timer, "cancel"):
            self._timer.cancel()
        self._timer = None

        if self._ws is not None:
            await self._ws.close()
            await self.wait_closed()
        elif self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self.connection_status.emit(False)

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.shield(self._task)
