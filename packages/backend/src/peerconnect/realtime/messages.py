"""Wire format of the chat WebSocket.

Every frame, in both directions, is a JSON object {type, data, timestamp}
with an ISO-8601 UTC timestamp.
"""

from datetime import datetime, timezone
from typing import Any

# Client → server (chat_message and typing_indicator also go server → client)
CHAT_MESSAGE = "chat_message"
TYPING_INDICATOR = "typing_indicator"
JOIN_ROOM = "join_room"
LEAVE_ROOM = "leave_room"
PING = "ping"

# Server → client
CONNECTED = "connected"
ROOM_HISTORY = "room_history"
NOTIFICATION = "notification"
ERROR = "error"
PONG = "pong"


def envelope(message_type: str, data: Any = None) -> dict:
    return {
        "type": message_type,
        "data": data if data is not None else {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_envelope(message: str) -> dict:
    return envelope(ERROR, {"message": message})
