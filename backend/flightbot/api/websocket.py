"""
Real-time chat over WebSocket.

Frames are JSON objects ``{"event": ..., "data": ...}``.

Connect with ``/ws/chat?token=<access token>`` to chat as a signed-in user;
without a valid token the connection is a guest.

Client events:
    chat message   {"message": str, "sessionId"?: str}
    typing         any payload, relayed to the other connections
    stop typing

Server events:
    bot response      reply to the sender
    user typing       broadcast to everyone else
    user stop typing  broadcast to everyone else
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..bot.service import get_chatbot_service
from ..utils.auth import decode_access_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

ERROR_REPLY = "Sorry, I encountered an error. Please try again."


class ConnectionManager:
    """Tracks open sockets so typing indicators can be broadcast."""

    def __init__(self):
        self.active: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active[connection_id] = websocket
        logger.info(f"WebSocket connected: {connection_id} ({len(self.active)} open)")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self.active.pop(connection_id, None)
        logger.info(f"WebSocket disconnected: {connection_id} ({len(self.active)} open)")

    async def send(self, websocket: WebSocket, event: str, data: Any = None) -> None:
        await websocket.send_json({"event": event, "data": data})

    async def broadcast(self, sender_id: str, event: str, data: Any = None) -> None:
        """Send to every connection except the sender; dead sockets are dropped."""
        for connection_id, websocket in list(self.active.items()):
            if connection_id == sender_id:
                continue
            try:
                await self.send(websocket, event, data)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(connection_id)


manager = ConnectionManager()


async def handle_chat_message(
    connection_id: str,
    payload: Optional[Dict[str, Any]],
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run one chat turn and shape the ``bot response`` payload.

    ``user_id`` comes from the connection's token only; a ``userId`` in the
    payload is ignored.
    """
    payload = payload or {}
    try:
        message = str(payload.get("message", "")).strip()
        if not message:
            raise ValueError("empty message")

        session_id = payload.get("sessionId") or user_id or connection_id
        response = await get_chatbot_service().process_message(
            message[:1000],
            session_id=session_id,
            user_id=user_id,
        )
        return {
            "message": response.message,
            "data": response.data,
            "quick_replies": response.quick_replies,
            "intent": response.intent.value,
            "action": response.action,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as e:
        logger.error(f"WebSocket chat turn failed on {connection_id}: {e}", exc_info=True)
        return {
            "message": ERROR_REPLY,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    token = websocket.query_params.get("token")
    token_data = decode_access_token(token) if token else None
    user_id = token_data.user_id if token_data else None

    connection_id = await manager.connect(websocket)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                logger.warning(f"Ignoring non-JSON frame on {connection_id}")
                continue

            if not isinstance(frame, dict):
                continue
            event, data = frame.get("event"), frame.get("data")

            if event == "chat message":
                reply = await handle_chat_message(
                    connection_id, data if isinstance(data, dict) else None, user_id
                )
                await manager.send(websocket, "bot response", reply)
            elif event == "typing":
                await manager.broadcast(connection_id, "user typing", data)
            elif event == "stop typing":
                await manager.broadcast(connection_id, "user stop typing")
            else:
                logger.debug(f"Unknown WebSocket event '{event}' on {connection_id}")
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection_id)
