"""
Chat API endpoints - conversational turns over HTTP plus history and analytics.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..bot.service import ChatbotService, get_chatbot_service
from ..middleware.rate_limiter import api_limiter, chat_limiter
from ..models.chat import SESSION_ID_RE, ChatMessage, ChatMessageRequest
from ..storage.chat_storage import ChatStorage, get_chat_storage
from ..utils.auth import get_optional_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

TIME_RANGES = {"1d": 1, "7d": 7, "30d": 30}


def _require_session(session_id: Optional[str]) -> str:
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Session ID is required for guest users"
        )
    if not SESSION_ID_RE.match(session_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid session ID")
    return session_id


@router.post("/message", dependencies=[Depends(chat_limiter)])
async def send_message(
    request: ChatMessageRequest,
    user_id: Optional[str] = Depends(get_optional_user_id),
    chatbot: ChatbotService = Depends(get_chatbot_service),
):
    """
    Send a chat message and get the bot's reply.

    Args:
        request: Message text and optional session id
        user_id: Caller, when a valid token is present

    Returns:
        dict: envelope with the reply, detected intent/entities and UI hints
    """
    response = await chatbot.process_message(request.message, session_id=request.session_id, user_id=user_id)
    return {"success": True, "data": response}


@router.get("/history", dependencies=[Depends(api_limiter)])
async def get_history(
    session_id: Optional[str] = None,
    limit: int = Query(20, ge=1, le=200),
    user_id: Optional[str] = Depends(get_optional_user_id),
    chatbot: ChatbotService = Depends(get_chatbot_service),
):
    """Signed-in users get their own history; guests must name a session."""
    if user_id:
        messages = await chatbot.get_history(user_id=user_id, limit=limit)
    else:
        messages = await chatbot.get_history(session_id=_require_session(session_id), limit=limit)

    messages.reverse()
    return {"success": True, "data": {"messages": messages, "total": len(messages)}}


@router.delete("/history", dependencies=[Depends(api_limiter)])
async def clear_history(
    session_id: Optional[str] = None,
    user_id: Optional[str] = Depends(get_optional_user_id),
    chat_storage: ChatStorage = Depends(get_chat_storage),
    chatbot: ChatbotService = Depends(get_chatbot_service),
):
    if user_id:
        deleted = await chat_storage.delete_user_history(user_id)
        chatbot.clear_conversation(user_id)
    else:
        session_id = _require_session(session_id)
        deleted = 1 if await chat_storage.delete_session(session_id) else 0
        chatbot.clear_conversation(session_id)

    return {
        "success": True,
        "message": f"Cleared {deleted} conversations",
        "data": {"deleted_count": deleted},
    }


def summarize_conversation(session_id: str, messages: List[ChatMessage]) -> Dict[str, Any]:
    """Counts, intents seen, distinct entity values and the turn-by-turn flow."""
    entities: Dict[str, list] = {}
    for message in messages:
        for key, value in message.entities.items():
            values = entities.setdefault(key, [])
            if value not in values:
                values.append(value)

    return {
        "session_id": session_id,
        "total_messages": len(messages),
        "user_messages": sum(1 for m in messages if m.sender == "user"),
        "bot_messages": sum(1 for m in messages if m.sender == "bot"),
        "start_time": messages[0].created_at,
        "last_activity": messages[-1].created_at,
        "intents": list(dict.fromkeys(m.intent.value for m in messages if m.intent)),
        "entities": entities,
        "conversation_flow": [
            {"sender": m.sender, "intent": m.intent, "timestamp": m.created_at} for m in messages
        ],
    }


@router.get("/summary/{session_id}", dependencies=[Depends(api_limiter)])
async def conversation_summary(
    session_id: str,
    chat_storage: ChatStorage = Depends(get_chat_storage),
):
    messages = await chat_storage.get_session_messages(_require_session(session_id))
    if not messages:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No conversation found")

    messages.sort(key=lambda m: m.created_at)
    return {"success": True, "data": {"summary": summarize_conversation(session_id, messages)}}


@router.get("/analytics", dependencies=[Depends(api_limiter)])
async def chat_analytics(
    time_range: str = "7d",
    user_id: Optional[str] = Depends(get_optional_user_id),
    chat_storage: ChatStorage = Depends(get_chat_storage),
):
    """
    Message volume per day and sender, and the intent distribution.

    Unknown ranges fall back to seven days. Signed-in users only see their
    own messages.
    """
    end = datetime.now(timezone.utc)
    start = end - timedelta(days=TIME_RANGES.get(time_range, 7))

    messages = await chat_storage.list_all_messages(since=start)
    if user_id:
        messages = [m for m in messages if m.user_id == user_id]

    by_day = Counter((m.created_at.date().isoformat(), m.sender) for m in messages)
    intents = Counter(m.intent.value for m in messages if m.intent)

    return {
        "success": True,
        "data": {
            "messages_by_day": [
                {"date": day, "sender": sender, "count": count}
                for (day, sender), count in sorted(by_day.items())
            ],
            "intent_distribution": [
                {"intent": intent, "count": count} for intent, count in intents.most_common()
            ],
            "time_range": time_range,
            "start_date": start,
            "end_date": end,
        },
    }


@router.delete("/session/{session_id}", dependencies=[Depends(api_limiter)])
async def clear_session(
    session_id: str,
    chatbot: ChatbotService = Depends(get_chatbot_service),
):
    """Forget the in-memory conversation state; stored messages are kept."""
    cleared = chatbot.clear_conversation(session_id)
    return {
        "success": True,
        "message": "Conversation cleared" if cleared else "No active conversation",
        "data": {"session_id": session_id, "cleared": cleared},
    }
