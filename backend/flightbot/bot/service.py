"""
Chatbot service - one entry point for a chat turn.

Classifies the message, extracts entities, lets the dialogue manager build a
reply against the conversation session and records both sides of the
exchange in chat storage.
"""

import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.chat import BotReply, ChatMessage, ChatResponse, Entities, Intent
from ..services.flight_service import FlightService
from ..storage.chat_storage import ChatStorage
from .dialogue import DialogueManager
from .entity_extractor import extract_entities
from .intent_classifier import calculate_confidence, classify_intent, normalize_text
from .session_store import ConversationSession, SessionStore

logger = logging.getLogger(__name__)

ERROR_REPLY = (
    "I'm sorry, I encountered an error. Please try again or contact support if the problem persists."
)


class ChatbotService:
    """Conversational front door to flight search and booking help."""

    def __init__(
        self,
        flight_service: FlightService,
        chat_storage: Optional[ChatStorage] = None,
        session_store: Optional[SessionStore] = None,
        rng: Optional[random.Random] = None,
    ):
        self.sessions = session_store or SessionStore()
        self.chat_storage = chat_storage
        self.dialogue = DialogueManager(flight_service, rng=rng)

    async def process_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ChatResponse:
        """
        Handle one user message.

        Never raises: any failure while building the reply is logged and
        answered with a generic apology.

        Args:
            message: Raw user text
            session_id: Conversation to continue; defaults to the user id
            user_id: Authenticated user, if any

        Returns:
            ChatResponse: reply text plus intent, entities and UI hints
        """
        started = time.perf_counter()
        session_id = session_id or user_id or f"guest-{uuid.uuid4()}"

        try:
            session = self.sessions.get_or_create(session_id)
            intent = classify_intent(normalize_text(message))
            entities = extract_entities(message)

            logger.info(
                f"Chat turn in session {session_id}: intent={intent.value}, state={session.state.value}",
                extra={"extra_fields": {
                    "session_id": session_id,
                    "user_id": user_id,
                    "intent": intent.value,
                    "entity_count": entities.count(),
                }}
            )

            reply = await self.dialogue.respond(intent, entities, session, message)
            self._touch(session, intent, message, reply)

            response = ChatResponse(
                message=reply.text,
                intent=intent,
                entities=entities.present(),
                session_id=session_id,
                state=session.state,
                response_type=reply.response_type,
                quick_replies=reply.quick_replies,
                attachments=reply.attachments,
                data=reply.data,
                action=reply.action,
                metadata={
                    "processing_time_ms": self._elapsed_ms(started),
                    "confidence": calculate_confidence(intent, entities.count()),
                    "fallback": reply.fallback,
                },
            )
        except Exception as e:
            logger.error(f"Error processing chat message in session {session_id}: {e}", exc_info=True)
            entities = Entities()
            response = ChatResponse(
                message=ERROR_REPLY,
                intent=Intent.ERROR,
                session_id=session_id,
                metadata={
                    "processing_time_ms": self._elapsed_ms(started),
                    "error_handled": True,
                },
            )

        await self._record_turn(message, entities, user_id, response)
        return response

    @staticmethod
    def _touch(session: ConversationSession, intent: Intent, message: str, reply: BotReply) -> None:
        session.previous_intent = intent
        session.last_message = message
        session.timestamp = datetime.now(timezone.utc)
        if reply.action:
            session.action = reply.action

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    async def _record_turn(
        self,
        message: str,
        entities: Entities,
        user_id: Optional[str],
        response: ChatResponse,
    ) -> None:
        if self.chat_storage is None:
            return

        user_turn = ChatMessage(
            message_id=str(uuid.uuid4()),
            session_id=response.session_id,
            user_id=user_id,
            sender="user",
            message=message,
            intent=response.intent,
            entities=entities.present(),
        )
        bot_turn = ChatMessage(
            message_id=str(uuid.uuid4()),
            session_id=response.session_id,
            user_id=user_id,
            sender="bot",
            message=response.message,
            intent=response.intent,
            response_type=response.response_type,
            quick_replies=response.quick_replies,
            attachments=response.attachments,
            metadata=response.metadata,
        )

        try:
            for turn in (user_turn, bot_turn):
                if not await self.chat_storage.append_message(turn):
                    logger.warning(f"Chat turn not persisted for session {response.session_id}")
        except Exception as e:
            logger.error(f"Failed to persist chat turn for session {response.session_id}: {e}")

    def clear_conversation(self, session_id: str) -> bool:
        cleared = self.sessions.clear(session_id)
        if cleared:
            logger.info(f"Cleared conversation {session_id}")
        return cleared

    def get_conversation(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self.sessions.get(session_id)
        return session.to_dict() if session else None

    async def get_history(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[ChatMessage]:
        if self.chat_storage is None:
            return []
        return await self.chat_storage.get_history(session_id=session_id, user_id=user_id, limit=limit)


# Global chatbot instance
_chatbot_service: Optional[ChatbotService] = None


def init_chatbot_service(
    flight_service: FlightService,
    chat_storage: Optional[ChatStorage] = None,
    idle_timeout_minutes: int = 60,
) -> ChatbotService:
    global _chatbot_service
    _chatbot_service = ChatbotService(
        flight_service,
        chat_storage=chat_storage,
        session_store=SessionStore(idle_timeout_minutes),
    )
    return _chatbot_service


def get_chatbot_service() -> ChatbotService:
    if _chatbot_service is None:
        raise RuntimeError("Chatbot service not initialized. Call init_chatbot_service() first.")
    return _chatbot_service
