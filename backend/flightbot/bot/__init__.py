"""Bot module - rule-based intent/entity understanding and the dialogue flow."""

from .intent_classifier import classify_intent, calculate_confidence, normalize_text
from .entity_extractor import extract_entities, parse_date
from .session_store import ConversationSession, SessionStore
from .dialogue import DialogueManager
from .service import ChatbotService, init_chatbot_service, get_chatbot_service

__all__ = [
    'classify_intent',
    'calculate_confidence',
    'normalize_text',
    'extract_entities',
    'parse_date',
    'ConversationSession',
    'SessionStore',
    'DialogueManager',
    'ChatbotService',
    'init_chatbot_service',
    'get_chatbot_service',
]
