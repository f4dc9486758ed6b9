"""
Intent classifier - maps a chat message to an Intent by ordered pattern matching.

Patterns are tried in a fixed priority order and the first match wins, even
when a later pattern is more specific. ``book my flight`` is therefore a
flight search, not a booking; the dialogue layer recovers booking requests
from context.
"""

import logging
import re
from typing import List, Tuple

from ..models.chat import Intent

logger = logging.getLogger(__name__)

INTENT_PATTERNS: List[Tuple[Intent, re.Pattern]] = [
    (Intent.GREETING, re.compile(
        r'\b(hi|hello|hey|good morning|good afternoon|good evening|greetings)\b', re.I)),
    (Intent.SEARCH_FLIGHTS, re.compile(
        r'\b(search|find|look for|book|flight|flights|ticket|tickets|travel|fly)\b', re.I)),
    (Intent.BOOK_FLIGHT, re.compile(
        r'\b(book|reserve|purchase|buy|confirm)\b.*\b(flight|ticket)\b', re.I)),
    (Intent.VIEW_BOOKINGS, re.compile(
        r'\b(show|view|see|check|my)\b.*\b(booking|bookings|reservation|reservations|trip|trips)\b', re.I)),
    (Intent.CANCEL_BOOKING, re.compile(
        r'\b(cancel|delete|remove)\b.*\b(booking|reservation|trip)\b', re.I)),
    (Intent.MODIFY_BOOKING, re.compile(
        r'\b(change|modify|update|edit)\b.*\b(booking|reservation|flight)\b', re.I)),
    (Intent.CHECK_FLIGHT_STATUS, re.compile(
        r'\b(status|delay|delayed|on time)\b.*\b(flight)\b', re.I)),
    (Intent.PRICE_INQUIRY, re.compile(
        r'\b(price|cost|how much|cheap|expensive|deal)\b', re.I)),
    (Intent.DESTINATION_INFO, re.compile(
        r'\b(tell me about|information|weather|attractions|visit|popular destinations)\b', re.I)),
    (Intent.HELP, re.compile(
        r'\b(help|assist|support|what can you do|commands)\b', re.I)),
    (Intent.GOODBYE, re.compile(
        r'\b(bye|goodbye|thanks|thank you|see you|exit|quit)\b', re.I)),
    (Intent.COMPLAINT, re.compile(
        r'\b(problem|issue|complain|terrible|awful|bad|worst)\b', re.I)),
]

# A bare three-letter word reads as an airport code
AIRPORT_CODE_TOKEN = re.compile(r'\b[a-z]{3}\b', re.I)
# Six alphanumerics with at least one letter and one digit read as a booking reference
BOOKING_REFERENCE_TOKEN = re.compile(r'\b(?=[a-z0-9]*[a-z])(?=[a-z0-9]*[0-9])[a-z0-9]{6}\b', re.I)

BOOK_FLIGHT_PATTERN = dict(INTENT_PATTERNS)[Intent.BOOK_FLIGHT]


def normalize_text(message: str) -> str:
    return message.strip().lower()


def classify_intent(normalized_message: str) -> Intent:
    """
    Return the first intent whose pattern matches.

    Args:
        normalized_message: Trimmed, lower-cased message

    Returns:
        Intent: the matched intent, a code/reference fallback, or UNKNOWN
    """
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(normalized_message):
            return intent

    if AIRPORT_CODE_TOKEN.search(normalized_message):
        return Intent.SEARCH_FLIGHTS

    if BOOKING_REFERENCE_TOKEN.search(normalized_message):
        return Intent.VIEW_BOOKINGS

    return Intent.UNKNOWN


def calculate_confidence(intent: Intent, entity_count: int) -> float:
    """0.5 base, +0.3 for a recognised intent, +0.05 per entity up to +0.2."""
    confidence = 0.5
    if intent != Intent.UNKNOWN:
        confidence += 0.3
    confidence += min(entity_count * 0.05, 0.2)
    return round(min(confidence, 1.0), 2)
