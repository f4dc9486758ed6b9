"""
Chat Models - intents, conversation state and message records.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

SESSION_ID_RE = re.compile(r'^[A-Za-z0-9_\-]{1,100}$')


class Intent(str, Enum):
    """Purpose of a user utterance."""
    GREETING = "greeting"
    SEARCH_FLIGHTS = "search_flights"
    BOOK_FLIGHT = "book_flight"
    VIEW_BOOKINGS = "view_bookings"
    CANCEL_BOOKING = "cancel_booking"
    MODIFY_BOOKING = "modify_booking"
    CHECK_FLIGHT_STATUS = "check_flight_status"
    PRICE_INQUIRY = "price_inquiry"
    DESTINATION_INFO = "destination_info"
    HELP = "help"
    GOODBYE = "goodbye"
    COMPLAINT = "complaint"
    UNKNOWN = "unknown"
    ERROR = "error"


class SessionState(str, Enum):
    INITIAL = "initial"
    COLLECTING_SEARCH_INFO = "collecting_search_info"
    COLLECTING_DATE = "collecting_date"
    SHOWING_RESULTS = "showing_results"
    BOOKING_PROCESS = "booking_process"


ResponseType = Literal['text', 'card', 'list', 'quick_reply', 'form', 'confirmation']


class PriceRange(BaseModel):
    min: Optional[int] = None
    max: Optional[int] = None


class Entities(BaseModel):
    """Structured fields pulled out of one message; every field is optional."""
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    passengers: Optional[int] = None
    class_type: Optional[str] = None
    max_price: Optional[int] = None
    price_range: Optional[PriceRange] = None
    booking_reference: Optional[str] = None
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    requested_other_dates: Optional[bool] = None

    def present(self) -> Dict[str, Any]:
        """Only the fields that were actually found."""
        return self.model_dump(exclude_none=True)

    def count(self) -> int:
        return len(self.present())


class Attachment(BaseModel):
    type: str
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


class BotReply(BaseModel):
    """What a dialogue handler produces for one turn."""
    text: str
    response_type: ResponseType = "text"
    quick_replies: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    data: Optional[Any] = None
    action: Optional[str] = None
    fallback: bool = False


class ChatMessage(BaseModel):
    """One persisted side of an exchange."""
    message_id: str
    session_id: str
    user_id: Optional[str] = None
    sender: Literal['user', 'bot']
    message: str
    intent: Optional[Intent] = None
    entities: Dict[str, Any] = Field(default_factory=dict)
    response_type: Optional[ResponseType] = None
    quick_replies: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatMessageRequest(BaseModel):
    """Body of POST /api/chat/message."""
    message: str = Field(..., max_length=1000)
    session_id: Optional[str] = None

    @field_validator('message')
    @classmethod
    def validate_message(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('Message must be between 1 and 1000 characters')
        return value

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SESSION_ID_RE.match(value):
            raise ValueError('Invalid session ID')
        return value


class ChatResponse(BaseModel):
    """Result of processing one chat message."""
    message: str
    intent: Intent
    entities: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None
    state: Optional[SessionState] = None
    response_type: ResponseType = "text"
    quick_replies: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    data: Optional[Any] = None
    action: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
