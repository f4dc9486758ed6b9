"""Pydantic models for users, flights, bookings and chat."""

from .user import User, UserCreate, UserLogin, UserUpdate, PasswordChange, Token, TokenData
from .flight import Flight, FlightSearchParams, FlightSearchResult
from .booking import Booking, BookingCreate, BookingUpdate, BookingLookup
from .chat import Intent, SessionState, Entities, BotReply, ChatMessage, ChatMessageRequest, ChatResponse

__all__ = [
    'User', 'UserCreate', 'UserLogin', 'UserUpdate', 'PasswordChange', 'Token', 'TokenData',
    'Flight', 'FlightSearchParams', 'FlightSearchResult',
    'Booking', 'BookingCreate', 'BookingUpdate', 'BookingLookup',
    'Intent', 'SessionState', 'Entities', 'BotReply', 'ChatMessage', 'ChatMessageRequest', 'ChatResponse',
]
