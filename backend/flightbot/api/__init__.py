"""API module."""

from .auth import router as auth_router
from .flights import router as flights_router
from .bookings import router as bookings_router
from .chat import router as chat_router
from .websocket import router as websocket_router

__all__ = ['auth_router', 'flights_router', 'bookings_router', 'chat_router', 'websocket_router']
