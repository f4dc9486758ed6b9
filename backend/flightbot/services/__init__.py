"""Services module - flight search and the booking lifecycle."""

from .exceptions import (
    FlightBotError,
    FlightNotFoundError,
    FlightUnavailableError,
    BookingNotFoundError,
    BookingStateError,
    ExternalFlightAPIError,
)
from .flight_service import FlightService, init_flight_service, get_flight_service
from .booking_service import BookingService, init_booking_service, get_booking_service

__all__ = [
    'FlightBotError',
    'FlightNotFoundError',
    'FlightUnavailableError',
    'BookingNotFoundError',
    'BookingStateError',
    'ExternalFlightAPIError',
    'FlightService',
    'init_flight_service',
    'get_flight_service',
    'BookingService',
    'init_booking_service',
    'get_booking_service',
]
