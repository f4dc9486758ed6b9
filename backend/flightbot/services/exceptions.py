"""
Domain errors raised by the flight and booking services.

Routers translate these into HTTP responses; the chatbot turns them into
apologies.
"""


class FlightBotError(Exception):
    """Base class for service-level errors."""


class FlightNotFoundError(FlightBotError):
    pass


class FlightUnavailableError(FlightBotError):
    """The flight cannot be booked for the requested class and party size."""


class BookingNotFoundError(FlightBotError):
    pass


class BookingStateError(FlightBotError):
    """The booking's status or timing does not allow the requested change."""


class ExternalFlightAPIError(FlightBotError):
    """The external flight-data provider is unconfigured or returned an error."""
