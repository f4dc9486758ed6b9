"""FlightBot - conversational flight search and booking backend."""

__version__ = "1.0.0"
