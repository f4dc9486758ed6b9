"""
Flight Storage - flight documents under ``flights/<flight_id>.json``.
"""

import logging
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from ..models.flight import Flight
from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class FlightStorage:
    """Persists flights so search results can be booked later."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.flights_dir = "flights"

    def _flight_path(self, flight_id: str) -> str:
        return f"{self.flights_dir}/{flight_id}.json"

    async def save_flight(self, flight: Flight) -> bool:
        return await self.storage.save(self._flight_path(flight.flight_id), flight.model_dump_json(indent=2))

    async def save_flights(self, flights: List[Flight]) -> int:
        """Persist a batch of flights; returns how many were written."""
        saved = 0
        for flight in flights:
            if await self.save_flight(flight):
                saved += 1
        return saved

    async def get_flight(self, flight_id: str) -> Optional[Flight]:
        content = await self.storage.load(self._flight_path(flight_id))
        if content is None:
            return None
        try:
            return Flight.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Stored flight {flight_id} is invalid: {e}")
            return None

    async def list_flights(self) -> List[Flight]:
        flights = []
        for path in await self.storage.list(self.flights_dir, pattern="*.json"):
            content = await self.storage.load(path)
            if content is None:
                continue
            try:
                flights.append(Flight.model_validate_json(content))
            except ValidationError:
                logger.warning(f"Skipping invalid flight document {path}")
        return flights

    async def find_route(self, origin: str, destination: str, departure_date: date) -> List[Flight]:
        """Flights on a route departing on the given calendar day."""
        return [
            flight for flight in await self.list_flights()
            if flight.origin.code == origin
            and flight.destination.code == destination
            and flight.departure.date.date() == departure_date
        ]

    async def find_by_number(self, flight_number: str) -> List[Flight]:
        flight_number = flight_number.upper()
        return [f for f in await self.list_flights() if f.flight_number.upper() == flight_number]


# Global flight storage instance
_flight_storage: Optional[FlightStorage] = None


def init_flight_storage(storage: Optional[StorageInterface] = None):
    global _flight_storage
    _flight_storage = FlightStorage(storage or LocalStorage())


def get_flight_storage() -> FlightStorage:
    if _flight_storage is None:
        raise RuntimeError("Flight storage not initialized. Call init_flight_storage() first.")
    return _flight_storage
