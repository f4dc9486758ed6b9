"""
Flight Service - search, lookup and reference data for flights.

Search consults three sources in order: flights already in the store, the
external provider, then synthetic flights. Whatever is returned is persisted
so that any listed flight can be booked.
"""

import logging
import math
import random
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.reference_data import AIRLINES, AIRPORTS, POPULAR_DESTINATIONS, airline_logo_url
from ..models.flight import Flight, FlightSearchParams, FlightSearchResult
from ..storage.flight_storage import FlightStorage
from .amadeus_client import AmadeusClient
from .exceptions import ExternalFlightAPIError, FlightNotFoundError
from .mock_flights import generate_mock_flights

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    'scheduled': 'On Time',
    'delayed': 'Delayed',
    'cancelled': 'Cancelled',
    'boarding': 'Boarding',
    'departed': 'Departed',
    'arrived': 'Arrived',
}


def class_price(flight: Flight, class_type: str) -> float:
    price = getattr(flight.price, class_type, None)
    return price if price is not None else math.inf


def sort_flights(flights: List[Flight], sort_by: str, class_type: str = "economy") -> List[Flight]:
    """Order flights by price (in the searched class), duration, departure or airline."""
    if sort_by == "price":
        return sorted(flights, key=lambda f: class_price(f, class_type))
    if sort_by == "duration":
        return sorted(flights, key=lambda f: f.duration.total)
    if sort_by == "departure":
        return sorted(flights, key=lambda f: f.departure.date)
    if sort_by == "airline":
        return sorted(flights, key=lambda f: f.airline.name.lower())
    return list(flights)


def matches_filters(flight: Flight, params: FlightSearchParams) -> bool:
    """Whether a flight satisfies the optional search filters and seat count."""
    if getattr(flight.availability, params.class_type) < params.passengers:
        return False
    if params.stops is not None and flight.stops.count != params.stops:
        return False
    if params.max_price is not None and class_price(flight, params.class_type) > params.max_price:
        return False
    if params.airlines and flight.airline.code not in {code.upper() for code in params.airlines}:
        return False
    return True


class FlightService:
    """Flight search and lookup."""

    def __init__(
        self,
        flight_storage: FlightStorage,
        external_client: Optional[AmadeusClient] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            flight_storage: Repository for stored flights
            external_client: Live flight provider; defaults to an AmadeusClient from settings
            rng: Random source for synthetic data
        """
        self.flight_storage = flight_storage
        self.external_client = external_client or AmadeusClient()
        self.rng = rng or random.Random()

    async def search_flights(self, params: FlightSearchParams) -> FlightSearchResult:
        """
        Find flights for a route and day.

        Args:
            params: Validated search parameters

        Returns:
            FlightSearchResult: sorted flights and their count
        """
        flights = await self._search_stored(params)
        source = "store"

        if not flights:
            try:
                flights = await self.external_client.search_flight_offers(params)
                source = "amadeus"
            except ExternalFlightAPIError as e:
                logger.warning(f"External API failed, using mock data: {e}")
                flights = generate_mock_flights(params, rng=self.rng, currency=settings.default_currency)
                source = "mock"

            await self.flight_storage.save_flights(flights)
            flights = [f for f in flights if matches_filters(f, params)]

        ordered = sort_flights(flights, params.sort_by, params.class_type)

        logger.info(
            f"Flight search {params.origin}-{params.destination} on {params.departure_date}: "
            f"{len(ordered)} results from {source}",
            extra={"extra_fields": {
                "origin": params.origin,
                "destination": params.destination,
                "departure_date": params.departure_date.isoformat(),
                "class_type": params.class_type,
                "passengers": params.passengers,
                "source": source,
                "results": len(ordered),
            }}
        )
        return FlightSearchResult(flights=ordered, total=len(ordered))

    async def _search_stored(self, params: FlightSearchParams) -> List[Flight]:
        candidates = await self.flight_storage.find_route(params.origin, params.destination, params.departure_date)
        return [
            flight for flight in candidates
            if flight.status == "scheduled" and matches_filters(flight, params)
        ]

    async def get_flight(self, flight_id: str) -> Flight:
        flight = await self.flight_storage.get_flight(flight_id)
        if flight is None:
            raise FlightNotFoundError(f"Flight {flight_id} not found")
        return flight

    async def get_popular_destinations(self) -> List[Dict[str, str]]:
        return [dict(destination) for destination in POPULAR_DESTINATIONS]

    async def get_airports(
        self,
        search: Optional[str] = None,
        country: Optional[str] = None,
        city: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        """Airports filtered by free-text search over code/name/city, country and city."""
        airports = [dict(airport) for airport in AIRPORTS.values()]

        if search:
            needle = search.lower()
            airports = [
                a for a in airports
                if needle in a['code'].lower() or needle in a['name'].lower() or needle in a['city'].lower()
            ]
        if country:
            airports = [a for a in airports if country.lower() in a['country'].lower()]
        if city:
            airports = [a for a in airports if city.lower() in a['city'].lower()]

        return airports

    async def get_airlines(self) -> List[Dict[str, str]]:
        return [{**airline, 'logo': airline_logo_url(airline['code'])} for airline in AIRLINES]

    async def get_flight_status(self, flight_number: str, flight_date: Optional[str] = None) -> Dict[str, Any]:
        """
        Live-looking status for a flight number.

        Stored flights report their own schedule; unknown flight numbers get
        a default on-time status.
        """
        flight_number = flight_number.upper()
        known = await self.flight_storage.find_by_number(flight_number)
        if flight_date:
            known = [f for f in known if f.departure.date.date().isoformat() == flight_date] or known

        if known:
            flight = known[0]
            return {
                "flight_number": flight_number,
                "date": flight_date or flight.departure.date.date().isoformat(),
                "status": STATUS_LABELS.get(flight.status, flight.status.title()),
                "departure": {
                    "airport": flight.origin.code,
                    "scheduled": flight.departure.time,
                    "estimated": flight.departure.time,
                    "actual": None,
                    "gate": flight.origin.gate,
                    "terminal": flight.origin.terminal,
                },
                "arrival": {
                    "airport": flight.destination.code,
                    "scheduled": flight.arrival.time,
                    "estimated": flight.arrival.time,
                    "actual": None,
                    "gate": flight.destination.gate,
                    "terminal": flight.destination.terminal,
                },
                "aircraft": flight.aircraft,
                "delay": None,
            }

        return {
            "flight_number": flight_number,
            "date": flight_date,
            "status": "On Time",
            "departure": {
                "scheduled": "10:30",
                "estimated": "10:30",
                "actual": None,
                "gate": "A12",
                "terminal": "Terminal 1",
            },
            "arrival": {
                "scheduled": "14:45",
                "estimated": "14:45",
                "actual": None,
                "gate": "B8",
                "terminal": "Terminal 2",
            },
            "aircraft": "Boeing 737-800",
            "delay": None,
        }

    async def get_price_alerts(self, origin: str, destination: str) -> Dict[str, Any]:
        """Thirty days of fare history for a route with a buy/wait recommendation."""
        today = date.today()
        history = [
            {
                "date": (today - timedelta(days=offset)).isoformat(),
                "price": self.rng.randint(200, 499),
            }
            for offset in range(29, -1, -1)
        ]
        prices = [day["price"] for day in history]
        current = prices[-1]
        average = round(sum(prices) / len(prices))

        return {
            "route": f"{origin.upper()}-{destination.upper()}",
            "current_price": current,
            "average_price": average,
            "lowest_price": min(prices),
            "highest_price": max(prices),
            "price_history": history,
            "recommendation": "Buy now" if current < average else "Wait",
        }


# Global flight service instance
_flight_service: Optional[FlightService] = None


def init_flight_service(flight_storage: FlightStorage, external_client: Optional[AmadeusClient] = None) -> FlightService:
    global _flight_service
    _flight_service = FlightService(flight_storage, external_client=external_client)
    return _flight_service


def get_flight_service() -> FlightService:
    if _flight_service is None:
        raise RuntimeError("Flight service not initialized. Call init_flight_service() first.")
    return _flight_service
