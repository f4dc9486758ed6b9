"""
Amadeus Self-Service flight-offers client.

Fetches live offers over HTTPS with an OAuth client-credentials token and
converts them into ``Flight`` documents.
"""

import logging
import re
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.reference_data import airline_logo_url, airport_city, airport_country, airport_name
from ..models.flight import (
    Airline,
    AirportInfo,
    ClassAvailability,
    ClassPrices,
    Duration,
    Flight,
    FlightSearchParams,
    FlightTime,
    Stops,
)
from .exceptions import ExternalFlightAPIError

logger = logging.getLogger(__name__)

ISO_DURATION_RE = re.compile(r'^PT(?:(\d+)H)?(?:(\d+)M)?$')


def parse_iso_duration(value: str) -> int:
    """'PT2H30M' -> 150 minutes."""
    match = ISO_DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"Unrecognised duration: {value}")
    hours, minutes = match.groups()
    return int(hours or 0) * 60 + int(minutes or 0)


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


class AmadeusClient:
    """
    Minimal client for the two Amadeus endpoints the flight search needs.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        hostname: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            client_id: API key; defaults to settings.amadeus_client_id
            client_secret: API secret; defaults to settings.amadeus_client_secret
            hostname: "test" or "production"
            timeout: Request timeout in seconds
        """
        self.client_id = client_id or settings.amadeus_client_id
        self.client_secret = client_secret or settings.amadeus_client_secret
        self.hostname = hostname or settings.amadeus_hostname
        self.timeout = timeout or settings.external_api_timeout
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @property
    def base_url(self) -> str:
        host = "api.amadeus.com" if self.hostname == "production" else "test.api.amadeus.com"
        return f"https://{host}"

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_access_token(self) -> str:
        """Get a cached token or request a new one."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.base_url}/v1/security/oauth2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            resp.raise_for_status()
            data = resp.json()

        self._access_token = data["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + int(data.get("expires_in", 1799)) - 60
        return self._access_token

    async def search_flight_offers(self, params: FlightSearchParams) -> List[Flight]:
        """
        Search live offers for a route and day.

        Raises:
            ExternalFlightAPIError: When credentials are missing or the call fails
        """
        if not self.configured:
            raise ExternalFlightAPIError("Amadeus credentials are not configured")

        query: Dict[str, Any] = {
            "originLocationCode": params.origin,
            "destinationLocationCode": params.destination,
            "departureDate": params.departure_date.isoformat(),
            "adults": params.passengers,
            "travelClass": "PREMIUM_ECONOMY" if params.class_type == "premium" else params.class_type.upper(),
            "currencyCode": settings.default_currency,
            "max": settings.max_search_results,
        }
        if params.return_date:
            query["returnDate"] = params.return_date.isoformat()
        if params.max_price:
            query["maxPrice"] = int(params.max_price)

        try:
            token = await self.get_access_token()
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(
                    f"{self.base_url}/v2/shopping/flight-offers",
                    params=query,
                    headers={"Authorization": f"Bearer {token}"},
                )
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise ExternalFlightAPIError(f"Amadeus flight search failed: {e}") from e

        offers = payload.get("data")
        if not isinstance(offers, list):
            raise ExternalFlightAPIError("Amadeus response has no offer list")

        carriers = payload.get("dictionaries", {}).get("carriers", {})
        flights = []
        for offer in offers:
            try:
                flights.append(self._offer_to_flight(offer, params, carriers))
            except (KeyError, IndexError, ValueError) as e:
                logger.warning(f"Skipping malformed Amadeus offer {offer.get('id')}: {e}")

        logger.info(
            f"Amadeus returned {len(flights)} offers for {params.origin}-{params.destination}",
            extra={"extra_fields": {"origin": params.origin, "destination": params.destination}}
        )
        return flights

    def _offer_to_flight(
        self,
        offer: Dict[str, Any],
        params: FlightSearchParams,
        carriers: Dict[str, str],
    ) -> Flight:
        itinerary = offer["itineraries"][0]
        segments = itinerary["segments"]
        first, last = segments[0], segments[-1]

        departure_at = datetime.fromisoformat(first["departure"]["at"])
        arrival_at = datetime.fromisoformat(last["arrival"]["at"])
        minutes = parse_iso_duration(itinerary["duration"])

        carrier = first["carrierCode"]
        per_person = round(float(offer["price"]["total"]) / max(params.passengers, 1), 2)
        seats = int(offer.get("numberOfBookableSeats", params.passengers))

        origin_code = first["departure"]["iataCode"]
        destination_code = last["arrival"]["iataCode"]

        return Flight(
            flight_id=f"amadeus_{uuid.uuid4().hex}",
            flight_number=f"{carrier}{first['number']}",
            airline=Airline(
                code=carrier,
                name=carriers.get(carrier, carrier).title(),
                logo=airline_logo_url(carrier),
            ),
            aircraft=first.get("aircraft", {}).get("code", "N/A"),
            origin=AirportInfo(
                code=origin_code,
                name=airport_name(origin_code),
                city=airport_city(origin_code),
                country=airport_country(origin_code),
                terminal=first["departure"].get("terminal"),
            ),
            destination=AirportInfo(
                code=destination_code,
                name=airport_name(destination_code),
                city=airport_city(destination_code),
                country=airport_country(destination_code),
                terminal=last["arrival"].get("terminal"),
            ),
            departure=FlightTime(date=departure_at, time=departure_at.strftime("%H:%M")),
            arrival=FlightTime(date=arrival_at, time=arrival_at.strftime("%H:%M")),
            duration=Duration(total=minutes, formatted=format_duration(minutes)),
            price=ClassPrices(**{params.class_type: per_person}, currency=offer["price"].get("currency", "USD")),
            availability=ClassAvailability(**{params.class_type: seats}),
            stops=Stops(
                count=len(segments) - 1,
                airports=[segment["arrival"]["iataCode"] for segment in segments[:-1]],
            ),
            source="amadeus",
        )
