"""
Synthetic flight generator used when neither the store nor the external
provider has flights for a route.
"""

import random
import string
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

from ..core.reference_data import (
    AIRCRAFT,
    AIRLINES,
    airline_logo_url,
    airport_city,
    airport_country,
    airport_name,
)
from ..models.flight import (
    Airline,
    AirportInfo,
    Amenities,
    ClassAvailability,
    ClassPrices,
    Duration,
    Flight,
    FlightSearchParams,
    FlightTime,
    Restrictions,
    Stops,
)
from .amadeus_client import format_duration

# Fare multipliers relative to economy
CLASS_MULTIPLIERS = {'premium': 1.6, 'business': 2.8, 'first': 4.5}

LAYOVER_AIRPORTS = ['ORD', 'DFW', 'ATL']


def _random_gate(rng: random.Random) -> str:
    return f"{rng.choice(string.ascii_uppercase[:10])}{rng.randint(1, 50)}"


def _random_terminal(rng: random.Random) -> Optional[str]:
    return f"Terminal {rng.randint(1, 4)}" if rng.random() > 0.5 else None


def _airport(code: str, rng: random.Random) -> AirportInfo:
    return AirportInfo(
        code=code,
        name=airport_name(code),
        city=airport_city(code),
        country=airport_country(code),
        terminal=_random_terminal(rng),
        gate=_random_gate(rng),
    )


def generate_mock_flights(
    params: FlightSearchParams,
    rng: Optional[random.Random] = None,
    currency: str = "USD",
) -> List[Flight]:
    """
    Build 3-10 plausible flights for the searched route and day.

    Args:
        params: Validated search parameters
        rng: Random source, injectable for deterministic tests
        currency: Currency for all fares

    Returns:
        List[Flight]: Unsorted synthetic flights
    """
    rng = rng or random.Random()
    flights = []

    for _ in range(rng.randint(3, 10)):
        airline = rng.choice(AIRLINES)
        base_price = rng.randint(100, 899)
        minutes = rng.randint(60, 539)

        departure_at = datetime.combine(
            params.departure_date,
            time(hour=rng.randint(0, 23), minute=rng.randint(0, 59)),
            tzinfo=timezone.utc,
        )
        arrival_at = departure_at + timedelta(minutes=minutes)

        stop_count = 0 if rng.random() > 0.7 else (2 if rng.random() > 0.8 else 1)

        flights.append(Flight(
            flight_id=f"mock_{uuid.uuid4().hex}",
            flight_number=f"{airline['code']}{rng.randint(1000, 9999)}",
            airline=Airline(code=airline['code'], name=airline['name'], logo=airline_logo_url(airline['code'])),
            aircraft=rng.choice(AIRCRAFT),
            origin=_airport(params.origin, rng),
            destination=_airport(params.destination, rng),
            departure=FlightTime(date=departure_at, time=departure_at.strftime("%H:%M")),
            arrival=FlightTime(date=arrival_at, time=arrival_at.strftime("%H:%M")),
            duration=Duration(total=minutes, formatted=format_duration(minutes)),
            price=ClassPrices(
                economy=round(base_price),
                premium=round(base_price * CLASS_MULTIPLIERS['premium']),
                business=round(base_price * CLASS_MULTIPLIERS['business']),
                first=round(base_price * CLASS_MULTIPLIERS['first']),
                currency=currency,
            ),
            availability=ClassAvailability(
                economy=rng.randint(20, 99),
                premium=rng.randint(10, 39),
                business=rng.randint(5, 19),
                first=rng.randint(2, 9),
            ),
            stops=Stops(
                count=stop_count,
                airports=rng.sample(LAYOVER_AIRPORTS, stop_count),
                duration=rng.randint(45, 224) if stop_count else 0,
            ),
            amenities=Amenities(
                wifi=rng.random() > 0.3,
                entertainment=rng.random() > 0.2,
                meals=rng.random() > 0.4,
                power_outlets=rng.random() > 0.5,
            ),
            restrictions=Restrictions(
                baggage_policy="Standard baggage allowance applies",
                cancellation_policy="24-hour free cancellation",
                change_policy="Changes allowed with fee",
            ),
            source="mock",
        ))

    return flights
