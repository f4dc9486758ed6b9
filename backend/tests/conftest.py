"""
Shared test fixtures and configuration.
"""

import os
import random
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="flightbot_test_data_"))
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("PAYMENT_DELAY_SECONDS", "0")
os.environ.setdefault("PAYMENT_SUCCESS_RATE", "1")
os.environ.pop("AMADEUS_CLIENT_ID", None)
os.environ.pop("AMADEUS_CLIENT_SECRET", None)

from flightbot.middleware.rate_limiter import reset_rate_limits  # noqa: E402
from flightbot.models.flight import (  # noqa: E402
    Airline,
    AirportInfo,
    ClassAvailability,
    ClassPrices,
    Duration,
    Flight,
    FlightTime,
)
from flightbot.storage import (  # noqa: E402
    BookingStorage,
    ChatStorage,
    FlightStorage,
    LocalStorage,
    UserStorage,
)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def user_storage(storage):
    return UserStorage(storage)


@pytest.fixture
def flight_storage(storage):
    return FlightStorage(storage)


@pytest.fixture
def booking_storage(storage):
    return BookingStorage(storage)


@pytest.fixture
def chat_storage(storage):
    return ChatStorage(storage)


@pytest.fixture
def make_flight():
    """Factory for stored flights departing ``hours_ahead`` hours from now."""

    def _make(
        hours_ahead: float = 24 * 40,
        origin: str = "JFK",
        destination: str = "LAX",
        economy: float = 300,
        seats: int = 50,
        status: str = "scheduled",
        airline_code: str = "AA",
        flight_number: str = None,
        minutes: int = 330,
    ) -> Flight:
        departure_at = datetime.now(timezone.utc) + timedelta(hours=hours_ahead)
        arrival_at = departure_at + timedelta(minutes=minutes)
        return Flight(
            flight_id=f"test_{uuid.uuid4().hex}",
            flight_number=flight_number or f"{airline_code}{random.randint(1000, 9999)}",
            airline=Airline(code=airline_code, name="American Airlines"),
            aircraft="Boeing 737-800",
            origin=AirportInfo(code=origin, name=f"{origin} Airport", gate="A1", terminal="Terminal 1"),
            destination=AirportInfo(code=destination, name=f"{destination} Airport", gate="B2"),
            departure=FlightTime(date=departure_at, time=departure_at.strftime("%H:%M")),
            arrival=FlightTime(date=arrival_at, time=arrival_at.strftime("%H:%M")),
            duration=Duration(total=minutes, formatted=f"{minutes // 60}h {minutes % 60}m"),
            price=ClassPrices(economy=economy, premium=economy * 1.6, business=economy * 2.8, first=economy * 4.5),
            availability=ClassAvailability(economy=seats, premium=seats, business=seats, first=seats),
            status=status,
            source="store",
        )

    return _make


@pytest.fixture
def booking_payload():
    """Factory for a valid POST /api/bookings body."""

    def _payload(flight_id: str, passengers: int = 1, email: str = "traveller@example.com") -> dict:
        return {
            "flight_id": flight_id,
            "class_type": "economy",
            "passengers": [
                {
                    "title": "Mr",
                    "first_name": f"John{chr(65 + i)}",
                    "last_name": "Smith",
                    "date_of_birth": "1985-06-15",
                }
                for i in range(passengers)
            ],
            "contact_info": {"email": email, "phone": "+1 555 123 4567"},
            "payment_info": {"method": "credit_card"},
        }

    return _payload
