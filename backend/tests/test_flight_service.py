"""
Tests for flight search, lookups and the external provider client.
"""

import random
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from flightbot.models.flight import FlightSearchParams
from flightbot.services.amadeus_client import AmadeusClient, format_duration, parse_iso_duration
from flightbot.services.exceptions import ExternalFlightAPIError, FlightNotFoundError
from flightbot.services.flight_service import FlightService, sort_flights
from flightbot.services.mock_flights import generate_mock_flights


def offline_client():
    client = MagicMock()
    client.search_flight_offers = AsyncMock(side_effect=ExternalFlightAPIError("offline"))
    return client


@pytest.fixture
def service(flight_storage):
    return FlightService(flight_storage, external_client=offline_client(), rng=random.Random(11))


def params_for(flight, **overrides):
    values = {
        "origin": flight.origin.code,
        "destination": flight.destination.code,
        "departure_date": flight.departure.date.date(),
    }
    values.update(overrides)
    return FlightSearchParams(**values)


class TestSearchParams:

    def test_codes_are_uppercased(self):
        params = FlightSearchParams(origin="jfk", destination="lax", departure_date=date.today())
        assert params.origin == "JFK"
        assert params.destination == "LAX"

    def test_rejects_bad_code(self):
        with pytest.raises(ValueError):
            FlightSearchParams(origin="JF1", destination="LAX", departure_date=date.today())

    def test_rejects_past_departure(self):
        with pytest.raises(ValueError):
            FlightSearchParams(origin="JFK", destination="LAX", departure_date=date.today() - timedelta(days=1))

    def test_return_must_follow_departure(self):
        with pytest.raises(ValueError):
            FlightSearchParams(
                origin="JFK", destination="LAX",
                departure_date=date.today() + timedelta(days=5),
                return_date=date.today() + timedelta(days=5),
            )

    def test_passenger_limit(self):
        with pytest.raises(ValueError):
            FlightSearchParams(origin="JFK", destination="LAX", departure_date=date.today(), passengers=10)


class TestSearchFlights:

    @pytest.mark.asyncio
    async def test_falls_back_to_mock_and_persists(self, service, flight_storage):
        params = FlightSearchParams(origin="JFK", destination="LAX", departure_date=date.today() + timedelta(days=3))
        result = await service.search_flights(params)

        assert 3 <= result.total <= 10
        assert result.total == len(result.flights)
        assert all(f.source == "mock" for f in result.flights)
        prices = [f.price.economy for f in result.flights]
        assert prices == sorted(prices)

        stored = await flight_storage.list_flights()
        assert {f.flight_id for f in stored} == {f.flight_id for f in result.flights}

    @pytest.mark.asyncio
    async def test_stored_flights_come_first(self, service, flight_storage, make_flight):
        flight = make_flight(hours_ahead=24 * 10)
        await flight_storage.save_flight(flight)

        result = await service.search_flights(params_for(flight))

        assert [f.flight_id for f in result.flights] == [flight.flight_id]
        service.external_client.search_flight_offers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stored_flights_respect_filters(self, service, flight_storage, make_flight):
        cheap = make_flight(hours_ahead=24 * 10, economy=150)
        pricey = make_flight(hours_ahead=24 * 10, economy=900)
        full = make_flight(hours_ahead=24 * 10, economy=100, seats=1)
        cancelled = make_flight(hours_ahead=24 * 10, economy=120, status="cancelled")
        for flight in (cheap, pricey, full, cancelled):
            await flight_storage.save_flight(flight)

        result = await service.search_flights(params_for(cheap, max_price=500, passengers=2))
        assert [f.flight_id for f in result.flights] == [cheap.flight_id]

    @pytest.mark.asyncio
    async def test_uses_external_results(self, flight_storage, make_flight):
        live = make_flight(hours_ahead=24 * 12)
        external = MagicMock()
        external.search_flight_offers = AsyncMock(return_value=[live])
        service = FlightService(flight_storage, external_client=external)

        result = await service.search_flights(params_for(live))

        assert [f.flight_id for f in result.flights] == [live.flight_id]
        assert await flight_storage.get_flight(live.flight_id) is not None


class TestSortFlights:

    def test_sort_orders(self, make_flight):
        a = make_flight(hours_ahead=30, economy=300, minutes=400, airline_code="UA")
        b = make_flight(hours_ahead=10, economy=100, minutes=500, airline_code="DL")
        c = make_flight(hours_ahead=20, economy=200, minutes=100, airline_code="AA")
        a.airline.name, b.airline.name, c.airline.name = "United", "delta", "American"

        assert sort_flights([a, b, c], "price") == [b, c, a]
        assert sort_flights([a, b, c], "duration") == [c, a, b]
        assert sort_flights([a, b, c], "departure") == [b, c, a]
        assert sort_flights([a, b, c], "airline") == [c, b, a]

    def test_missing_class_price_sorts_last(self, make_flight):
        a = make_flight(economy=100)
        b = make_flight(economy=50)
        b.price.first = None
        assert sort_flights([b, a], "price", "first") == [a, b]


class TestLookups:

    @pytest.mark.asyncio
    async def test_get_flight_not_found(self, service):
        with pytest.raises(FlightNotFoundError):
            await service.get_flight("missing")

    @pytest.mark.asyncio
    async def test_airports_search(self, service):
        airports = await service.get_airports(search="london")
        assert "LHR" in [a["code"] for a in airports]

        us = await service.get_airports(country="united states")
        assert all(a["country"] == "United States" for a in us)

    @pytest.mark.asyncio
    async def test_airlines_have_logos(self, service):
        airlines = await service.get_airlines()
        assert all(a["logo"].endswith(f"{a['code']}.png") for a in airlines)

    @pytest.mark.asyncio
    async def test_unknown_flight_status_defaults(self, service):
        status = await service.get_flight_status("zz999")
        assert status["flight_number"] == "ZZ999"
        assert status["status"] == "On Time"
        assert status["departure"]["gate"] == "A12"
        assert status["aircraft"] == "Boeing 737-800"

    @pytest.mark.asyncio
    async def test_known_flight_status(self, service, flight_storage, make_flight):
        flight = make_flight(flight_number="AA4321")
        await flight_storage.save_flight(flight)

        status = await service.get_flight_status("AA4321")
        assert status["status"] == "On Time"
        assert status["departure"]["scheduled"] == flight.departure.time
        assert status["departure"]["gate"] == "A1"

    @pytest.mark.asyncio
    async def test_price_alerts(self, service):
        alerts = await service.get_price_alerts("jfk", "lax")
        prices = [day["price"] for day in alerts["price_history"]]

        assert alerts["route"] == "JFK-LAX"
        assert len(prices) == 30
        assert alerts["lowest_price"] == min(prices)
        assert alerts["highest_price"] == max(prices)
        assert alerts["current_price"] == prices[-1]
        expected = "Buy now" if alerts["current_price"] < alerts["average_price"] else "Wait"
        assert alerts["recommendation"] == expected


class TestMockFlights:

    def test_generated_flights(self):
        params = FlightSearchParams(origin="JFK", destination="LHR", departure_date=date.today() + timedelta(days=1))
        flights = generate_mock_flights(params, rng=random.Random(5))

        assert 3 <= len(flights) <= 10
        for flight in flights:
            assert flight.origin.code == "JFK"
            assert flight.departure.date.date() == params.departure_date
            assert 100 <= flight.price.economy <= 899
            assert flight.price.first > flight.price.business > flight.price.premium > flight.price.economy
            assert flight.stops.count == len(flight.stops.airports)
            assert flight.flight_id.startswith("mock_")


class TestAmadeusClient:

    def test_duration_helpers(self):
        assert parse_iso_duration("PT5H30M") == 330
        assert parse_iso_duration("PT45M") == 45
        assert format_duration(330) == "5h 30m"
        with pytest.raises(ValueError):
            parse_iso_duration("5 hours")

    def test_base_url(self):
        assert AmadeusClient("id", "secret", hostname="production").base_url == "https://api.amadeus.com"
        assert AmadeusClient("id", "secret", hostname="test").base_url == "https://test.api.amadeus.com"

    @pytest.mark.asyncio
    async def test_unconfigured_client_raises(self):
        client = AmadeusClient(client_id=None, client_secret=None)
        assert client.configured is False
        with pytest.raises(ExternalFlightAPIError):
            await client.search_flight_offers(
                FlightSearchParams(origin="JFK", destination="LAX", departure_date=date.today())
            )
