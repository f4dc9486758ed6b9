"""
Unit tests for intent classification, entity extraction and date parsing.
"""

from datetime import date

import pytest

from flightbot.bot.entity_extractor import extract_entities, parse_date
from flightbot.bot.intent_classifier import calculate_confidence, classify_intent, normalize_text
from flightbot.models.chat import Intent


class TestClassifyIntent:
    """Priority-ordered pattern matching."""

    @pytest.mark.parametrize("message,expected", [
        ("Hello there", Intent.GREETING),
        ("Find flights from NYC to LAX", Intent.SEARCH_FLIGHTS),
        ("show my bookings", Intent.VIEW_BOOKINGS),
        ("cancel the reservation", Intent.CANCEL_BOOKING),
        ("how much does it cost", Intent.PRICE_INQUIRY),
        ("tell me about popular destinations", Intent.DESTINATION_INFO),
        ("I need help", Intent.HELP),
        ("thanks, bye", Intent.GOODBYE),
        ("this is terrible", Intent.COMPLAINT),
    ])
    def test_patterns(self, message, expected):
        assert classify_intent(normalize_text(message)) == expected

    def test_first_match_wins(self):
        # "book" belongs to the search pattern, which is tried first
        assert classify_intent("book my flight") == Intent.SEARCH_FLIGHTS

    def test_greeting_beats_search(self):
        assert classify_intent("hi, find me a flight") == Intent.GREETING

    def test_bare_airport_code_is_search(self):
        assert classify_intent(normalize_text("JFK")) == Intent.SEARCH_FLIGHTS

    def test_bare_booking_reference_is_view(self):
        assert classify_intent(normalize_text("ABC123")) == Intent.VIEW_BOOKINGS

    def test_unknown(self):
        assert classify_intent("tomorrow") == Intent.UNKNOWN
        assert classify_intent("zzzzzz") == Intent.UNKNOWN

    def test_normalize_text(self):
        assert normalize_text("  Hello World \n") == "hello world"


class TestConfidence:

    def test_unknown_without_entities(self):
        assert calculate_confidence(Intent.UNKNOWN, 0) == 0.5

    def test_known_intent_with_entities(self):
        assert calculate_confidence(Intent.SEARCH_FLIGHTS, 2) == 0.9

    def test_entity_bonus_is_capped(self):
        assert calculate_confidence(Intent.SEARCH_FLIGHTS, 10) == 1.0
        assert calculate_confidence(Intent.UNKNOWN, 10) == 0.7


class TestExtractEntities:
    """Independent regex scans over the raw message."""

    def test_airport_codes_and_relative_date(self):
        entities = extract_entities("Find flights from JFK to LAX tomorrow")
        assert entities.origin == "JFK"
        assert entities.destination == "LAX"
        assert entities.departure_date == "tomorrow"

    def test_lowercase_codes_are_ignored(self):
        entities = extract_entities("jfk to lax")
        assert entities.origin is None
        assert entities.destination is None

    @pytest.mark.parametrize("message", ["lax", " Lax ", "LAX"])
    def test_lone_code_in_any_case(self, message):
        assert extract_entities(message).present() == {"origin": "LAX"}

    def test_lone_unknown_word_is_not_a_code(self):
        assert extract_entities("yes").origin is None

    @pytest.mark.parametrize("message", [
        "Find flights from JFK to LAX tomorrow",
        "flights from new york to london on march 15 for 2 passengers in business",
        "check booking abc123 for UA1234",
        "something between $200 to $400",
        "Try different dates",
        "lax",
        "  Delta flights on 2027-01-05 and 2027-01-12  ",
    ])
    def test_extraction_is_stable_on_normalized_text(self, message):
        once = normalize_text(message)
        twice = normalize_text(once)
        assert extract_entities(once) == extract_entities(twice)

    def test_cities_in_order_of_appearance(self):
        entities = extract_entities("flights from new york to london on march 15 for 2 passengers in business")
        assert entities.origin == "JFK"
        assert entities.destination == "LHR"
        assert entities.departure_date == "march 15"
        assert entities.passengers == 2
        assert entities.class_type == "business"

    def test_city_order_reversed(self):
        entities = extract_entities("from london to new york")
        assert entities.origin == "LHR"
        assert entities.destination == "JFK"

    def test_iso_dates_give_departure_and_return(self):
        entities = extract_entities("JFK to LHR 2027-01-05 returning 2027-01-12")
        assert entities.departure_date == "2027-01-05"
        assert entities.return_date == "2027-01-12"

    def test_max_price(self):
        assert extract_entities("flights under $500").max_price == 500

    def test_price_range(self):
        entities = extract_entities("something between $200 to $400")
        assert entities.max_price is None
        assert entities.price_range.min == 200
        assert entities.price_range.max == 400

    def test_booking_reference(self):
        assert extract_entities("check booking abc123").booking_reference == "ABC123"

    def test_booking_reference_needs_a_digit(self):
        assert extract_entities("travel").booking_reference is None

    def test_flight_number(self):
        assert extract_entities("status of aa1234 please").flight_number == "AA1234"

    def test_airline(self):
        assert extract_entities("any delta flights?").airline == "Delta Air Lines"
        assert extract_entities("fly british airways").airline == "British Airways"

    @pytest.mark.parametrize("message", ["Try different dates", "other dates", "show more options"])
    def test_requested_other_dates(self, message):
        assert extract_entities(message).requested_other_dates is True

    def test_present_omits_missing_fields(self):
        found = extract_entities("JFK").present()
        assert found == {"origin": "JFK"}

    def test_nothing_found(self):
        assert extract_entities("hello").count() == 0


class TestParseDate:
    TODAY = date(2026, 10, 19)

    @pytest.mark.parametrize("phrase,expected", [
        ("today", "2026-10-19"),
        ("tomorrow", "2026-10-20"),
        ("next week", "2026-10-26"),
        ("next month", "2026-11-19"),
        ("Tomorrow ", "2026-10-20"),
    ])
    def test_relative(self, phrase, expected):
        assert parse_date(phrase, today=self.TODAY) == expected

    def test_month_day_in_future(self):
        assert parse_date("december 25th", today=self.TODAY) == "2026-12-25"

    def test_month_day_in_past_rolls_to_next_year(self):
        assert parse_date("march 15", today=self.TODAY) == "2027-03-15"

    def test_explicit_year_is_kept(self):
        assert parse_date("2020-01-01", today=self.TODAY) == "2020-01-01"

    def test_slash_date(self):
        assert parse_date("12/25/2026", today=self.TODAY) == "2026-12-25"

    def test_unparseable_is_returned_unchanged(self):
        assert parse_date("someday soon", today=self.TODAY) == "someday soon"
