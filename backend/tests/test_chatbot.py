"""
Tests for the conversation layer: session store, dialogue state machine and
the chatbot service entry point.
"""

import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from flightbot.bot.dialogue import format_money, merge_search_params
from flightbot.bot.service import ERROR_REPLY, ChatbotService
from flightbot.bot.session_store import ConversationSession, SessionStore
from flightbot.models.chat import Entities, Intent, SessionState
from flightbot.services.exceptions import ExternalFlightAPIError
from flightbot.services.flight_service import FlightService


@pytest.fixture
def flight_service(flight_storage):
    external = MagicMock()
    external.search_flight_offers = AsyncMock(side_effect=ExternalFlightAPIError("offline"))
    return FlightService(flight_storage, external_client=external, rng=random.Random(7))


@pytest.fixture
def chatbot(flight_service, chat_storage):
    return ChatbotService(flight_service, chat_storage=chat_storage, rng=random.Random(3))


class TestSessionStore:

    def test_get_or_create(self):
        store = SessionStore()
        session = store.get_or_create("s1")
        assert session.state == SessionState.INITIAL
        assert store.get_or_create("s1") is session
        assert len(store) == 1
        assert "s1" in store

    def test_prune_idle_sessions(self):
        store = SessionStore(idle_timeout_minutes=30)
        stale = store.get_or_create("stale")
        store.get_or_create("fresh")
        stale.timestamp = datetime.now(timezone.utc) - timedelta(minutes=31)

        assert store.prune() == 1
        assert "stale" not in store
        assert "fresh" in store

    def test_zero_timeout_keeps_sessions(self):
        store = SessionStore(idle_timeout_minutes=0)
        session = store.get_or_create("old")
        session.timestamp = datetime.now(timezone.utc) - timedelta(days=365)
        assert store.prune() == 0
        assert "old" in store

    def test_clear(self):
        store = SessionStore()
        store.get_or_create("s1")
        assert store.clear("s1") is True
        assert store.clear("s1") is False

    def test_reset_and_to_dict(self):
        session = ConversationSession(session_id="s1", state=SessionState.SHOWING_RESULTS, data={"x": 1})
        session.previous_intent = Intent.SEARCH_FLIGHTS
        session.reset()
        data = session.to_dict()
        assert data["state"] == "initial"
        assert data["data"] == {}
        assert data["previous_intent"] == "search_flights"


class TestDialogueHelpers:

    def test_merge_new_values_win(self):
        merged = merge_search_params({"origin": "JFK", "destination": "LAX"}, {"destination": "SFO"})
        assert merged == {"origin": "JFK", "destination": "SFO"}

    def test_lone_city_completes_route(self):
        merged = merge_search_params({"origin": "JFK"}, {"origin": "LHR"})
        assert merged == {"origin": "JFK", "destination": "LHR"}

    def test_format_money(self):
        assert format_money(250) == "250"
        assert format_money(250.0) == "250"
        assert format_money(199.5) == "199.50"


class TestSearchFlow:
    """Multi-turn search and booking conversation."""

    @pytest.mark.asyncio
    async def test_asks_for_date_then_searches(self, chatbot):
        first = await chatbot.process_message("Find flights from JFK to LAX", session_id="flow1")
        assert first.intent == Intent.SEARCH_FLIGHTS
        assert first.state == SessionState.COLLECTING_DATE
        assert "When would you like to travel?" in first.message
        assert first.entities == {"origin": "JFK", "destination": "LAX"}

        second = await chatbot.process_message("tomorrow", session_id="flow1")
        assert second.intent == Intent.UNKNOWN
        assert second.state == SessionState.SHOWING_RESULTS
        assert second.response_type == "list"
        assert second.message.startswith("Great! I found")
        assert 3 <= len(second.data) <= 10

        session = chatbot.sessions.get("flow1")
        params = session.data["search_params"]
        assert params["passengers"] == 1
        assert params["class_type"] == "economy"
        assert params["departure_date"] == (datetime.now().date() + timedelta(days=1)).isoformat()

    @pytest.mark.asyncio
    async def test_results_are_listed_top_three(self, chatbot):
        response = await chatbot.process_message("Find flights from JFK to LAX tomorrow", session_id="list")
        lines = [line for line in response.message.splitlines() if line[:2] in ("1.", "2.", "3.", "4.")]
        assert [line[:2] for line in lines] == ["1.", "2.", "3."]
        if len(response.data) > 3:
            assert f"... and {len(response.data) - 3} more options." in response.message
        assert response.quick_replies[0] == "Book flight 1"

    @pytest.mark.asyncio
    async def test_book_selected_flight_and_prepare(self, chatbot):
        results = await chatbot.process_message("Find flights from JFK to LAX tomorrow", session_id="book")

        booking = await chatbot.process_message("book flight 2", session_id="book")
        assert booking.state == SessionState.BOOKING_PROCESS
        assert booking.data["flight_id"] == results.data[1]["flight_id"]
        assert "Would you like me to prepare your booking details?" in booking.message

        confirm = await chatbot.process_message("Yes, prepare booking", session_id="book")
        assert confirm.response_type == "confirmation"
        assert confirm.action == "openBookingModal"
        assert confirm.data["flight"]["flight_id"] == results.data[1]["flight_id"]

    @pytest.mark.asyncio
    async def test_book_without_results_asks_to_search(self, chatbot):
        session = chatbot.sessions.get_or_create("nobook")
        reply = await chatbot.dialogue.handle_book_flight({}, session)
        assert "search for flights first" in reply.text
        assert session.state == SessionState.INITIAL

    @pytest.mark.asyncio
    async def test_route_collected_over_two_turns(self, chatbot):
        first = await chatbot.process_message("I want to fly from JFK", session_id="route")
        assert first.state == SessionState.COLLECTING_SEARCH_INFO
        assert "I see you want to fly from JFK." in first.message

        second = await chatbot.process_message("to london", session_id="route")
        assert second.state == SessionState.COLLECTING_DATE
        params = chatbot.sessions.get("route").data["search_params"]
        assert params["origin"] == "JFK"
        assert params["destination"] == "LHR"

    @pytest.mark.asyncio
    async def test_lowercase_code_completes_route(self, chatbot):
        await chatbot.process_message("I want to fly from JFK", session_id="lone")

        reply = await chatbot.process_message("lax", session_id="lone")
        assert reply.state == SessionState.COLLECTING_DATE
        params = chatbot.sessions.get("lone").data["search_params"]
        assert params["origin"] == "JFK"
        assert params["destination"] == "LAX"

    @pytest.mark.asyncio
    async def test_other_dates_asks_for_new_date(self, chatbot):
        await chatbot.process_message("Find flights from JFK to LAX tomorrow", session_id="redo")
        reply = await chatbot.process_message("Try different dates", session_id="redo")
        assert reply.state == SessionState.COLLECTING_DATE
        assert "new date" in reply.message
        params = chatbot.sessions.get("redo").data["search_params"]
        assert "departure_date" not in params
        assert "requested_other_dates" not in params

    @pytest.mark.asyncio
    async def test_intent_change_mid_flow_keeps_params(self, chatbot):
        await chatbot.process_message("Find flights from JFK to LAX", session_id="switch")
        reply = await chatbot.process_message("help", session_id="switch")
        assert reply.intent == Intent.HELP
        session = chatbot.sessions.get("switch")
        assert session.state == SessionState.INITIAL
        assert session.data["search_params"]["origin"] == "JFK"

    @pytest.mark.asyncio
    async def test_goodbye_resets_session(self, chatbot):
        await chatbot.process_message("Find flights from JFK to LAX tomorrow", session_id="bye")
        reply = await chatbot.process_message("thanks, bye", session_id="bye")
        assert reply.intent == Intent.GOODBYE
        session = chatbot.sessions.get("bye")
        assert session.state == SessionState.INITIAL
        assert session.data == {}

    @pytest.mark.asyncio
    async def test_past_date_gives_search_apology(self, chatbot):
        reply = await chatbot.process_message("Find flights from JFK to LAX on 2020-01-01", session_id="past")
        assert reply.message.startswith("I'm sorry, I encountered an error while searching for flights")
        assert reply.metadata["fallback"] is True

    @pytest.mark.asyncio
    async def test_search_failure_gives_search_apology(self, chat_storage):
        broken = MagicMock()
        broken.search_flights = AsyncMock(side_effect=RuntimeError("boom"))
        chatbot = ChatbotService(broken, chat_storage=chat_storage)

        reply = await chatbot.process_message("Find flights from JFK to LAX tomorrow", session_id="broken")
        assert reply.intent == Intent.SEARCH_FLIGHTS
        assert reply.metadata["fallback"] is True
        assert "searching for flights" in reply.message


class TestOtherHandlers:

    @pytest.mark.asyncio
    async def test_greeting(self, chatbot):
        reply = await chatbot.process_message("hello")
        assert reply.intent == Intent.GREETING
        assert "Search flights" in reply.quick_replies
        assert reply.session_id.startswith("guest-")

    @pytest.mark.asyncio
    async def test_view_booking_with_reference(self, chatbot):
        reply = await chatbot.process_message("show my booking ABC123", session_id="view")
        assert reply.intent == Intent.VIEW_BOOKINGS
        assert reply.action == "openViewBookingModal"
        assert reply.data == {"reference": "ABC123"}

    @pytest.mark.asyncio
    async def test_view_bookings_without_reference(self, chatbot):
        reply = await chatbot.process_message("show my bookings", session_id="view2")
        assert reply.action == "openViewBookingModal"
        assert reply.data is None

    @pytest.mark.asyncio
    async def test_price_inquiry_for_route(self, chatbot):
        reply = await chatbot.process_message("how much is JFK to LAX", session_id="price")
        assert reply.intent == Intent.PRICE_INQUIRY
        assert reply.data["route"] == "JFK-LAX"
        assert "Recommendation:" in reply.message

    @pytest.mark.asyncio
    async def test_price_inquiry_without_route(self, chatbot):
        reply = await chatbot.process_message("how much", session_id="price2")
        assert "Which route are you interested in?" in reply.message

    @pytest.mark.asyncio
    async def test_status_of_stored_flight(self, chatbot, flight_storage, make_flight):
        flight = make_flight(flight_number="AA1234")
        await flight_storage.save_flight(flight)
        session = chatbot.sessions.get_or_create("status")

        reply = await chatbot.dialogue.respond(
            Intent.CHECK_FLIGHT_STATUS, Entities(flight_number="AA1234"), session, "status of AA1234"
        )

        assert reply.text.startswith("Flight AA1234 Status:")
        assert f"Departure: {flight.departure.time} (Gate A1)" in reply.text
        assert reply.data["departure"]["gate"] == "A1"

    @pytest.mark.asyncio
    async def test_status_of_unknown_flight_uses_defaults(self, chatbot):
        session = chatbot.sessions.get_or_create("status2")
        reply = await chatbot.dialogue.respond(
            Intent.CHECK_FLIGHT_STATUS, Entities(flight_number="ZZ999"), session, "status of ZZ999"
        )

        assert "Status: On Time" in reply.text
        assert "(Gate A12)" in reply.text
        assert "Aircraft: Boeing 737-800" in reply.text

    @pytest.mark.asyncio
    async def test_status_without_flight_number(self, chatbot):
        session = chatbot.sessions.get_or_create("status3")
        reply = await chatbot.dialogue.respond(Intent.CHECK_FLIGHT_STATUS, Entities(), session, "flight status")
        assert "Please provide the flight number" in reply.text
        assert reply.data is None

    @pytest.mark.asyncio
    async def test_cancel_points_to_manage_booking(self, chatbot):
        reply = await chatbot.process_message("cancel the reservation", session_id="cancel")
        assert reply.intent == Intent.CANCEL_BOOKING
        assert "1-800-FLIGHTS" in reply.message
        assert "Check cancellation policy" in reply.quick_replies

    @pytest.mark.asyncio
    async def test_modify_points_to_manage_booking(self, chatbot):
        session = chatbot.sessions.get_or_create("modify")
        reply = await chatbot.dialogue.respond(Intent.MODIFY_BOOKING, Entities(), session, "change my booking")
        assert "'Manage Booking'" in reply.text
        assert "Change fees may apply" in reply.text
        assert reply.quick_replies[0] == "Check change policy"

    @pytest.mark.asyncio
    async def test_complaint_mentions_support(self, chatbot):
        reply = await chatbot.process_message("this is terrible", session_id="complaint")
        assert "support@flightbot.com" in reply.message

    @pytest.mark.asyncio
    async def test_unknown_sets_fallback(self, chatbot):
        reply = await chatbot.process_message("zzzzzz", session_id="unknown")
        assert reply.intent == Intent.UNKNOWN
        assert reply.metadata["fallback"] is True
        assert reply.metadata["confidence"] == 0.5


class TestChatbotService:

    @pytest.mark.asyncio
    async def test_session_defaults_to_user_id(self, chatbot):
        reply = await chatbot.process_message("hello", user_id="user-1")
        assert reply.session_id == "user-1"
        assert "user-1" in chatbot.sessions

    @pytest.mark.asyncio
    async def test_turns_are_persisted(self, chatbot, chat_storage):
        await chatbot.process_message("hello", session_id="persist", user_id="u1")
        messages = await chat_storage.get_session_messages("persist")
        assert [m.sender for m in messages] == ["user", "bot"]
        assert messages[0].message == "hello"
        assert messages[1].intent == Intent.GREETING
        assert messages[1].user_id == "u1"

    @pytest.mark.asyncio
    async def test_history_by_session_and_user(self, chatbot):
        await chatbot.process_message("hello", session_id="hist-a", user_id="u9")
        await chatbot.process_message("help", session_id="hist-b", user_id="u9")
        await chatbot.process_message("hello", session_id="hist-c")

        by_session = await chatbot.get_history(session_id="hist-a")
        assert sorted(m.sender for m in by_session) == ["bot", "user"]

        by_user = await chatbot.get_history(user_id="u9", limit=10)
        assert {m.session_id for m in by_user} == {"hist-a", "hist-b"}
        assert len(by_user) == 4

    @pytest.mark.asyncio
    async def test_history_without_storage(self, flight_service):
        assert await ChatbotService(flight_service).get_history(session_id="x") == []

    @pytest.mark.asyncio
    async def test_metadata(self, chatbot):
        reply = await chatbot.process_message("Find flights from JFK to LAX", session_id="meta")
        assert reply.metadata["confidence"] == 0.9
        assert reply.metadata["fallback"] is False
        assert reply.metadata["processing_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_errors_become_apology(self, chatbot):
        with patch.object(chatbot.dialogue, "respond", AsyncMock(side_effect=RuntimeError("boom"))):
            reply = await chatbot.process_message("hello", session_id="err")

        assert reply.message == ERROR_REPLY
        assert reply.intent == Intent.ERROR
        assert reply.metadata["error_handled"] is True

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_surfaced(self, flight_service):
        failing = MagicMock()
        failing.append_message = AsyncMock(side_effect=OSError("disk full"))
        chatbot = ChatbotService(flight_service, chat_storage=failing)

        reply = await chatbot.process_message("hello", session_id="disk")
        assert reply.intent == Intent.GREETING

    @pytest.mark.asyncio
    async def test_previous_intent_recorded(self, chatbot):
        await chatbot.process_message("hello", session_id="prev")
        conversation = chatbot.get_conversation("prev")
        assert conversation["previous_intent"] == "greeting"
        assert conversation["last_message"] == "hello"

    @pytest.mark.asyncio
    async def test_clear_conversation(self, chatbot):
        await chatbot.process_message("hello", session_id="gone")
        assert chatbot.clear_conversation("gone") is True
        assert chatbot.get_conversation("gone") is None
