"""
Dialogue manager - turns (intent, entities, session) into a bot reply and
advances the session's state machine.

States: initial -> collecting_search_info -> collecting_date ->
showing_results -> booking_process. Follow-up messages that carry no intent
of their own (a bare date, a city name, "book flight 2") are interpreted
against the state the previous turn left behind.
"""

import logging
import random
import re
from typing import Any, Awaitable, Callable, Dict, Optional

from ..models.chat import BotReply, Entities, Intent, SessionState
from ..models.flight import FlightSearchParams
from ..services.flight_service import FlightService
from .entity_extractor import parse_date
from .intent_classifier import BOOK_FLIGHT_PATTERN, normalize_text
from .session_store import ConversationSession

logger = logging.getLogger(__name__)

BOOK_SELECTION_RE = re.compile(r'\bbook\s+(?:flight\s+)?(?:#|number\s+|option\s+)?(\d+)\b')
PROCEED_RE = re.compile(r'\b(yes|yeah|sure|ok|okay|proceed|prepare booking)\b')

COLLECTING_STATES = (SessionState.COLLECTING_SEARCH_INFO, SessionState.COLLECTING_DATE)

GREETINGS = [
    "Hello! I'm your flight booking assistant. How can I help you today?",
    "Hi there! I can help you search for flights, manage bookings, and answer travel questions. "
    "What would you like to do?",
    "Welcome! I'm here to make your flight booking experience smooth and easy. How may I assist you?",
]

GOODBYES = [
    "Thank you for using our flight booking service! Have a wonderful trip! ✈️",
    "Safe travels! Feel free to come back anytime you need help with flights.",
    "Goodbye! Wishing you smooth flights and great adventures!",
]

UNKNOWN_PROMPTS = [
    "I'm not sure I understood that. Could you try asking about:",
    "I didn't quite catch that. Here are some things I can help with:",
    "Let me help you with that. I can assist with:",
]

DATE_QUICK_REPLIES = ['Today', 'Tomorrow', 'Next week', 'Choose date']


def format_money(amount: Any) -> str:
    if isinstance(amount, (int, float)) and float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}" if isinstance(amount, float) else str(amount)


def merge_search_params(stored: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow-merge new entities over stored search parameters.

    A lone new city completes a half-specified route: when the stored search
    has an origin but no destination, a new origin-only entity becomes the
    destination.
    """
    new = dict(new)
    if (
        stored.get("origin") and not stored.get("destination")
        and new.get("origin") and not new.get("destination")
        and new["origin"] != stored["origin"]
    ):
        new["destination"] = new.pop("origin")
    return {**stored, **new}


class DialogueManager:
    """Dispatches a classified message to its handler."""

    def __init__(self, flight_service: FlightService, rng: Optional[random.Random] = None):
        self.flight_service = flight_service
        self.rng = rng or random.Random()
        self._handlers: Dict[Intent, Callable[..., Awaitable[BotReply]]] = {
            Intent.GREETING: self.handle_greeting,
            Intent.SEARCH_FLIGHTS: self.handle_flight_search,
            Intent.BOOK_FLIGHT: self.handle_book_flight,
            Intent.VIEW_BOOKINGS: self.handle_view_bookings,
            Intent.CANCEL_BOOKING: self.handle_cancel_booking,
            Intent.MODIFY_BOOKING: self.handle_modify_booking,
            Intent.CHECK_FLIGHT_STATUS: self.handle_flight_status,
            Intent.PRICE_INQUIRY: self.handle_price_inquiry,
            Intent.DESTINATION_INFO: self.handle_destination_info,
            Intent.HELP: self.handle_help,
            Intent.GOODBYE: self.handle_goodbye,
            Intent.COMPLAINT: self.handle_complaint,
            Intent.UNKNOWN: self.handle_unknown,
        }

    async def respond(
        self,
        intent: Intent,
        entities: Entities,
        session: ConversationSession,
        message: str,
    ) -> BotReply:
        """
        Produce the reply for one turn, mutating ``session`` as a side effect.

        Args:
            intent: Classified intent of the message
            entities: Entities extracted from the message
            session: Conversation session to read and advance
            message: Raw message text

        Returns:
            BotReply: text, quick replies and optional data/action
        """
        normalized = normalize_text(message)
        found = entities.present()
        state = session.state

        # Continuations of an ongoing flow take precedence over the intent
        if state == SessionState.COLLECTING_DATE and intent == Intent.UNKNOWN and entities.departure_date:
            logger.debug(f"Session {session.session_id}: date supplied, continuing search")
            return await self.handle_flight_search(found, session)

        if (
            state == SessionState.COLLECTING_SEARCH_INFO
            and intent == Intent.UNKNOWN
            and (entities.origin or entities.destination or entities.departure_date)
        ):
            logger.debug(f"Session {session.session_id}: route detail supplied, continuing search")
            return await self.handle_flight_search(found, session)

        if state == SessionState.SHOWING_RESULTS and (
            BOOK_FLIGHT_PATTERN.search(normalized) or BOOK_SELECTION_RE.search(normalized)
        ):
            return await self.handle_book_flight(found, session, normalized)

        if state == SessionState.BOOKING_PROCESS and PROCEED_RE.search(normalized):
            return self.handle_prepare_booking(session)

        if state in COLLECTING_STATES and intent not in (Intent.SEARCH_FLIGHTS, Intent.UNKNOWN):
            # Abandon the half-finished search but remember what was collected
            session.state = SessionState.INITIAL

        handler = self._handlers.get(intent, self.handle_unknown)
        if intent == Intent.BOOK_FLIGHT:
            return await handler(found, session, normalized)
        return await handler(found, session)

    # ------------------------------------------------------------------
    # Search and booking flow
    # ------------------------------------------------------------------

    async def handle_flight_search(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        try:
            params = merge_search_params(session.data.get("search_params", {}), entities)
            origin, destination = params.get("origin"), params.get("destination")

            if not origin or not destination:
                session.state = SessionState.COLLECTING_SEARCH_INFO
                session.data["search_params"] = params
                text = "I'd be happy to help you search for flights! I need some information first. "
                text += f"I see you want to fly from {origin}." if origin else "Where would you like to fly from?"
                text += f" And to {destination}." if destination else " Where would you like to go?"
                if not params.get("departure_date"):
                    text += " When would you like to travel?"
                return BotReply(text=text, quick_replies=['Popular destinations', 'Help with airport codes'])

            if params.pop("requested_other_dates", None):
                params.pop("departure_date", None)
                session.state = SessionState.COLLECTING_DATE
                session.data["search_params"] = params
                return BotReply(
                    text=f"Sure! Please tell me the new date you want to travel from {origin} to {destination}.",
                    quick_replies=DATE_QUICK_REPLIES,
                )

            if not params.get("departure_date"):
                session.state = SessionState.COLLECTING_DATE
                session.data["search_params"] = params
                return BotReply(
                    text=f"Great! I'll search for flights from {origin} to {destination}. When would you like to travel?",
                    quick_replies=DATE_QUICK_REPLIES,
                )

            return await self._run_search(params, session)
        except Exception as e:
            logger.error(f"Flight search error in session {session.session_id}: {e}", exc_info=True)
            return BotReply(
                text="I'm sorry, I encountered an error while searching for flights. Please try again.",
                fallback=True,
            )

    async def _run_search(self, params: Dict[str, Any], session: ConversationSession) -> BotReply:
        requested_date = params["departure_date"]
        search_params = {
            "origin": params["origin"],
            "destination": params["destination"],
            "departure_date": parse_date(requested_date),
            "passengers": params.get("passengers") or 1,
            "class_type": params.get("class_type") or "economy",
        }
        if params.get("return_date"):
            search_params["return_date"] = parse_date(params["return_date"])
        price_cap = params.get("max_price") or (params.get("price_range") or {}).get("max")
        if price_cap:
            search_params["max_price"] = price_cap

        result = await self.flight_service.search_flights(FlightSearchParams(**search_params))
        flights = [flight.model_dump(mode="json") for flight in result.flights]

        session.state = SessionState.SHOWING_RESULTS
        session.data["search_params"] = search_params
        session.data["search_results"] = flights
        session.data.pop("selected_flight", None)

        origin, destination = search_params["origin"], search_params["destination"]
        if not flights:
            return BotReply(
                text=f"I couldn't find any flights from {origin} to {destination} on {requested_date}. "
                     "Would you like to try different dates or destinations?",
                quick_replies=['Try different dates', 'Change destination', 'Popular routes'],
            )

        class_type = search_params["class_type"]
        lines = [
            f"{i}. {f['airline']['name']} {f['flight_number']} - ${format_money(f['price'][class_type])} "
            f"({f['departure']['time']} - {f['arrival']['time']}, {f['duration']['formatted']})"
            for i, f in enumerate(flights[:3], 1)
        ]
        text = f"Great! I found {len(flights)} flights from {origin} to {destination}:\n\n" + "\n".join(lines)
        if len(flights) > 3:
            text += f"\n\n... and {len(flights) - 3} more options."
        text += "\n\nWould you like to book one of these flights or see more details?"

        return BotReply(
            text=text,
            response_type="list",
            data=flights,
            quick_replies=['Book flight 1', 'See all options', 'Filter by price', 'New search'],
        )

    async def handle_book_flight(
        self,
        entities: Dict[str, Any],
        session: ConversationSession,
        normalized: str = "",
    ) -> BotReply:
        results = session.data.get("search_results")
        if not results:
            return BotReply(
                text="To book a flight, I need you to search for flights first. What route would you like to search?",
                quick_replies=['Search flights', 'Popular destinations'],
            )

        session.state = SessionState.BOOKING_PROCESS
        selected = self._select_flight(results, normalized)
        if selected is not None:
            session.data["selected_flight"] = selected

        text = ""
        if selected is not None:
            text = f"You've selected {selected['airline']['name']} {selected['flight_number']}.\n\n"
        text += (
            "To complete your booking, I'll need some additional information:\n\n"
            "• Passenger details (name, date of birth)\n"
            "• Contact information\n"
            "• Payment details\n\n"
            "For security reasons, I recommend completing the booking through our secure booking page. "
            "Would you like me to prepare your booking details?"
        )
        return BotReply(
            text=text,
            data=selected,
            quick_replies=['Yes, prepare booking', 'More flight options', 'Help with booking'],
        )

    @staticmethod
    def _select_flight(results: list, normalized: str) -> Optional[Dict[str, Any]]:
        """Pick a result by its list position ("book flight 2") or by flight id."""
        match = BOOK_SELECTION_RE.search(normalized)
        if match:
            index = int(match.group(1)) - 1
            if 0 <= index < len(results):
                return results[index]
        for flight in results:
            if flight.get("flight_id", "").lower() in normalized:
                return flight
        return None

    def handle_prepare_booking(self, session: ConversationSession) -> BotReply:
        flight = session.data.get("selected_flight") or (session.data.get("search_results") or [None])[0]
        params = session.data.get("search_params", {})
        if flight is None:
            session.state = SessionState.INITIAL
            return BotReply(
                text="I couldn't find the flight you picked. Let's start a new search.",
                quick_replies=['Search flights', 'Help'],
            )

        class_type = params.get("class_type", "economy")
        passengers = params.get("passengers", 1)
        return BotReply(
            text=f"Here are your booking details:\n\n"
                 f"Flight: {flight['airline']['name']} {flight['flight_number']}\n"
                 f"Route: {flight['origin']['code']} → {flight['destination']['code']}\n"
                 f"Departure: {flight['departure']['date'][:10]} at {flight['departure']['time']}\n"
                 f"Class: {class_type.title()}, passengers: {passengers}\n"
                 f"Fare: ${format_money(flight['price'][class_type])} per person\n\n"
                 "I've opened the secure booking form so you can enter passenger and payment details.",
            response_type="confirmation",
            action="openBookingModal",
            data={"flight": flight, "class_type": class_type, "passengers": passengers},
            quick_replies=['More flight options', 'Help with booking'],
        )

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def handle_view_bookings(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        reference = entities.get("booking_reference")
        if reference:
            return BotReply(
                text=f"I can help you check your booking {reference}. "
                     "For security, I'll need to verify your email address. "
                     "Please click the 'View Booking' button at the top of the page or use the button below "
                     "to enter your booking reference and email.",
                action="openViewBookingModal",
                data={"reference": reference},
                quick_replies=['View My Booking', 'Search new flights', 'Help'],
            )

        return BotReply(
            text="To view your bookings, please click the 'View Booking' button at the top of the page or use "
                 "the button below. You'll need your booking reference number (a 6-character code like "
                 "'ABC123') and the email you used for booking.",
            action="openViewBookingModal",
            quick_replies=['View My Booking', 'Help finding reference', 'Contact support'],
        )

    async def handle_cancel_booking(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text="I understand you want to cancel a booking. For security and to ensure proper processing, "
                 "booking cancellations must be done through:\n\n"
                 "• Our website's 'Manage Booking' section\n"
                 "• Customer service at 1-800-FLIGHTS\n\n"
                 "You'll need your booking reference and email address. "
                 "Please note that cancellation fees may apply depending on your ticket type.",
            quick_replies=['Check cancellation policy', 'Contact support', 'Search new flights'],
        )

    async def handle_modify_booking(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text="To modify your booking (change dates, passenger details, etc.), please visit our website's "
                 "'Manage Booking' section or call customer service.\n\n"
                 "You'll need:\n"
                 "• Your booking reference\n"
                 "• Email address used for booking\n\n"
                 "Note: Change fees may apply depending on your ticket type and fare rules.",
            quick_replies=['Check change policy', 'Contact support', 'Search new flights'],
        )

    # ------------------------------------------------------------------
    # Information
    # ------------------------------------------------------------------

    async def handle_flight_status(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        flight_number = entities.get("flight_number")
        if flight_number:
            status = await self.flight_service.get_flight_status(flight_number)
            return BotReply(
                text=f"Flight {flight_number} Status:\n\n"
                     f"Status: {status['status']}\n"
                     f"Departure: {status['departure']['scheduled']} (Gate {status['departure']['gate']})\n"
                     f"Arrival: {status['arrival']['scheduled']}\n"
                     f"Aircraft: {status['aircraft']}",
                data=status,
                quick_replies=['Check another flight', 'Search flights', 'Help'],
            )

        return BotReply(
            text="I can check flight status for you. Please provide the flight number (e.g., AA1234, DL567).",
            quick_replies=['I have flight number', 'Check by route', 'Help'],
        )

    async def handle_price_inquiry(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        stored = session.data.get("search_params", {})
        origin = entities.get("origin") or stored.get("origin")
        destination = entities.get("destination") or stored.get("destination")

        if origin and destination:
            try:
                prices = await self.flight_service.get_price_alerts(origin, destination)
            except Exception as e:
                logger.warning(f"Price lookup failed for {origin}-{destination}: {e}")
                return BotReply(
                    text="I'm sorry, I couldn't retrieve price information right now. "
                         "Would you like me to search for current flights instead?",
                    quick_replies=['Search flights', 'Try again', 'Help'],
                )
            return BotReply(
                text=f"Price information for {origin} to {destination}:\n\n"
                     f"Current average price: ${prices['average_price']}\n"
                     f"Lowest price (last 30 days): ${prices['lowest_price']}\n"
                     f"Recommendation: {prices['recommendation']}\n\n"
                     "Would you like me to search for current flights?",
                data=prices,
                quick_replies=['Search flights', 'Price alerts', 'Try different route'],
            )

        return BotReply(
            text="I can help you with pricing information. Which route are you interested in? "
                 "Please tell me your departure and destination cities or airport codes.",
            quick_replies=['Popular routes', 'Airport codes', 'Help'],
        )

    async def handle_destination_info(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text="I'd love to help with destination information! However, I specialize in flight booking. "
                 "For detailed destination guides, weather, and attractions, I recommend checking travel "
                 "websites like:\n\n"
                 "• TripAdvisor\n• Lonely Planet\n• Local tourism boards\n\n"
                 "I can help you find flights to your destination though!",
            quick_replies=['Search flights', 'Popular destinations', 'Help'],
        )

    # ------------------------------------------------------------------
    # Small talk
    # ------------------------------------------------------------------

    async def handle_greeting(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text=self.rng.choice(GREETINGS),
            quick_replies=['Search flights', 'View my bookings', 'Flight status', 'Help'],
        )

    async def handle_help(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text="I'm your flight booking assistant! Here's what I can help you with:\n\n"
                 "✈️ **Flight Search**: Find flights by saying 'Search flights from NYC to LAX'\n"
                 "📋 **Bookings**: View or manage your existing bookings\n"
                 "📊 **Flight Status**: Check if flights are on time or delayed\n"
                 "💰 **Prices**: Get pricing information for routes\n"
                 "🎯 **Popular Destinations**: Discover trending travel spots\n\n"
                 "Just tell me what you need in natural language, and I'll help you out!",
            quick_replies=['Search flights', 'Flight status', 'View bookings', 'Popular destinations'],
        )

    async def handle_goodbye(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        session.reset()
        return BotReply(text=self.rng.choice(GOODBYES), quick_replies=['Search flights', 'Help'])

    async def handle_complaint(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text="I'm sorry to hear you're having a problem. Your feedback is important to us. "
                 "For immediate assistance with issues, please:\n\n"
                 "• Contact our customer service at 1-800-FLIGHTS\n"
                 "• Use the 'Contact Us' form on our website\n"
                 "• Email support@flightbot.com\n\n"
                 "Is there anything specific I can help you with regarding flights or bookings?",
            quick_replies=['Contact support', 'Search flights', 'Check booking', 'Help'],
        )

    async def handle_unknown(self, entities: Dict[str, Any], session: ConversationSession) -> BotReply:
        return BotReply(
            text=self.rng.choice(UNKNOWN_PROMPTS),
            quick_replies=['Search flights', 'Check flight status', 'View bookings', 'Help'],
            fallback=True,
        )
