"""
Booking Service - booking lifecycle from reservation to check-in.
"""

import asyncio
import logging
import math
import random
import string
import time
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..config import settings
from ..models.booking import (
    BookedFlight,
    Booking,
    BookingCreate,
    BookingUpdate,
    Cancellation,
    Modification,
    Passenger,
    PaymentInfo,
    PriceBreakdown,
)
from ..models.flight import Flight
from ..storage.booking_storage import BookingStorage
from ..storage.flight_storage import FlightStorage
from .exceptions import BookingNotFoundError, BookingStateError, FlightNotFoundError, FlightUnavailableError

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 6

TAX_RATE = 0.15
BOOKING_FEE = 25

# rows (inclusive) and seat letters per cabin
SEAT_MAP = {
    'first': (1, 4, 'ABEF'),
    'business': (5, 12, 'ABCDEF'),
    'premium': (13, 20, 'ABCDEF'),
    'economy': (21, 50, 'ABCDEF'),
}


def as_utc(value: datetime) -> datetime:
    """Treat naive schedule times as UTC so they compare with ``now``."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def hours_until(value: datetime, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    return (as_utc(value) - now).total_seconds() / 3600


class BookingService:
    """Creates, changes, cancels and checks in bookings."""

    def __init__(
        self,
        booking_storage: BookingStorage,
        flight_storage: FlightStorage,
        rng: Optional[random.Random] = None,
        payment_success_rate: Optional[float] = None,
        payment_delay_seconds: Optional[float] = None,
    ):
        """
        Args:
            booking_storage: Booking repository
            flight_storage: Flight repository (availability is updated in place)
            rng: Random source for references, seats and the mock payment
            payment_success_rate: Probability the mock payment succeeds
            payment_delay_seconds: Simulated payment processing time
        """
        self.booking_storage = booking_storage
        self.flight_storage = flight_storage
        self.rng = rng or random.Random()
        self.payment_success_rate = (
            settings.payment_success_rate if payment_success_rate is None else payment_success_rate
        )
        self.payment_delay_seconds = (
            settings.payment_delay_seconds if payment_delay_seconds is None else payment_delay_seconds
        )

    # ------------------------------------------------------------------
    # Pricing, seats and references
    # ------------------------------------------------------------------

    @staticmethod
    def calculate_pricing(flight: Flight, class_type: str, passenger_count: int) -> PriceBreakdown:
        """
        Price a booking.

        Taxes are 15% of the base fare per passenger; a single booking fee is
        added once per booking.
        """
        base = getattr(flight.price, class_type)
        if base is None:
            raise FlightUnavailableError(f"No {class_type} fare on flight {flight.flight_number}")

        taxes = round(base * TAX_RATE)
        total = base * passenger_count + taxes * passenger_count + BOOKING_FEE
        return PriceBreakdown(base=base, taxes=taxes, fees=BOOKING_FEE, total=round(total))

    def generate_seat_number(self, class_type: str) -> str:
        first_row, last_row, letters = SEAT_MAP.get(class_type, SEAT_MAP['economy'])
        return f"{self.rng.randint(first_row, last_row)}{self.rng.choice(letters)}"

    async def generate_booking_reference(self) -> str:
        """Six random characters from A-Z0-9 that no stored booking already uses."""
        while True:
            reference = "".join(self.rng.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
            if not await self.booking_storage.reference_exists(reference):
                return reference
            logger.debug(f"Booking reference collision on {reference}, regenerating")

    # ------------------------------------------------------------------
    # Creation and payment
    # ------------------------------------------------------------------

    @staticmethod
    def check_bookable(flight: Flight, class_type: str, passenger_count: int) -> None:
        """
        Raises:
            FlightUnavailableError: flight not scheduled, already departed,
                lacks the fare, or has too few seats
        """
        seats = getattr(flight.availability, class_type)
        if (
            flight.status != "scheduled"
            or hours_until(flight.departure.date) <= 0
            or getattr(flight.price, class_type) is None
            or seats < passenger_count
        ):
            raise FlightUnavailableError(
                f"Flight not available for {passenger_count} passengers in {class_type} class"
            )

    async def _adjust_availability(self, flight_id: str, class_type: str, delta: int) -> None:
        flight = await self.flight_storage.get_flight(flight_id)
        if flight is None:
            logger.warning(f"Cannot adjust availability, flight {flight_id} is gone")
            return
        current = getattr(flight.availability, class_type)
        setattr(flight.availability, class_type, max(0, current + delta))
        await self.flight_storage.save_flight(flight)

    async def create_booking(self, user_id: str, request: BookingCreate) -> Booking:
        """
        Reserve seats on a flight and take payment.

        Args:
            user_id: Owner of the booking
            request: Validated booking request

        Returns:
            Booking: ``confirmed`` when payment succeeded, otherwise ``pending``

        Raises:
            FlightNotFoundError: unknown flight id
            FlightUnavailableError: flight cannot take this party
        """
        flight = await self.flight_storage.get_flight(request.flight_id)
        if flight is None:
            raise FlightNotFoundError("Flight not found")

        passenger_count = len(request.passengers)
        self.check_bookable(flight, request.class_type, passenger_count)
        pricing = self.calculate_pricing(flight, request.class_type, passenger_count)

        booking = Booking(
            booking_id=uuid.uuid4().hex,
            booking_reference=await self.generate_booking_reference(),
            user_id=user_id,
            flights=[BookedFlight(
                flight_id=flight.flight_id,
                class_type=request.class_type,
                passengers=[
                    Passenger(**passenger.model_dump(), seat_number=self.generate_seat_number(request.class_type))
                    for passenger in request.passengers
                ],
                price=pricing,
            )],
            contact_info=request.contact_info,
            payment_info=PaymentInfo(
                method=request.payment_info.method,
                transaction_id=str(uuid.uuid4()),
                amount=pricing.total,
                currency=flight.price.currency,
            ),
            trip_type=request.trip_type,
            total_amount=pricing.total,
        )

        await self.booking_storage.save_booking(booking)
        await self._adjust_availability(flight.flight_id, request.class_type, -passenger_count)

        payment = await self.process_payment(booking)
        if payment["success"]:
            booking.payment_info.status = "completed"
            booking.payment_info.paid_at = datetime.now(timezone.utc)
            booking.booking_status = "confirmed"
        else:
            booking.payment_info.status = "failed"
        booking.updated_at = datetime.now(timezone.utc)
        await self.booking_storage.save_booking(booking)

        logger.info(
            f"Booking {booking.booking_reference} created ({booking.booking_status})",
            extra={"extra_fields": {
                "booking_id": booking.booking_id,
                "booking_reference": booking.booking_reference,
                "user_id": user_id,
                "flight_id": flight.flight_id,
                "class_type": request.class_type,
                "passengers": passenger_count,
                "total_amount": booking.total_amount,
                "payment_success": payment["success"],
            }}
        )
        return booking

    async def process_payment(self, booking: Booking) -> Dict[str, Any]:
        """Mock payment processor with a configurable success rate and delay."""
        if self.payment_delay_seconds > 0:
            await asyncio.sleep(self.payment_delay_seconds)

        success = self.rng.random() < self.payment_success_rate
        return {
            "success": success,
            "transaction_id": booking.payment_info.transaction_id,
            "message": "Payment processed successfully" if success else "Payment failed",
        }

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_user_bookings(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 10,
        page: int = 1,
    ) -> Dict[str, Any]:
        """A page of the user's bookings, newest first."""
        bookings = await self.booking_storage.list_user_bookings(user_id)
        if status:
            bookings = [b for b in bookings if b.booking_status == status]

        total = len(bookings)
        start = (page - 1) * limit
        return {
            "bookings": bookings[start:start + limit],
            "total": total,
            "page": page,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    async def get_booking(self, user_id: str, booking_id: str) -> Booking:
        booking = await self.booking_storage.get_booking(booking_id)
        if booking is None or booking.user_id != user_id:
            raise BookingNotFoundError("Booking not found")
        return booking

    async def find_booking_by_reference(self, reference: str, email: str) -> Booking:
        """Guest lookup: the reference must belong to a booking with this contact email."""
        booking = await self.booking_storage.get_by_reference(reference)
        if booking is None or booking.contact_info.email.lower() != email.lower():
            raise BookingNotFoundError("Booking not found")
        return booking

    async def load_flights(self, booking: Booking) -> Dict[str, Flight]:
        flights = {}
        for segment in booking.flights:
            flight = await self.flight_storage.get_flight(segment.flight_id)
            if flight is not None:
                flights[segment.flight_id] = flight
        return flights

    async def with_flight_details(self, booking: Booking) -> Dict[str, Any]:
        """Booking as a dict with each segment's flight document embedded."""
        flights = await self.load_flights(booking)
        data = booking.model_dump(mode="json")
        for segment in data["flights"]:
            flight = flights.get(segment["flight_id"])
            segment["flight"] = flight.model_dump(mode="json") if flight else None
        return data

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    async def update_booking(self, booking: Booking, update: BookingUpdate) -> Booking:
        """
        Change contact details and/or passenger details.

        Raises:
            BookingStateError: booking is cancelled or completed, or the
                passenger list would change size
        """
        if booking.booking_status in ("cancelled", "completed"):
            raise BookingStateError("Cannot update this booking")

        descriptions = []
        if update.contact_info is not None:
            booking.contact_info = update.contact_info
            descriptions.append("contact information")

        if update.passengers is not None:
            segment = booking.flights[0]
            if len(update.passengers) != len(segment.passengers):
                raise BookingStateError("Passenger count cannot be changed")
            segment.passengers = [
                Passenger(**details.model_dump(), seat_number=existing.seat_number)
                for details, existing in zip(update.passengers, segment.passengers)
            ]
            descriptions.append("passenger details")

        if not descriptions:
            return booking

        booking.modifications.append(Modification(
            type="passenger_info",
            description=f"Booking updated: {', '.join(descriptions)}",
        ))
        booking.updated_at = datetime.now(timezone.utc)
        await self.booking_storage.save_booking(booking)

        logger.info(f"Booking {booking.booking_reference} updated: {', '.join(descriptions)}")
        return booking

    def can_cancel(self, booking: Booking, flights: Dict[str, Flight]) -> bool:
        if booking.booking_status in ("cancelled", "completed"):
            return False
        return all(hours_until(flight.departure.date) >= 24 for flight in flights.values())

    @staticmethod
    def refund_percentage(flights: Dict[str, Flight]) -> float:
        """100% at 30+ days out, 80% at 7-30 days, 50% inside a week."""
        percentage = 1.0
        for flight in flights.values():
            days = hours_until(flight.departure.date) / 24
            if days < 7:
                percentage = min(percentage, 0.5)
            elif days < 30:
                percentage = min(percentage, 0.8)
        return percentage

    async def cancel_booking(self, booking: Booking, reason: Optional[str] = None) -> Tuple[Booking, float]:
        """
        Cancel a booking, release its seats and refund according to the notice given.

        Returns:
            (booking, refund_amount)

        Raises:
            BookingStateError: already cancelled/completed or departing within 24 hours
        """
        flights = await self.load_flights(booking)
        if not self.can_cancel(booking, flights):
            raise BookingStateError("This booking cannot be cancelled")

        refund_amount = round(booking.total_amount * self.refund_percentage(flights), 2)
        reason = reason or "Cancelled by user"
        now = datetime.now(timezone.utc)

        booking.booking_status = "cancelled"
        booking.cancellation = Cancellation(
            reason=reason,
            cancelled_at=now,
            refund_amount=refund_amount,
        )
        booking.modifications.append(Modification(
            type="cancellation",
            description=f"Booking cancelled: {reason}",
            fee=round(booking.total_amount - refund_amount, 2),
        ))
        booking.updated_at = now
        await self.booking_storage.save_booking(booking)

        for segment in booking.flights:
            await self._adjust_availability(segment.flight_id, segment.class_type, len(segment.passengers))

        await self.process_refund(booking, refund_amount)

        logger.info(
            f"Booking {booking.booking_reference} cancelled, refund {refund_amount}",
            extra={"extra_fields": {
                "booking_id": booking.booking_id,
                "refund_amount": refund_amount,
                "reason": reason,
            }}
        )
        return booking, refund_amount

    async def process_refund(self, booking: Booking, amount: float) -> Dict[str, Any]:
        """Mock refund: always succeeds immediately."""
        booking.cancellation.refund_status = "processed"
        if booking.payment_info.status == "completed":
            booking.payment_info.status = "refunded"
        await self.booking_storage.save_booking(booking)
        return {"success": True, "refund_id": str(uuid.uuid4()), "amount": amount}

    # ------------------------------------------------------------------
    # Check-in
    # ------------------------------------------------------------------

    async def check_in(self, booking: Booking, flight_type: str = "outbound") -> Dict[str, Any]:
        """
        Check a confirmed booking in and issue a boarding pass.

        Check-in opens 24 hours before departure and closes at departure.

        Raises:
            BookingStateError: wrong status, already checked in, or outside the window
        """
        if booking.booking_status != "confirmed":
            raise BookingStateError("Check-in not available for this booking")

        if booking.check_in_status.get(flight_type):
            raise BookingStateError("Already checked in for this flight")

        segment_index = 1 if flight_type == "return" else 0
        if segment_index >= len(booking.flights):
            raise BookingStateError("This booking has no return flight")

        segment = booking.flights[segment_index]
        flight = await self.flight_storage.get_flight(segment.flight_id)
        if flight is None:
            raise FlightNotFoundError("Flight not found")

        hours = hours_until(flight.departure.date)
        if hours > 24:
            raise BookingStateError("Check-in not yet available")
        if hours < 0:
            raise BookingStateError("Flight has already departed")

        booking.check_in_status[flight_type] = True
        booking.updated_at = datetime.now(timezone.utc)
        await self.booking_storage.save_booking(booking)

        logger.info(f"Booking {booking.booking_reference} checked in ({flight_type})")
        return {
            "booking": booking,
            "boarding_pass": self.generate_boarding_pass(booking, segment.passengers[0], flight),
        }

    def generate_boarding_pass(self, booking: Booking, passenger: Passenger, flight: Flight) -> Dict[str, Any]:
        return {
            "booking_reference": booking.booking_reference,
            "flight_number": flight.flight_number,
            "passenger": {
                "name": f"{passenger.first_name} {passenger.last_name}",
                "seat_number": passenger.seat_number,
            },
            "departure": {
                "airport": f"{flight.origin.name} ({flight.origin.code})",
                "date": flight.departure.date.isoformat(),
                "time": flight.departure.time,
                "gate": flight.origin.gate,
                "terminal": flight.origin.terminal,
            },
            "arrival": {
                "airport": f"{flight.destination.name} ({flight.destination.code})",
                "time": flight.arrival.time,
            },
            "barcode": "".join(self.rng.choice(string.digits) for _ in range(12)),
            "qr_code": f"BOOKING:{booking.booking_reference}:{int(time.time() * 1000)}",
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_user_booking_stats(self, user_id: str) -> Dict[str, Any]:
        bookings = await self.booking_storage.list_user_bookings(user_id)
        now = datetime.now(timezone.utc)

        confirmed = [b for b in bookings if b.booking_status == "confirmed"]
        upcoming = past = 0
        destinations: Counter = Counter()

        for booking in bookings:
            flights = await self.load_flights(booking)
            departures = [as_utc(f.departure.date) for f in flights.values()]
            for flight in flights.values():
                destinations[flight.destination.code] += 1

            if booking.booking_status != "confirmed" or not departures:
                continue
            if any(d > now for d in departures):
                upcoming += 1
            elif all(d < now for d in departures):
                past += 1

        return {
            "total_bookings": len(bookings),
            "confirmed_bookings": len(confirmed),
            "cancelled_bookings": sum(1 for b in bookings if b.booking_status == "cancelled"),
            "total_spent": sum(b.total_amount for b in confirmed),
            "upcoming_trips": upcoming,
            "past_trips": past,
            "frequent_destinations": [
                {"destination": code, "count": count} for code, count in destinations.most_common(5)
            ],
            "average_booking_value": (
                round(sum(b.total_amount for b in bookings) / len(bookings)) if bookings else 0
            ),
        }

    async def get_booking_reminders(self) -> List[Booking]:
        """Confirmed bookings departing tomorrow whose reminder has not gone out."""
        tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).date()
        due = []
        for booking in await self.booking_storage.list_bookings():
            reminder = booking.notifications.get("reminder")
            if booking.booking_status != "confirmed" or (reminder and reminder.sent):
                continue
            flights = await self.load_flights(booking)
            if any(as_utc(f.departure.date).date() == tomorrow for f in flights.values()):
                due.append(booking)
        return due


# Global booking service instance
_booking_service: Optional[BookingService] = None


def init_booking_service(booking_storage: BookingStorage, flight_storage: FlightStorage) -> BookingService:
    global _booking_service
    _booking_service = BookingService(booking_storage, flight_storage)
    return _booking_service


def get_booking_service() -> BookingService:
    if _booking_service is None:
        raise RuntimeError("Booking service not initialized. Call init_booking_service() first.")
    return _booking_service
