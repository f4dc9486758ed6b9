"""
Booking API endpoints - create, list, look up, change, cancel and check in.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ..middleware.rate_limiter import api_limiter, booking_limiter
from ..models.booking import (
    BOOKING_REFERENCE_RE,
    BookingCancelRequest,
    BookingCreate,
    BookingLookup,
    BookingUpdate,
    CheckInRequest,
)
from ..services.booking_service import BookingService, get_booking_service
from ..services.exceptions import (
    BookingNotFoundError,
    BookingStateError,
    FlightNotFoundError,
    FlightUnavailableError,
)
from ..utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(booking_limiter)])
async def create_booking(
    request: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    """
    Create a booking and run the payment.

    Returns:
        dict: envelope with the booking (``confirmed`` or ``pending``)
    """
    try:
        booking = await booking_service.create_booking(user_id, request)
    except FlightNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Flight not found")
    except FlightUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "success": True,
        "message": "Booking created successfully",
        "data": {"booking": booking},
    }


@router.get("", dependencies=[Depends(api_limiter)])
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(10, ge=1, le=100),
    page: int = Query(1, ge=1),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    result = await booking_service.get_user_bookings(user_id, status=status_filter, limit=limit, page=page)
    return {"success": True, "data": result}


@router.get("/stats", dependencies=[Depends(api_limiter)])
async def booking_stats(
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    stats = await booking_service.get_user_booking_stats(user_id)
    return {"success": True, "data": {"stats": stats}}


@router.get("/reference/{reference}", dependencies=[Depends(api_limiter)])
async def get_booking_by_reference(
    reference: str,
    email: Optional[str] = None,
    booking_service: BookingService = Depends(get_booking_service),
):
    """Guest access to a booking with its reference and contact email."""
    if not BOOKING_REFERENCE_RE.match(reference):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Booking reference must be 6 alphanumeric characters"
        )
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is required to retrieve booking"
        )

    try:
        booking = await booking_service.find_booking_by_reference(reference.upper(), email)
    except BookingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found with the provided reference and email"
        )

    return {"success": True, "data": {"booking": await booking_service.with_flight_details(booking)}}


@router.post("/view", dependencies=[Depends(api_limiter)])
async def view_booking(
    lookup: BookingLookup,
    booking_service: BookingService = Depends(get_booking_service),
):
    """Short booking summary for the "view booking" dialog."""
    try:
        booking = await booking_service.find_booking_by_reference(lookup.booking_reference, lookup.email)
    except BookingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found with the provided reference and email."
        )

    flights = await booking_service.load_flights(booking)
    first = flights.get(booking.flights[0].flight_id) if booking.flights else None

    return {
        "success": True,
        "data": {
            "booking": {
                "reference": booking.booking_reference,
                "email": booking.contact_info.email,
                "flight_number": first.flight_number if first else "",
                "status": booking.booking_status,
            },
        },
    }


@router.get("/{booking_id}", dependencies=[Depends(api_limiter)])
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        booking = await booking_service.get_booking(user_id, booking_id)
    except BookingNotFoundError:
        raise _not_found()
    return {"success": True, "data": {"booking": await booking_service.with_flight_details(booking)}}


@router.put("/{booking_id}", dependencies=[Depends(api_limiter)])
async def update_booking(
    booking_id: str,
    update: BookingUpdate,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        booking = await booking_service.get_booking(user_id, booking_id)
        booking = await booking_service.update_booking(booking, update)
    except BookingNotFoundError:
        raise _not_found()
    except BookingStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "success": True,
        "message": "Booking updated successfully",
        "data": {"booking": booking},
    }


@router.delete("/{booking_id}", dependencies=[Depends(api_limiter)])
async def cancel_booking(
    booking_id: str,
    cancel_request: Optional[BookingCancelRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    reason = cancel_request.reason if cancel_request else None
    try:
        booking = await booking_service.get_booking(user_id, booking_id)
        booking, refund_amount = await booking_service.cancel_booking(booking, reason)
    except BookingNotFoundError:
        raise _not_found()
    except BookingStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "success": True,
        "message": "Booking cancelled successfully",
        "data": {"booking": booking, "refund_amount": refund_amount},
    }


@router.post("/{booking_id}/checkin", dependencies=[Depends(api_limiter)])
async def check_in(
    booking_id: str,
    checkin_request: Optional[CheckInRequest] = Body(None),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
):
    flight_type = checkin_request.flight_type if checkin_request else "outbound"
    try:
        booking = await booking_service.get_booking(user_id, booking_id)
        result = await booking_service.check_in(booking, flight_type)
    except (BookingNotFoundError, FlightNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BookingStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "success": True,
        "message": "Check-in successful",
        "data": result,
    }
