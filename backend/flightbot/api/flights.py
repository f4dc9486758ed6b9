"""
Flight API endpoints - search, reference data, status and price trends.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ..middleware.rate_limiter import api_limiter, search_limiter
from ..models.flight import FlightSearchParams
from ..services.exceptions import FlightNotFoundError
from ..services.flight_service import FlightService, get_flight_service
from ..utils.auth import get_optional_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/flights", tags=["flights"])


def search_params(
    origin: str = Query(..., description="Origin airport code"),
    destination: str = Query(..., description="Destination airport code"),
    departure_date: date = Query(..., description="Departure date (YYYY-MM-DD)"),
    return_date: Optional[date] = Query(None),
    passengers: int = Query(1),
    class_type: str = Query("economy"),
    stops: Optional[int] = Query(None),
    max_price: Optional[float] = Query(None),
    airlines: Optional[str] = Query(None, description="Comma-separated airline codes"),
    sort_by: str = Query("price"),
) -> FlightSearchParams:
    """Build validated search parameters from the query string."""
    try:
        return FlightSearchParams(
            origin=origin,
            destination=destination,
            departure_date=departure_date,
            return_date=return_date,
            passengers=passengers,
            class_type=class_type,
            stops=stops,
            max_price=max_price,
            airlines=[code.strip() for code in airlines.split(",") if code.strip()] if airlines else None,
            sort_by=sort_by,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))


@router.get("/search", dependencies=[Depends(search_limiter)])
async def search_flights(
    params: FlightSearchParams = Depends(search_params),
    user_id: Optional[str] = Depends(get_optional_user_id),
    flight_service: FlightService = Depends(get_flight_service),
):
    """
    Search flights for a route and day.

    Returns:
        dict: envelope with flights, the echoed search parameters and a count
    """
    result = await flight_service.search_flights(params)

    return {
        "success": True,
        "data": {
            "flights": result.flights,
            "search_params": params,
            "total": result.total,
            "message": (
                f"Found {len(result.flights)} flights" if result.flights
                else "No flights found for your search criteria"
            ),
        },
    }


@router.get("/popular", dependencies=[Depends(api_limiter)])
async def popular_destinations(flight_service: FlightService = Depends(get_flight_service)):
    return {"success": True, "data": {"destinations": await flight_service.get_popular_destinations()}}


@router.get("/airports", dependencies=[Depends(api_limiter)])
async def list_airports(
    search: Optional[str] = None,
    country: Optional[str] = None,
    city: Optional[str] = None,
    flight_service: FlightService = Depends(get_flight_service),
):
    airports = await flight_service.get_airports(search=search, country=country, city=city)
    return {"success": True, "data": {"airports": airports}}


@router.get("/airlines", dependencies=[Depends(api_limiter)])
async def list_airlines(flight_service: FlightService = Depends(get_flight_service)):
    return {"success": True, "data": {"airlines": await flight_service.get_airlines()}}


@router.get("/status/{flight_number}", dependencies=[Depends(api_limiter)])
async def flight_status(
    flight_number: str,
    date: Optional[str] = Query(None, description="Flight date (YYYY-MM-DD)"),
    flight_service: FlightService = Depends(get_flight_service),
):
    status_info = await flight_service.get_flight_status(flight_number, date)
    return {"success": True, "data": {"status": status_info}}


@router.get("/price-alerts", dependencies=[Depends(api_limiter)])
async def price_alerts(
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    flight_service: FlightService = Depends(get_flight_service),
):
    if not origin or not destination:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Origin and destination are required"
        )

    data = await flight_service.get_price_alerts(origin.upper(), destination.upper())
    return {"success": True, "data": data}


@router.get("/{flight_id}", dependencies=[Depends(api_limiter)])
async def get_flight(flight_id: str, flight_service: FlightService = Depends(get_flight_service)):
    try:
        flight = await flight_service.get_flight(flight_id)
    except FlightNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Flight not found")
    return {"success": True, "data": {"flight": flight}}
