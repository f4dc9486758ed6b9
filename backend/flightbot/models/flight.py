"""
Flight Models - flight documents and search parameters.
"""

import re
from datetime import date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ClassType = Literal['economy', 'premium', 'business', 'first']
SortBy = Literal['price', 'duration', 'departure', 'airline']
FlightStatus = Literal['scheduled', 'delayed', 'cancelled', 'boarding', 'departed', 'arrived']

AIRPORT_CODE_RE = re.compile(r'^[A-Za-z]{3}$')


class Airline(BaseModel):
    code: str
    name: str
    logo: Optional[str] = None


class AirportInfo(BaseModel):
    code: str
    name: str
    city: str = ""
    country: str = ""
    terminal: Optional[str] = None
    gate: Optional[str] = None


class FlightTime(BaseModel):
    """Scheduled departure or arrival: full timestamp plus the local clock time."""
    date: datetime
    time: str  # HH:MM
    timezone: str = "UTC"


class Duration(BaseModel):
    total: int  # minutes
    formatted: str


class ClassPrices(BaseModel):
    economy: Optional[float] = None
    premium: Optional[float] = None
    business: Optional[float] = None
    first: Optional[float] = None
    currency: str = "USD"


class ClassAvailability(BaseModel):
    economy: int = 0
    premium: int = 0
    business: int = 0
    first: int = 0


class Stops(BaseModel):
    count: int = 0
    airports: List[str] = Field(default_factory=list)
    duration: int = 0  # layover minutes


class Amenities(BaseModel):
    wifi: bool = False
    entertainment: bool = False
    meals: bool = False
    power_outlets: bool = False


class Restrictions(BaseModel):
    baggage_policy: Optional[str] = None
    cancellation_policy: Optional[str] = None
    change_policy: Optional[str] = None


class Flight(BaseModel):
    """A bookable flight as stored in the flight repository."""
    flight_id: str
    flight_number: str
    airline: Airline
    aircraft: str = "N/A"
    origin: AirportInfo
    destination: AirportInfo
    departure: FlightTime
    arrival: FlightTime
    duration: Duration
    price: ClassPrices
    availability: ClassAvailability
    stops: Stops = Field(default_factory=Stops)
    amenities: Amenities = Field(default_factory=Amenities)
    status: FlightStatus = "scheduled"
    restrictions: Restrictions = Field(default_factory=Restrictions)
    source: Literal['store', 'amadeus', 'mock'] = "mock"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FlightSearchParams(BaseModel):
    """Validated flight search query."""
    origin: str
    destination: str
    departure_date: date
    return_date: Optional[date] = None
    passengers: int = Field(1, ge=1, le=9)
    class_type: ClassType = "economy"
    sort_by: SortBy = "price"
    stops: Optional[int] = Field(None, ge=0, le=3)
    max_price: Optional[float] = Field(None, gt=0)
    airlines: Optional[List[str]] = None

    @field_validator('origin', 'destination')
    @classmethod
    def validate_airport_code(cls, value: str) -> str:
        if not AIRPORT_CODE_RE.match(value or ""):
            raise ValueError('must be a valid 3-letter airport code')
        return value.upper()

    @field_validator('departure_date')
    @classmethod
    def validate_departure_date(cls, value: date) -> date:
        if value < date.today():
            raise ValueError('Departure date cannot be in the past')
        return value

    @model_validator(mode='after')
    def validate_return_date(self):
        if self.return_date is not None and self.return_date <= self.departure_date:
            raise ValueError('Return date must be after departure date')
        return self


class FlightSearchResult(BaseModel):
    flights: List[Flight]
    total: int
