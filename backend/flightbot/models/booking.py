"""
Booking Models - booking documents and the request bodies that create or change them.
"""

import re
from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .flight import ClassType

Title = Literal['Mr', 'Mrs', 'Ms', 'Dr']
MealPreference = Literal['vegetarian', 'vegan', 'halal', 'kosher', 'regular']
PaymentMethod = Literal['credit_card', 'debit_card', 'paypal', 'bank_transfer']
PaymentStatus = Literal['pending', 'completed', 'failed', 'refunded']
BookingStatus = Literal['pending', 'confirmed', 'cancelled', 'completed', 'no-show']
TripType = Literal['one-way', 'round-trip', 'multi-city']
ModificationType = Literal['date_change', 'passenger_info', 'seat_change', 'meal_change', 'cancellation']

PHONE_RE = re.compile(r'^\+?[0-9][0-9\s\-().]{6,19}$')
BOOKING_REFERENCE_RE = re.compile(r'^[A-Za-z0-9]{6}$')


def validate_phone_number(value: Optional[str]) -> Optional[str]:
    """Shared phone check for contact details and user profiles."""
    if value is None:
        return value
    value = value.strip()
    if not PHONE_RE.match(value):
        raise ValueError('Please provide a valid phone number')
    return value


class PassengerDetails(BaseModel):
    """Passenger as submitted by the client."""
    title: Title
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    date_of_birth: date
    passport_number: Optional[str] = None
    nationality: Optional[str] = None
    meal_preference: MealPreference = "regular"
    special_requests: Optional[str] = None

    @field_validator('first_name', 'last_name', mode='before')
    @classmethod
    def strip_names(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, value: date) -> date:
        age_days = (date.today() - value).days
        if age_days < 0 or age_days > 120 * 365:
            raise ValueError('Invalid date of birth')
        return value


class Passenger(PassengerDetails):
    """Passenger as stored, with an assigned seat."""
    seat_number: Optional[str] = None


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


class ContactInfo(BaseModel):
    email: EmailStr
    phone: str
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator('email')
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return validate_phone_number(value)


class PaymentRequest(BaseModel):
    method: PaymentMethod


class PaymentInfo(BaseModel):
    method: PaymentMethod
    transaction_id: str
    amount: float
    currency: str = "USD"
    status: PaymentStatus = "pending"
    paid_at: Optional[datetime] = None


class PriceBreakdown(BaseModel):
    """Per-passenger base fare and taxes, one booking fee, and the grand total."""
    base: float
    taxes: float
    fees: float = 0
    total: float


class BookedFlight(BaseModel):
    flight_id: str
    class_type: ClassType
    passengers: List[Passenger]
    price: PriceBreakdown


class Modification(BaseModel):
    type: ModificationType
    description: str
    fee: float = 0
    modified_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    modified_by: str = "user"


class Cancellation(BaseModel):
    reason: str
    cancelled_at: datetime
    refund_amount: float
    refund_status: Literal['pending', 'processed', 'denied'] = "pending"


class NotificationFlag(BaseModel):
    sent: bool = False
    sent_at: Optional[datetime] = None


def _default_notifications() -> Dict[str, NotificationFlag]:
    return {name: NotificationFlag() for name in ('booking', 'payment', 'reminder', 'check_in')}


class Booking(BaseModel):
    """A booking document."""
    booking_id: str
    booking_reference: str
    user_id: str
    flights: List[BookedFlight]
    contact_info: ContactInfo
    payment_info: PaymentInfo
    booking_status: BookingStatus = "pending"
    trip_type: TripType = "one-way"
    total_amount: float
    booking_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    check_in_status: Dict[str, bool] = Field(default_factory=lambda: {"outbound": False, "return": False})
    modifications: List[Modification] = Field(default_factory=list)
    cancellation: Optional[Cancellation] = None
    notifications: Dict[str, NotificationFlag] = Field(default_factory=_default_notifications)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BookingCreate(BaseModel):
    """Request body for creating a booking."""
    flight_id: str = Field(..., min_length=1)
    class_type: ClassType = "economy"
    passengers: List[PassengerDetails] = Field(..., min_length=1, max_length=9)
    contact_info: ContactInfo
    payment_info: PaymentRequest
    trip_type: TripType = "one-way"


class BookingUpdate(BaseModel):
    """Only contact details and passenger details may change after booking."""
    contact_info: Optional[ContactInfo] = None
    passengers: Optional[List[PassengerDetails]] = Field(None, min_length=1, max_length=9)


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CheckInRequest(BaseModel):
    flight_type: Literal['outbound', 'return'] = "outbound"


class BookingLookup(BaseModel):
    """Guest lookup by reference plus the contact email used when booking."""
    booking_reference: str
    email: EmailStr

    @field_validator('booking_reference')
    @classmethod
    def validate_reference(cls, value: str) -> str:
        if not BOOKING_REFERENCE_RE.match(value):
            raise ValueError('Booking reference must be 6 alphanumeric characters')
        return value.upper()
