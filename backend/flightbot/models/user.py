"""
User Model - Defines the traveller account structure.
"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .booking import validate_phone_number


class UserPreferences(BaseModel):
    """Travel preferences kept on the profile."""
    currency: str = "USD"
    seat_preference: Literal['window', 'aisle', 'middle', 'no-preference'] = "no-preference"
    meal_preference: Literal['vegetarian', 'vegan', 'halal', 'kosher', 'no-preference'] = "no-preference"
    frequent_destinations: List[str] = Field(default_factory=list)
    home_airport: Optional[str] = None


class UserCreate(BaseModel):
    """Registration payload."""
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('email')
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return validate_phone_number(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class UserUpdate(BaseModel):
    """Profile update - all fields optional."""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    preferences: Optional[UserPreferences] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return validate_phone_number(value)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class User(BaseModel):
    """User as returned to clients."""
    user_id: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    """JWT token response model."""
    access_token: str
    token_type: str = "bearer"
    user: Optional[User] = None


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None
    email: Optional[str] = None
