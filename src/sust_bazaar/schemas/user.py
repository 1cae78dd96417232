"""User-related Pydantic schemas."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from sust_bazaar.core.settings import settings

_PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")


class RegisterRequest(BaseModel):
    """Schema for student account registration."""

    name: str = Field(..., min_length=2, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="University email address")
    password: str = Field(..., min_length=6, max_length=100)
    phone: str = Field(..., description="10-15 digit phone number")
    department: str = Field(..., min_length=2)
    season: str = Field(..., min_length=4, description="Intake season, e.g. 'Spring 2025'")
    address: str | None = None

    @field_validator("name", "department", "season", "phone")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Trim surrounding whitespace before length checks apply downstream."""
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        """Only accept addresses on the configured university domain."""
        email = v.strip().lower()
        if not email.endswith(settings.allowed_email_domain):
            raise ValueError(f"Only {settings.allowed_email_domain} emails are allowed")
        return email

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if not _PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be 10-15 digits")
        return v


class LoginRequest(BaseModel):
    """Schema for login submissions."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class UserPublic(BaseModel):
    """Identity shown to other users (chat counterparts, message senders)."""

    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class UserOut(BaseModel):
    """Full profile returned to the account owner."""

    id: int
    name: str
    email: str
    phone: str
    department: str
    season: str
    address: str | None
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Token and profile returned after registration or login."""

    token: str = Field(..., description="JWT access token")
    token_type: str = "bearer"
    user: UserOut
