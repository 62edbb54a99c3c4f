"""
Pydantic schemas for the user and token endpoints.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class UserCredentials(BaseModel):
    """Body of POST /api/users and POST /api/login."""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserResponse(BaseModel):
    id: UUID
    email: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LoginResponse(UserResponse):
    """User details plus a fresh access token and refresh token."""
    token: str
    refresh_token: str


class TokenResponse(BaseModel):
    token: str
