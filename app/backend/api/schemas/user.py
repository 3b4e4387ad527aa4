# app/backend/api/schemas/user.py
from pydantic import EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from ...models.db_models import UserCategory
from .base import ApiModel


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class UserCreateRequest(ApiModel):
    """Request model for registering a student or staff member."""
    full_name: str = Field(..., min_length=1, description="Full name of the person.")
    category: UserCategory = Field(..., description="'student' or 'staff'.")
    email: Optional[EmailStr] = Field(None, description="Optional, unique across users. An empty string counts as no email.")
    course_name: Optional[str] = None
    duration: Optional[str] = Field(None, description="Course duration, e.g. '6 months'.")
    frequency: Optional[int] = Field(None, ge=1, description="Sessions per week.")
    days_of_week: Optional[str] = Field(None, description="Comma separated day names.")

    @field_validator("email", mode="before")
    def blank_email_is_none(cls, v):
        return _blank_to_none(v)


class UserResponse(ApiModel):
    id: int
    full_name: str
    category: UserCategory
    email: Optional[str] = None
    course_name: Optional[str] = None
    duration: Optional[str] = None
    frequency: Optional[int] = None
    days_of_week: Optional[str] = None
    created_at: Optional[datetime] = None


# --- Admin authentication ---

class RegisterRequest(ApiModel):
    username: str = Field(..., min_length=3)
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None


class LoginRequest(ApiModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class Token(ApiModel):
    access_token: str
    token_type: str = "bearer"


class AdminResponse(ApiModel):
    """An admin account without its password hash."""
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None


class AuthResponse(ApiModel):
    user: AdminResponse
    message: str
    token: Token


# Internal representation of JWT data
class TokenData(ApiModel):
    admin_id: Optional[int] = None
    sid: Optional[str] = None
