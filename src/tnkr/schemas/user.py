"""Pydantic schemas for accounts and profiles."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from tnkr.schemas.common import CamelModel


class UserSummary(CamelModel):
    """Display projection embedded in messages and conversations."""
    id: uuid.UUID
    first_name: str
    last_name: str
    profile_picture_url: Optional[str] = None


class UserRead(CamelModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    phone: Optional[str] = None
    username: str
    email: str
    role: str
    is_verified: bool
    profile_picture_url: Optional[str] = None
    created_at: datetime


class RegisterResponse(UserRead):
    message: str = (
        "Registration successful. Please check your email to verify your account."
    )


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class LoginUser(CamelModel):
    id: uuid.UUID
    username: str
    email: str
    role: str


class LoginResponse(CamelModel):
    message: str = "Login successful"
    token: str
    user: LoginUser


class ForgotPasswordRequest(CamelModel):
    email: str


class ResetPasswordRequest(CamelModel):
    code: str
    new_password: str = Field(min_length=8)


class ResendVerificationRequest(CamelModel):
    email: str


class ProfileUpdate(CamelModel):
    """Partial update — only non-None fields are applied."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
