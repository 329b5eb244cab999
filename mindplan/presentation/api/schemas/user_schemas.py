"""Pydantic schemas for user API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserRegisterRequest(BaseModel):
    """Request schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None


class UserLoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Response schema for user data."""

    id: int
    email: str
    full_name: Optional[str]
    created_at: Optional[datetime]


class UserLoginResponse(BaseModel):
    """Response schema for user login."""

    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserProfileResponse(UserResponse):
    """Response schema for the signed-in user's profile."""

    is_premium: bool
    is_admin: bool
