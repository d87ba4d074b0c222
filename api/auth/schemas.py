"""
Auth API schemas (request/response models).
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["customer", "admin"]


class CreateUserRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
    name: str | None = Field(default=None, max_length=255)
    role: Role = "customer"


class RegisterRequest(BaseModel):
    # Blank values are rejected in the service so the error is a 400.
    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=128)
    name: str = Field(default="", max_length=255)


class UpdateUserRequest(BaseModel):
    role: Role | None = None
    is_active: bool | None = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=20)


class LogoutRequest(BaseModel):
    # Omitted: every session of the current user is revoked.
    refresh_token: str | None = Field(default=None, min_length=20)


class UserResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    role: Role
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenPairResponse
