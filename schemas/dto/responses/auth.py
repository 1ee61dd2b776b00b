"""
Response DTOs for authentication endpoints.

MessageResponse      : register (201), request-password-reset, reset-password
LoginResponse        : POST /api/auth/login (200)
VerifiedUser         : user block inside VerifyResponse
VerifyResponse       : POST /api/auth/verify (200)
SuccessResponse      : POST /api/auth/refresh, POST /api/auth/logout
CurrentUserResponse  : GET /api/user/me (200, or JSON null)
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class MessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str


class LoginResponse(BaseModel):
    """Response body for POST /api/auth/login (200).

    A verified login carries ``success=True``. An unverified account gets
    ``reason`` instead and no session cookies.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    success: Optional[bool] = None
    reason: Optional[Literal["pending_verification", "otp_sent"]] = None


class VerifiedUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    role: str = "user"


class VerifyResponse(BaseModel):
    """Response body for POST /api/auth/verify (200)."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    user: VerifiedUser


class SuccessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool


class CurrentUserResponse(BaseModel):
    """Response body for GET /api/user/me when a session exists."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
