"""
Request DTOs for authentication endpoints.

RegisterRequest             : POST /api/auth/register
LoginRequest                : POST /api/auth/login
VerifyRequest               : POST /api/auth/verify
RequestPasswordResetRequest : POST /api/auth/request-password-reset
ResetPasswordRequest        : POST /api/auth/reset-password

Fields are typed loosely on purpose: type and shape checks happen in
AuthService so that login can answer every malformed credential with the
same generic 401 instead of a schema error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    name: Any = None
    email: Any = None
    password: Any = None


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: Any = None
    password: Any = None


class VerifyRequest(BaseModel):
    """Request body for POST /api/auth/verify.

    ``otp`` is the numeric code from the email. ``email`` is only consulted
    when no ``verificationToken`` cookie accompanies the request.
    """

    model_config = ConfigDict(populate_by_name=True)

    otp: Any = None
    email: Any = None


class RequestPasswordResetRequest(BaseModel):
    """Request body for POST /api/auth/request-password-reset."""

    model_config = ConfigDict(populate_by_name=True)

    email: Any = None


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: Any = None
    otp: Any = None
    password: Any = None
