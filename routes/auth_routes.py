"""
Authentication routes.

POST /api/auth/register               : create account, mail verification code
POST /api/auth/login                  : password login (session or OTP path)
POST /api/auth/verify                 : confirm email with OTP, open session
POST /api/auth/refresh                : rotate the refresh cookie
POST /api/auth/logout                 : clear session cookies
POST /api/auth/request-password-reset : mail a reset code (always generic)
POST /api/auth/reset-password         : set a new password with a reset code

Handlers only move data between HTTP and AuthService; cookies are written
through shared.cookies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import get_auth_service, get_settings
from schemas.dto.requests.auth import (
    LoginRequest,
    RegisterRequest,
    RequestPasswordResetRequest,
    ResetPasswordRequest,
    VerifyRequest,
)
from schemas.dto.responses.auth import (
    LoginResponse,
    MessageResponse,
    SuccessResponse,
    VerifiedUser,
    VerifyResponse,
)
from services.auth_service import AuthService
from shared.cookies import (
    VERIFICATION_COOKIE,
    clear_session_cookies,
    clear_verification_cookie,
    read_cookie,
    read_refresh_cookie,
    set_session_cookies,
    set_verification_cookie,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=MessageResponse)
async def register(
    body: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    result = await auth.register(body.name, body.email, body.password)
    response = JSONResponse(
        status_code=201,
        content=MessageResponse(message=result.message).model_dump(),
    )
    set_verification_cookie(response, result.verification_token, settings)
    return response


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    result = await auth.login(body.email, body.password)
    payload = LoginResponse(
        message=result.message, success=result.success, reason=result.reason
    ).model_dump(exclude_none=True)
    response = JSONResponse(content=payload)

    if result.session is not None:
        set_session_cookies(
            response, result.session.access_token, result.session.refresh_token, settings
        )
        clear_verification_cookie(response, settings)
    elif result.verification_token is not None:
        set_verification_cookie(response, result.verification_token, settings)
    return response


@router.post("/verify", response_model=VerifyResponse)
async def verify(
    body: VerifyRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    result = await auth.verify(
        body.otp,
        email=body.email,
        verification_token=read_cookie(request, VERIFICATION_COOKIE),
    )
    payload = VerifyResponse(
        message="Email verified",
        user=VerifiedUser(id=str(result.user.id), email=result.user.email),
    )
    response = JSONResponse(content=payload.model_dump())
    set_session_cookies(
        response, result.session.access_token, result.session.refresh_token, settings
    )
    clear_verification_cookie(response, settings)
    return response


@router.post("/refresh", response_model=SuccessResponse)
async def refresh(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    session = auth.refresh(read_refresh_cookie(request))
    response = JSONResponse(content=SuccessResponse(success=True).model_dump())
    set_session_cookies(response, session.access_token, session.refresh_token, settings)
    return response


@router.post("/logout", response_model=SuccessResponse)
async def logout(settings: AppSettings = Depends(get_settings)) -> JSONResponse:
    response = JSONResponse(content=SuccessResponse(success=True).model_dump())
    clear_session_cookies(response, settings)
    clear_verification_cookie(response, settings)
    return response


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(
    body: RequestPasswordResetRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    message = await auth.request_password_reset(body.email)
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    message = await auth.reset_password(body.email, body.otp, body.password)
    return MessageResponse(message=message)
