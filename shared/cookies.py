"""
Session cookie helpers.

    verificationToken   lax      1 h     register, unverified login → cleared by verify
    access_token        strict   15 min  login, verify, refresh, me → cleared by logout
    refresh_token       strict   7 days  login, verify, refresh, me → cleared by logout

All cookies are httpOnly, path "/", and Secure in production. The camelCase
names the old frontend wrote are accepted on read only.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request, Response

from config import AppSettings

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"
VERIFICATION_COOKIE = "verificationToken"

LEGACY_ACCESS_COOKIE = "accessToken"
LEGACY_REFRESH_COOKIE = "refreshToken"


def read_cookie(request: Request, *names: str) -> Optional[str]:
    """Return the first non-empty cookie among *names*."""
    for name in names:
        value = request.cookies.get(name)
        if value:
            return value
    return None


def read_access_cookie(request: Request) -> Optional[str]:
    return read_cookie(request, ACCESS_COOKIE, LEGACY_ACCESS_COOKIE)


def read_refresh_cookie(request: Request) -> Optional[str]:
    return read_cookie(request, REFRESH_COOKIE, LEGACY_REFRESH_COOKIE)


def set_session_cookies(
    response: Response,
    access_token: str,
    refresh_token: str,
    settings: AppSettings,
) -> Response:
    response.set_cookie(
        ACCESS_COOKIE,
        value=access_token,
        max_age=settings.jwt.access_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=refresh_token,
        max_age=settings.jwt.refresh_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        path="/",
    )
    return response


def clear_session_cookies(response: Response, settings: AppSettings) -> Response:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE, LEGACY_ACCESS_COOKIE, LEGACY_REFRESH_COOKIE):
        response.delete_cookie(
            name, path="/", httponly=True, secure=settings.cookie_secure, samesite="strict"
        )
    return response


def set_verification_cookie(
    response: Response, token: str, settings: AppSettings
) -> Response:
    response.set_cookie(
        VERIFICATION_COOKIE,
        value=token,
        max_age=settings.jwt.verification_token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    return response


def clear_verification_cookie(response: Response, settings: AppSettings) -> Response:
    response.delete_cookie(
        VERIFICATION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return response
