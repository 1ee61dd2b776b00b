"""
GET /api/user/me: who is this browser logged in as.

Answers ``{"id": ...}`` or JSON ``null``; never an error status. When the
access cookie is missing or dead the refresh cookie is rotated once and both
cookies are re-issued on the response.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import get_auth_service, get_settings
from schemas.dto.responses.auth import CurrentUserResponse
from services.auth_service import AuthService
from shared.cookies import read_access_cookie, read_refresh_cookie, set_session_cookies
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/me", response_model=Optional[CurrentUserResponse])
async def me(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> JSONResponse:
    try:
        current = auth.current_user(read_access_cookie(request), read_refresh_cookie(request))
    except Exception as e:
        # The frontend treats any failure here as "logged out"
        log.error("current_user_lookup_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(content=None)

    if current is None:
        return JSONResponse(content=None)

    response = JSONResponse(content=CurrentUserResponse(id=current.user_id).model_dump())
    if current.rotated is not None:
        set_session_cookies(
            response, current.rotated.access_token, current.rotated.refresh_token, settings
        )
    return response
