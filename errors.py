"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

ConfigError sits outside the hierarchy: a missing signing secret
is a deployment fault and must stop the process, not become a 500 envelope.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class ConfigError(RuntimeError):
    """Required configuration (e.g. a token signing secret) is absent."""


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class GoneError(AppError):
    status_code = 410
    error_code = "gone"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class UpstreamError(AppError):
    """A collaborator we depend on (mail provider, inference service) failed."""

    status_code = 500
    error_code = "upstream_error"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        err = ValidationError("Invalid request body", reason="invalid_json")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
