"""
Client-side session manager for the EcoLens API.

Wraps an httpx.AsyncClient whose cookie jar carries the session cookies set
by the server. A 401 triggers one refresh and one retry. Concurrent 401s
share a single in-flight refresh so the refresh cookie is rotated once.

    async with SessionManager("https://ecolens.example") as session:
        await session.start()
        response = await session.fetch_with_auth("GET", "/api/history")
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterator
from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)

ME_PATH = "/api/user/me"
LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"
REFRESH_PATH = "/api/auth/refresh"

_JSON_HEADERS = {"Content-Type": "application/json"}


def _is_replayable(request_kwargs: dict) -> bool:
    """False when the request body is a one-shot stream that cannot be resent."""
    for key in ("content", "data"):
        body = request_kwargs.get(key)
        if body is None or isinstance(body, (str, bytes, bytearray, dict, list, tuple)):
            continue
        if isinstance(body, (Iterator, AsyncIterable)):
            return False
    return True


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _user_from_response(response: httpx.Response) -> Optional[dict]:
    if not response.is_success:
        return None
    data = _safe_json(response)
    if not isinstance(data, dict):
        return None
    # Accept both {"user": {...}} and a bare user object; {} means nobody
    nested = data.get("user")
    if isinstance(nested, dict) and nested:
        return nested
    return data or None


class SessionManager:
    def __init__(
        self,
        base_url: str = "",
        *,
        refresh_timeout: float = 10.0,
        **client_kwargs: Any,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, **client_kwargs)
        self._refresh_timeout = refresh_timeout
        self._refresh_task: Optional[asyncio.Task[bool]] = None
        self._user: Optional[dict] = None
        self._loading = True

    @property
    def user(self) -> Optional[dict]:
        return self._user

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    # ── Refresh ──────────────────────────────────────────────────────────────

    async def refresh_tokens(self) -> bool:
        """Rotate the session cookies; concurrent callers share one request."""
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._refresh_once())
            self._refresh_task = task
        # shield: one caller being cancelled must not abort the shared refresh
        return await asyncio.shield(task)

    async def _refresh_once(self) -> bool:
        try:
            response = await self._client.post(
                REFRESH_PATH, headers=_JSON_HEADERS, timeout=self._refresh_timeout
            )
            if not response.is_success:
                log.info("session_refresh_rejected", status_code=response.status_code)
            return response.is_success
        except httpx.HTTPError as e:
            log.warning("session_refresh_failed", error=str(e), error_type=type(e).__name__)
            return False
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

    # ── Requests ─────────────────────────────────────────────────────────────

    async def fetch_with_auth(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request; on 401 refresh once and retry once.

        Streamed bodies (iterators, async iterables) cannot be resent. For
        those the refresh still happens but the original 401 is returned.
        """
        response = await self._client.request(method, url, **kwargs)
        if response.status_code != 401:
            return response

        refreshed = await self.refresh_tokens()
        if not refreshed:
            return response

        if not _is_replayable(kwargs):
            log.warning("auth_retry_skipped", reason="non_replayable_body", url=str(url))
            return response

        await response.aclose()
        return await self._client.request(method, url, **kwargs)

    async def start(self, initial_user: Optional[dict] = None) -> Optional[dict]:
        """Load the current user unless the caller already knows it."""
        if initial_user is not None:
            self._user = initial_user
            self._loading = False
            return self._user

        self._loading = True
        try:
            response = await self.fetch_with_auth("GET", ME_PATH, headers=_JSON_HEADERS)
            self._user = _user_from_response(response)
        except httpx.HTTPError as e:
            log.error("session_start_failed", error=str(e), error_type=type(e).__name__)
            self._user = None
        finally:
            self._loading = False
        return self._user

    async def sync_user(self) -> Optional[dict]:
        """Re-read the current user without refresh or retry."""
        try:
            response = await self._client.get(ME_PATH, headers=_JSON_HEADERS)
            self._user = _user_from_response(response)
        except httpx.HTTPError as e:
            log.error("session_sync_failed", error=str(e), error_type=type(e).__name__)
            self._user = None
        return self._user

    async def login(self, email: str, password: str) -> Optional[dict]:
        """Post credentials and return the server's JSON answer.

        The user is only re-synced when the server opened a session;
        an unverified account answers with ``reason`` and no cookies.
        """
        response = await self._client.post(
            LOGIN_PATH, json={"email": email, "password": password}
        )
        data = _safe_json(response)
        if response.is_success and isinstance(data, dict) and data.get("success"):
            await self.sync_user()
        return data

    async def logout(self) -> None:
        try:
            await self._client.post(LOGOUT_PATH, headers=_JSON_HEADERS)
        except httpx.HTTPError as e:
            log.error("logout_failed", error=str(e), error_type=type(e).__name__)
        finally:
            self._user = None

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def aclose(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        self._refresh_task = None
        await self._client.aclose()

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
