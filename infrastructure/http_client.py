"""Shared async HTTP client for outbound calls (mail provider, inference)."""

from typing import Any

import httpx


class HttpClient:
    """Async wrapper around httpx.AsyncClient with a per-service timeout.

    app.py builds one instance per collaborator so the mail provider and the
    classifier can have different timeouts.
    """

    def __init__(self, timeout: float = 5.0, **client_kwargs: Any) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, **client_kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
