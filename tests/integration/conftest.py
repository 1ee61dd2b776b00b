"""
Integration fixtures: the real routers wired to in-memory services.

The app is assembled the way create_app() does it, minus MongoDB and the
outbound HTTP clients; the lifespan drops the fakes onto app.state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from config import AppSettings
from errors import register_error_handlers
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.predict_routes import router as predict_router
from routes.user_routes import router as user_router


@pytest.fixture
def app_settings(monkeypatch) -> AppSettings:
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    monkeypatch.setenv("ENV", "development")
    return AppSettings()


@pytest.fixture
def inference_client():
    client = MagicMock()
    client.classify = AsyncMock(return_value=[])
    return client


@pytest.fixture
def app(app_settings, auth_service, inference_client) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = app_settings
        app.state.db = MagicMock()
        app.state.db.client.admin.command = AsyncMock(return_value={"ok": 1})
        app.state.auth_service = auth_service
        app.state.inference_client = inference_client
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(predict_router)
    return app


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
