"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they return is built once in the
app lifespan (see app.py) and stored on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.inference import InferenceClient
from services.auth_service import AuthService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_inference_client(request: Request) -> InferenceClient:
    return request.app.state.inference_client
