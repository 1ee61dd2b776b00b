"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.inference import InferenceClient
from repositories.otp_repository import OTP_COLLECTION, OtpRepository
from repositories.transactions import MongoTransactionManager
from repositories.user_repository import USER_COLLECTION, UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.predict_routes import router as predict_router
from routes.user_routes import router as user_router
from services.auth_service import AuthService
from services.otp_service import OtpService
from services.token_service import TokenService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging.log_level, settings.logging.log_format, settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    # Missing signing secrets stop the process here (ConfigError)
    token_service = TokenService(settings.jwt)
    token_service.check_configuration()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        users = UserRepository(db[USER_COLLECTION])
        otps = OtpRepository(db[OTP_COLLECTION])
        await users.ensure_indexes()
        await otps.ensure_indexes()

        mail_http = HttpClient(timeout=settings.email.send_timeout_seconds)
        inference_http = HttpClient(timeout=settings.predict.inference_timeout_seconds)

        app.state.auth_service = AuthService(
            users=users,
            otps=OtpService(otps, settings.otp),
            tokens=token_service,
            email=ZeptoMailProvider(settings.email, mail_http, app_url=settings.app_url),
            transactions=MongoTransactionManager(mongo_client),
        )
        app.state.inference_client = InferenceClient(
            inference_http, settings.predict.inference_url, settings.predict.top_k
        )
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await mail_http.aclose()
        await inference_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Cookie auth needs credentials, so origins come from settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(predict_router)

    return app
