"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Each concern gets its own sub-config so services can be constructed from the
slice they need (TokenService takes JWTSettings, OtpService takes OtpSettings)
instead of reaching into the environment themselves.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "ecolens"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "ecolens"
    jwt_audience: str = "ecolens.web"

    # One secret per token kind; empty means "not configured" and is fatal
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    verification_token_secret: str = ""

    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800
    verification_token_ttl_seconds: int = 3600


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_ttl_seconds: int = Field(default=3600, gt=0)
    otp_length: int = Field(default=6, ge=4, le=10)
    otp_max_attempts: int = Field(default=10, gt=0)


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@ecolens.app"
    zepto_from_name: str = "EcoLens"
    email_brand: str = "EcoLens"

    # Delivery retries: attempt n waits retry_delay_ms * 2**(n-1) + jitter
    max_send_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=500, ge=100)
    send_timeout_seconds: float = 10.0


class PredictSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    inference_url: str = "https://wahb-amir-ecolens.hf.space/run/predict"
    inference_timeout_seconds: float = 30.0
    top_k: int = 5


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "http://localhost:3000"
    app_name: str = "EcoLens"

    # Credentials are required for cookie auth, so origins must be explicit
    cors_origins: list[str] = ["http://localhost:3000"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    otp: Optional[OtpSettings] = None
    email: Optional[EmailSettings] = None
    predict: Optional[PredictSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.predict is None:
            self.predict = PredictSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production
