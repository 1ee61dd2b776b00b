"""ZeptoMail implementation of EmailProvider.

Sends transactional mail through the ZeptoMail HTTP API. Each message is
attempted up to EmailSettings.max_send_attempts times with exponential
backoff and jitter; after the last failure UpstreamError is raised so the
caller can compensate.
"""

import asyncio
import os
import random
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from errors import UpstreamError
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_url: str = "http://localhost:3000",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_url = app_url.rstrip("/")
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _backoff_seconds(self, attempt: int) -> float:
        base_ms = self._settings.retry_delay_ms * (2 ** (attempt - 1))
        return (base_ms + random.randint(0, 100)) / 1000

    async def _post_once(self, payload: dict, headers: dict) -> None:
        response = await self._http.post(_ZEPTO_API_URL, json=payload, headers=headers)
        if response.status_code not in (200, 201, 202):
            raise UpstreamError(
                f"mail provider returned {response.status_code}",
                details=response.text[:200],
            )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:
        if not self._settings.zepto_api_token:
            log.error("email_send_failed", reason="token_not_configured")
            raise UpstreamError("Email delivery is not configured", reason="mail_not_configured")

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
            "textbody": text_body,
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"
        headers = {"Authorization": token, "Content-Type": "application/json"}

        attempts = self._settings.max_send_attempts
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                await self._post_once(payload, headers)
                log.info("email_sent", to_email=to_email, subject=subject, attempt=attempt)
                return
            except (httpx.HTTPError, UpstreamError) as e:
                last_error = e
                if attempt >= attempts:
                    break
                delay = self._backoff_seconds(attempt)
                log.warning(
                    "email_send_retry",
                    to_email=to_email,
                    attempt=attempt,
                    delay_seconds=delay,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)

        log.error(
            "email_send_failed",
            to_email=to_email,
            subject=subject,
            attempts=attempts,
            error=str(last_error),
            error_type=type(last_error).__name__,
        )
        raise UpstreamError(
            f"Failed to send email after {attempts} attempts", reason="mail_failed"
        ) from last_error

    def _render(self, template_name: str, **context) -> str:
        template = self._jinja.get_template(template_name)
        return template.render(
            app_url=self._app_url,
            brand=self._settings.email_brand,
            year=datetime.now(timezone.utc).year,
            **context,
        )

    async def send_verification_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expiry_minutes: int,
    ) -> None:
        brand = self._settings.email_brand
        verify_url = f"{self._app_url}/verify-otp?otp={quote(otp_code)}"
        subject = f"Your verification code - {brand}"
        html_body = self._render(
            "verification.html",
            otp_code=otp_code,
            user_name=user_name,
            expiry_minutes=expiry_minutes,
            verify_url=verify_url,
        )
        text_body = (
            f"Your verification code is: {otp_code}\n\n"
            f"It expires in {expiry_minutes} minutes.\n\n"
            f"Open: {verify_url}"
        )
        await self._send(email, user_name, subject, html_body, text_body)

    async def send_password_reset_email(
        self,
        email: str,
        user_name: Optional[str],
        otp_code: str,
        expiry_minutes: int,
    ) -> None:
        brand = self._settings.email_brand
        subject = f"Reset your password - {brand}"
        html_body = self._render(
            "password_reset.html",
            otp_code=otp_code,
            user_name=user_name,
            expiry_minutes=expiry_minutes,
        )
        text_body = (
            f"Hello{f' {user_name}' if user_name else ''},\n\n"
            f"Your password reset code is: {otp_code}\n\n"
            f"This code expires in {expiry_minutes} minutes."
        )
        await self._send(email, user_name, subject, html_body, text_body)
