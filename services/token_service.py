"""
Token service: signing and verification of session JWTs.

Three token kinds, each HS256 with its own secret so a leaked verification
secret cannot mint sessions:

    access        15 min   sub, type="access"
    refresh       7 days   sub, type="refresh"
    verification  1 hour   sub, email, type="verification"

Verification never raises for bad tokens: signature mismatch, malformed
input, wrong kind and expiry all return None, and callers treat None as
"unauthenticated". A missing secret is a ConfigError in both directions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from config import JWTSettings
from errors import ConfigError
from shared.logging import get_logger

log = get_logger(__name__)

_ALGORITHM = "HS256"

TOKEN_KIND_ACCESS = "access"
TOKEN_KIND_REFRESH = "refresh"
TOKEN_KIND_VERIFICATION = "verification"


@dataclass(frozen=True)
class RotatedTokens:
    access_token: str
    refresh_token: str
    user_id: str


class TokenService:
    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def check_configuration(self) -> None:
        """Raise ConfigError unless every signing secret is present."""
        for kind in (TOKEN_KIND_ACCESS, TOKEN_KIND_REFRESH, TOKEN_KIND_VERIFICATION):
            self._secret(kind)

    def _secret(self, kind: str) -> str:
        secret = {
            TOKEN_KIND_ACCESS: self._settings.access_token_secret,
            TOKEN_KIND_REFRESH: self._settings.refresh_token_secret,
            TOKEN_KIND_VERIFICATION: self._settings.verification_token_secret,
        }[kind]
        if not secret:
            raise ConfigError(f"Missing required secret {kind.upper()}_TOKEN_SECRET")
        return secret

    def _ttl(self, kind: str) -> int:
        return {
            TOKEN_KIND_ACCESS: self._settings.access_token_ttl_seconds,
            TOKEN_KIND_REFRESH: self._settings.refresh_token_ttl_seconds,
            TOKEN_KIND_VERIFICATION: self._settings.verification_token_ttl_seconds,
        }[kind]

    def _sign(self, kind: str, subject: str, extra: Optional[dict] = None) -> str:
        secret = self._secret(kind)
        now = datetime.now(timezone.utc)
        claims: dict[str, Any] = dict(extra or {})
        claims.update(
            {
                "iss": self._settings.jwt_issuer,
                "aud": self._settings.jwt_audience,
                "sub": str(subject),
                "type": kind,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=self._ttl(kind))).timestamp()),
            }
        )
        return jwt.encode(claims, secret, algorithm=_ALGORITHM)

    def _verify(self, kind: str, token: Optional[str]) -> Optional[dict]:
        secret = self._secret(kind)
        if not token or not isinstance(token, str):
            return None
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError:
            return None
        if claims.get("type") != kind:
            return None
        return claims

    def sign_access(self, user_id: str) -> str:
        return self._sign(TOKEN_KIND_ACCESS, user_id)

    def sign_refresh(self, user_id: str) -> str:
        return self._sign(TOKEN_KIND_REFRESH, user_id)

    def sign_verification(self, payload: dict) -> str:
        """Sign a verification-pending token.

        *payload* must identify the user as ``uid`` or ``sub``; any other
        keys (typically ``email``) are carried as extra claims.
        """
        extra = dict(payload)
        subject = extra.pop("uid", None) or extra.pop("sub", None)
        if not subject:
            raise ValueError("verification payload requires a user id")
        return self._sign(TOKEN_KIND_VERIFICATION, str(subject), extra)

    def verify_access(self, token: Optional[str]) -> Optional[dict]:
        return self._verify(TOKEN_KIND_ACCESS, token)

    def verify_refresh(self, token: Optional[str]) -> Optional[dict]:
        return self._verify(TOKEN_KIND_REFRESH, token)

    def verify_verification(self, token: Optional[str]) -> Optional[dict]:
        return self._verify(TOKEN_KIND_VERIFICATION, token)

    def rotate(self, refresh_token: Optional[str]) -> Optional[RotatedTokens]:
        """Exchange a valid refresh token for a fresh access + refresh pair.

        There is no revocation list: any structurally valid, unexpired refresh
        token is honoured.
        """
        claims = self.verify_refresh(refresh_token)
        if not claims:
            return None
        user_id = str(claims["sub"])
        log.info("tokens_rotated", user_id=user_id)
        return RotatedTokens(
            access_token=self.sign_access(user_id),
            refresh_token=self.sign_refresh(user_id),
            user_id=user_id,
        )
