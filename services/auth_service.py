"""
Auth service: registration, login, email verification and session issuance.

Orchestrates the user store, the OTP lifecycle, the token service and the
mail provider. Route handlers translate the returned results into cookies;
failures are raised as AppError subclasses.

Enumeration policy: every credential failure on login is the same 401 with
the same message, and a duplicate registration is the same 409 whether it is
caught by the pre-check or by the unique index.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    GoneError,
    NotFoundError,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.protocol import TransactionManager, UserStore
from schemas.models.otp import OtpPurpose
from schemas.models.user import UserDoc
from services.otp_service import OtpFailure, OtpService
from services.token_service import TokenService
from shared.crypto import hash_password, verify_password
from shared.logging import get_logger
from shared.validators import (
    MIN_PASSWORD_LENGTH,
    normalize_email,
    validate_email,
    validate_otp_format,
    validate_password,
)

log = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
DUPLICATE_EMAIL = "User with this email already exists"
INVALID_EMAIL_OR_CODE = "Invalid email or code"
PASSWORD_RESET_SENT = "If the email exists, a reset code has been sent"


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RegisterResult:
    message: str
    verification_token: str


@dataclass(frozen=True)
class LoginResult:
    message: str
    success: Optional[bool] = None
    reason: Optional[str] = None
    session: Optional[SessionTokens] = None
    verification_token: Optional[str] = None


@dataclass(frozen=True)
class VerifyResult:
    user: UserDoc
    session: SessionTokens


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    # Set when the access token was unusable and the refresh token rotated
    rotated: Optional[SessionTokens] = None


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password("ecolens-timing-equaliser")


def otp_failure_error(reason: Optional[OtpFailure]) -> AppError:
    """Map an OTP check failure onto the HTTP error the user can act on."""
    if reason is OtpFailure.EXPIRED:
        return GoneError("OTP expired", reason=OtpFailure.EXPIRED.value)
    if reason is OtpFailure.INVALID:
        return AuthenticationError("Incorrect OTP", reason=OtpFailure.INVALID.value)
    if reason is OtpFailure.TOO_MANY_ATTEMPTS:
        return RateLimitError(
            "Too many attempts. A new OTP is required.",
            reason=OtpFailure.TOO_MANY_ATTEMPTS.value,
        )
    if reason is OtpFailure.NO_OTP:
        return ValidationError("No OTP issued for this user", reason=OtpFailure.NO_OTP.value)
    return ValidationError("OTP verification failed", reason="failed")


class AuthService:
    def __init__(
        self,
        users: UserStore,
        otps: OtpService,
        tokens: TokenService,
        email: EmailProvider,
        transactions: TransactionManager,
    ) -> None:
        self._users = users
        self._otps = otps
        self._tokens = tokens
        self._email = email
        self._tx = transactions

    @property
    def _expiry_minutes(self) -> int:
        return max(1, self._otps.ttl_seconds // 60)

    def _issue_session(self, user_id: Any) -> SessionTokens:
        return SessionTokens(
            access_token=self._tokens.sign_access(str(user_id)),
            refresh_token=self._tokens.sign_refresh(str(user_id)),
        )

    def _verification_token(self, user: UserDoc) -> str:
        return self._tokens.sign_verification({"uid": str(user.id), "email": user.email})

    # ── Registration ─────────────────────────────────────────────────────────

    async def register(self, name: Any, email: Any, password: Any) -> RegisterResult:
        if not name or not email or not password:
            raise ValidationError("All fields are required", reason="missing_fields")
        if not all(isinstance(v, str) for v in (name, email, password)):
            raise ValidationError("Credentials must be strings", reason="invalid_types")

        email = normalize_email(email)
        name = name.strip()
        if not name:
            raise ValidationError("All fields are required", reason="missing_fields")
        if not validate_email(email):
            raise ValidationError("Invalid email address", field="email")
        if not validate_password(password):
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        # Hash before the duplicate check so both outcomes take the same time
        password_hash = hash_password(password)
        now = datetime.now(timezone.utc)
        user = UserDoc(
            name=name,
            email=email,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

        try:
            async with self._tx.transaction() as session:
                if await self._users.find_by_email(email, session=session) is not None:
                    log.warning("registration_failed", reason="email_exists")
                    raise ConflictError(DUPLICATE_EMAIL)
                user.id = await self._users.insert(user, session=session)
                await self._otps.clear_for_user(user.id, session=session)
                otp_code = await self._otps.create_for_user(
                    user.id, OtpPurpose.EMAIL_VERIFICATION, session=session
                )
        except DuplicateKeyError:
            log.warning("registration_failed", reason="race_condition_duplicate")
            raise ConflictError(DUPLICATE_EMAIL)

        verification_token = self._verification_token(user)

        try:
            await self._email.send_verification_email(
                email, name, otp_code, self._expiry_minutes
            )
        except UpstreamError:
            # The transaction has committed; undo by hand
            await self._compensate_registration(user.id)
            raise UpstreamError("Failed to send verification email", reason="mail_failed")

        log.info("user_registered", user_id=str(user.id))
        return RegisterResult(
            message=f"Account created. Verification code sent to {email}",
            verification_token=verification_token,
        )

    async def _compensate_registration(self, user_id: ObjectId) -> None:
        """Best-effort removal of a user whose verification mail never left.

        Not a rollback: another request may already have observed the user.
        Both deletes are attempted even when one fails.
        """
        results = await asyncio.gather(
            self._users.delete(user_id),
            self._otps.clear_for_user(user_id),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            log.error(
                "registration_compensation_incomplete",
                user_id=str(user_id),
                errors=[f"{type(e).__name__}: {e}" for e in failures],
            )
        else:
            log.warning("registration_compensated", user_id=str(user_id))

    # ── Login ────────────────────────────────────────────────────────────────

    async def login(self, email: Any, password: Any) -> LoginResult:
        if (
            not isinstance(email, str)
            or not isinstance(password, str)
            or not email
            or not password
        ):
            raise AuthenticationError(INVALID_CREDENTIALS)

        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            # Burn the same argon2 cost as a real check
            verify_password(password, _dummy_password_hash())
            log.warning("login_failed", reason="invalid_credentials", email_exists=False)
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            log.warning("login_failed", reason="invalid_password", user_id=str(user.id))
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not user.is_verified:
            return await self._login_unverified(user)

        session = self._issue_session(user.id)
        await self._users.append_token(user.id, session.access_token)
        log.info("login_success", user_id=str(user.id))
        return LoginResult(message="Login successful", success=True, session=session)

    async def _login_unverified(self, user: UserDoc) -> LoginResult:
        pending = await self._otps.find_pending(user.id, OtpPurpose.EMAIL_VERIFICATION)
        if pending is not None:
            log.info("login_pending_verification", user_id=str(user.id))
            return LoginResult(
                message="Please verify your email", reason="pending_verification"
            )

        try:
            otp_code = await self._otps.create_for_user(
                user.id, OtpPurpose.EMAIL_VERIFICATION
            )
            await self._email.send_verification_email(
                user.email, user.name, otp_code, self._expiry_minutes
            )
        except UpstreamError:
            await self._otps.clear_for_user(user.id, OtpPurpose.EMAIL_VERIFICATION)
            log.error("login_otp_send_failed", user_id=str(user.id))
            raise UpstreamError("Failed to send verification email", reason="otp_failed")

        log.info("login_otp_sent", user_id=str(user.id))
        return LoginResult(
            message="Verification code sent to your email",
            reason="otp_sent",
            verification_token=self._verification_token(user),
        )

    # ── Verification ─────────────────────────────────────────────────────────

    async def verify(
        self,
        otp: Any,
        email: Any = None,
        verification_token: Optional[str] = None,
    ) -> VerifyResult:
        """Confirm an email-verification code and open a session.

        The cookie-bound identity is preferred. The email-in-body fallback is
        weaker (anyone who knows the address may guess codes, bounded by the
        attempt cap) and is kept for clients that lost the cookie.
        """
        length = self._otps.code_length
        code = validate_otp_format(otp, length)
        if code is None:
            raise ValidationError(
                f"OTP is required and must be a {length}-digit string",
                reason="invalid_otp_format",
            )

        if verification_token:
            claims = self._tokens.verify_verification(verification_token)
            if not claims:
                raise AuthenticationError(
                    "Invalid verification token", reason="invalid_verification_token"
                )
            user = await self._users.find_by_id(claims["sub"])
        elif isinstance(email, str) and email.strip():
            user = await self._users.find_by_email(normalize_email(email))
        else:
            raise ValidationError(
                "No verification token or email provided", reason="missing_identifier"
            )

        if user is None:
            raise NotFoundError("User not found", reason="user_not_found")

        check = await self._otps.verify_for_user(
            user.id, code, OtpPurpose.EMAIL_VERIFICATION
        )
        if not check.ok:
            raise otp_failure_error(check.reason)

        if not user.is_verified:
            await self._users.mark_verified(user.id)
            user.is_verified = True
        await self._otps.clear_for_user(user.id, OtpPurpose.EMAIL_VERIFICATION)

        log.info("email_verified", user_id=str(user.id))
        return VerifyResult(user=user, session=self._issue_session(user.id))

    # ── Session ──────────────────────────────────────────────────────────────

    def refresh(self, refresh_token: Optional[str]) -> SessionTokens:
        rotated = self._tokens.rotate(refresh_token)
        if rotated is None:
            log.warning("token_refresh_failed", reason="expired_or_invalid")
            raise AuthenticationError("Invalid or expired refresh token")
        return SessionTokens(rotated.access_token, rotated.refresh_token)

    def current_user(
        self, access_token: Optional[str], refresh_token: Optional[str]
    ) -> Optional[CurrentUser]:
        """Resolve the caller from cookies, rotating once if the access token is dead."""
        if access_token:
            claims = self._tokens.verify_access(access_token)
            if claims:
                return CurrentUser(user_id=str(claims["sub"]))

        if refresh_token:
            rotated = self._tokens.rotate(refresh_token)
            if rotated is not None:
                return CurrentUser(
                    user_id=rotated.user_id,
                    rotated=SessionTokens(rotated.access_token, rotated.refresh_token),
                )

        return None

    # ── Password reset ───────────────────────────────────────────────────────

    async def request_password_reset(self, email: Any) -> str:
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("Email is required", field="email")

        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            log.warning("password_reset_requested_nonexistent")
            return PASSWORD_RESET_SENT

        try:
            otp_code = await self._otps.create_for_user(user.id, OtpPurpose.PASSWORD_RESET)
            await self._email.send_password_reset_email(
                user.email, user.name, otp_code, self._expiry_minutes
            )
        except UpstreamError:
            # Same answer either way; the user can simply ask again
            await self._otps.clear_for_user(user.id, OtpPurpose.PASSWORD_RESET)
            log.error("password_reset_email_send_failed", user_id=str(user.id))
            return PASSWORD_RESET_SENT

        log.info("password_reset_email_sent", user_id=str(user.id))
        return PASSWORD_RESET_SENT

    async def reset_password(self, email: Any, otp: Any, password: Any) -> str:
        length = self._otps.code_length
        code = validate_otp_format(otp, length)
        if code is None:
            raise ValidationError(
                f"OTP is required and must be a {length}-digit string",
                reason="invalid_otp_format",
            )
        if not isinstance(password, str) or not validate_password(password):
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )
        if not isinstance(email, str) or not email.strip():
            raise ValidationError(INVALID_EMAIL_OR_CODE, reason="invalid_email_or_code")

        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            raise ValidationError(INVALID_EMAIL_OR_CODE, reason="invalid_email_or_code")

        check = await self._otps.verify_for_user(user.id, code, OtpPurpose.PASSWORD_RESET)
        if not check.ok:
            raise otp_failure_error(check.reason)

        await self._users.set_password_hash(user.id, hash_password(password))
        await self._otps.clear_for_user(user.id, OtpPurpose.PASSWORD_RESET)
        log.info("password_reset_success", user_id=str(user.id))
        return "Password reset successfully"
