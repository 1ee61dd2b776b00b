"""
OTP lifecycle: issue, check and clear one-time codes.

State per (user, purpose):

    absent ──create──▶ active ──correct code──▶ consumed (deleted)
                         │  ▲
              wrong code │  │ attempts += 1
                         ▼  │
                       active
                         │
                         ├── now >= expires_at ──▶ expired (deleted)
                         └── attempts >= max   ──▶ too_many_attempts (deleted)

Checks run in a fixed order (expiry, then attempts, then the hash) so an
expired-and-exhausted record always reports ``expired``.

The service only talks to an OtpStore. Uniqueness, atomic upsert and the
conditional consume/count writes are the store's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

from bson import ObjectId

from config import OtpSettings
from repositories.protocol import OtpStore
from schemas.models.otp import OtpDoc, OtpPurpose
from shared.crypto import hash_otp, otp_matches
from shared.generators import generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)


class OtpFailure(str, Enum):
    NO_OTP = "no_otp"
    EXPIRED = "expired"
    INVALID = "invalid"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


@dataclass(frozen=True)
class OtpCheck:
    ok: bool
    reason: Optional[OtpFailure] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes unless tz_aware=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpService:
    def __init__(
        self,
        store: OtpStore,
        settings: OtpSettings,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._now = clock or _utcnow

    @property
    def code_length(self) -> int:
        return self._settings.otp_length

    @property
    def ttl_seconds(self) -> int:
        return self._settings.otp_ttl_seconds

    async def create_for_user(
        self,
        user_id: ObjectId,
        purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION,
        *,
        ttl_seconds: Optional[int] = None,
        length: Optional[int] = None,
        session: Any = None,
    ) -> str:
        """Issue a fresh code for (user_id, purpose) and return it in plaintext.

        Any previous code for the same purpose is replaced and its attempt
        counter reset.
        """
        code = generate_otp_code(length or self._settings.otp_length)
        ttl = ttl_seconds if ttl_seconds is not None else self._settings.otp_ttl_seconds
        expires_at = self._now() + timedelta(seconds=ttl)

        await self._store.upsert(
            user_id, purpose, hash_otp(code), expires_at, session=session
        )
        log.info(
            "otp_issued",
            user_id=str(user_id),
            purpose=purpose.value,
            expires_at=expires_at.isoformat(),
        )
        return code

    async def verify_for_user(
        self,
        user_id: ObjectId,
        candidate: Union[str, int],
        purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION,
        *,
        max_attempts: Optional[int] = None,
    ) -> OtpCheck:
        limit = max_attempts if max_attempts is not None else self._settings.otp_max_attempts
        record = await self._store.find(user_id, purpose)

        if record is None:
            return self._fail(user_id, purpose, OtpFailure.NO_OTP)

        # The TTL sweep runs about once a minute, so check expiry explicitly
        if _as_aware(record.expires_at) <= self._now():
            await self._store.delete(record.id)
            return self._fail(user_id, purpose, OtpFailure.EXPIRED)

        if record.attempts >= limit:
            await self._store.delete(record.id)
            return self._fail(user_id, purpose, OtpFailure.TOO_MANY_ATTEMPTS)

        # A concurrent check may have changed the record since the read
        if not otp_matches(candidate, record.code_hash):
            attempts = await self._store.record_failure(record.id, limit)
            if attempts is None:
                await self._store.delete(record.id)
                return self._fail(user_id, purpose, OtpFailure.TOO_MANY_ATTEMPTS)
            return self._fail(user_id, purpose, OtpFailure.INVALID, attempts=attempts)

        if not await self._store.consume(record.id, record.code_hash, limit, self._now()):
            return await self._lost_race(user_id, purpose, limit)

        log.info("otp_verified", user_id=str(user_id), purpose=purpose.value)
        return OtpCheck(ok=True)

    async def _lost_race(
        self, user_id: ObjectId, purpose: OtpPurpose, limit: int
    ) -> OtpCheck:
        current = await self._store.find(user_id, purpose)
        if current is None:
            return self._fail(user_id, purpose, OtpFailure.NO_OTP, lost_race=True)
        if current.attempts >= limit:
            return self._fail(
                user_id, purpose, OtpFailure.TOO_MANY_ATTEMPTS, lost_race=True
            )
        if _as_aware(current.expires_at) <= self._now():
            return self._fail(user_id, purpose, OtpFailure.EXPIRED, lost_race=True)
        return self._fail(user_id, purpose, OtpFailure.INVALID, lost_race=True)

    async def clear_for_user(
        self,
        user_id: ObjectId,
        purpose: Optional[OtpPurpose] = None,
        *,
        session: Any = None,
    ) -> None:
        deleted = await self._store.delete_many(user_id, purpose, session=session)
        if deleted:
            log.debug(
                "otp_cleared",
                user_id=str(user_id),
                purpose=purpose.value if purpose else None,
                deleted=deleted,
            )

    async def find_pending(
        self,
        user_id: ObjectId,
        purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION,
    ) -> Optional[OtpDoc]:
        """Return the live code record, deleting it first if it has expired."""
        record = await self._store.find(user_id, purpose)
        if record is None:
            return None
        if _as_aware(record.expires_at) <= self._now():
            await self._store.delete(record.id)
            return None
        return record

    @staticmethod
    def _fail(
        user_id: ObjectId, purpose: OtpPurpose, reason: OtpFailure, **extra: Any
    ) -> OtpCheck:
        log.warning(
            "otp_verification_failed",
            user_id=str(user_id),
            purpose=purpose.value,
            reason=reason.value,
            **extra,
        )
        return OtpCheck(ok=False, reason=reason)
