"""
Shared test fixtures.

In-memory implementations of the store protocols so services and routes can
be exercised without MongoDB, plus a recording email provider and a
controllable clock.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from config import JWTSettings, OtpSettings
from errors import UpstreamError
from schemas.models.otp import OtpDoc, OtpPurpose
from schemas.models.user import IssuedToken, UserDoc
from services.auth_service import AuthService
from services.otp_service import OtpService
from services.token_service import TokenService


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeOtpStore:
    """Dict keyed by (user_id, type); every method is a single atomic step."""

    def __init__(self) -> None:
        self.records: dict[tuple[ObjectId, str], OtpDoc] = {}

    def _by_id(self, otp_id: ObjectId) -> Optional[tuple[ObjectId, str]]:
        for key, doc in self.records.items():
            if doc.id == otp_id:
                return key
        return None

    async def find(self, user_id, purpose, *, session=None):
        doc = self.records.get((user_id, purpose.value))
        return doc.model_copy() if doc else None

    async def upsert(self, user_id, purpose, code_hash, expires_at, *, session=None):
        key = (user_id, purpose.value)
        existing = self.records.get(key)
        doc = OtpDoc(
            _id=existing.id if existing else ObjectId(),
            user_id=user_id,
            type=purpose,
            code_hash=code_hash,
            expires_at=expires_at,
            attempts=0,
        )
        self.records[key] = doc
        return doc.model_copy()

    async def record_failure(self, otp_id, max_attempts):
        key = self._by_id(otp_id)
        if key is None or self.records[key].attempts >= max_attempts:
            return None
        self.records[key].attempts += 1
        return self.records[key].attempts

    async def consume(self, otp_id, code_hash, max_attempts, now):
        key = self._by_id(otp_id)
        if key is None:
            return False
        doc = self.records[key]
        if (
            doc.code_hash != code_hash
            or doc.attempts >= max_attempts
            or doc.expires_at <= now
        ):
            return False
        del self.records[key]
        return True

    async def delete(self, otp_id):
        key = self._by_id(otp_id)
        if key is not None:
            del self.records[key]

    async def delete_many(self, user_id, purpose=None, *, session=None):
        doomed = [
            key
            for key in self.records
            if key[0] == user_id and (purpose is None or key[1] == purpose.value)
        ]
        for key in doomed:
            del self.records[key]
        return len(doomed)

    def get(self, user_id, purpose=OtpPurpose.EMAIL_VERIFICATION) -> Optional[OtpDoc]:
        return self.records.get((user_id, purpose.value))


class FakeUserStore:
    def __init__(self) -> None:
        self.users: dict[ObjectId, UserDoc] = {}

    async def find_by_email(self, email, *, session=None):
        for user in self.users.values():
            if user.email == email:
                return user.model_copy(deep=True)
        return None

    async def find_by_id(self, user_id):
        if not ObjectId.is_valid(str(user_id)):
            return None
        user = self.users.get(ObjectId(str(user_id)))
        return user.model_copy(deep=True) if user else None

    async def insert(self, user, *, session=None):
        if any(u.email == user.email for u in self.users.values()):
            raise DuplicateKeyError("E11000 duplicate key error: email")
        oid = ObjectId()
        self.users[oid] = user.model_copy(update={"id": oid}, deep=True)
        return oid

    async def mark_verified(self, user_id):
        user = self.users[user_id]
        user.is_verified = True
        user.verified_at = datetime.now(timezone.utc)

    async def append_token(self, user_id, token):
        self.users[user_id].tokens.append(
            IssuedToken(token=token, created_at=datetime.now(timezone.utc))
        )

    async def set_password_hash(self, user_id, password_hash):
        self.users[user_id].password_hash = password_hash

    async def delete(self, user_id):
        self.users.pop(user_id, None)

    def by_email(self, email: str) -> Optional[UserDoc]:
        return next((u for u in self.users.values() if u.email == email), None)


class FakeTransactionManager:
    def __init__(self) -> None:
        self.entered = 0

    @asynccontextmanager
    async def transaction(self):
        self.entered += 1
        yield None


class RecordingEmailProvider:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    def _record(self, kind: str, email: str, user_name, otp_code: str, expiry_minutes: int):
        if self.fail:
            raise UpstreamError("Failed to send email after 3 attempts", reason="mail_failed")
        self.sent.append(
            {
                "kind": kind,
                "email": email,
                "user_name": user_name,
                "otp_code": otp_code,
                "expiry_minutes": expiry_minutes,
            }
        )

    async def send_verification_email(self, email, user_name, otp_code, expiry_minutes):
        self._record("verification", email, user_name, otp_code, expiry_minutes)

    async def send_password_reset_email(self, email, user_name, otp_code, expiry_minutes):
        self._record("password_reset", email, user_name, otp_code, expiry_minutes)

    def last_code(self) -> str:
        return self.sent[-1]["otp_code"]


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def jwt_settings() -> JWTSettings:
    return JWTSettings(
        access_token_secret="a" * 32,
        refresh_token_secret="r" * 32,
        verification_token_secret="v" * 32,
    )


@pytest.fixture
def otp_settings() -> OtpSettings:
    return OtpSettings(otp_ttl_seconds=3600, otp_length=6, otp_max_attempts=10)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def otp_store() -> FakeOtpStore:
    return FakeOtpStore()


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def transactions() -> FakeTransactionManager:
    return FakeTransactionManager()


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def token_service(jwt_settings) -> TokenService:
    return TokenService(jwt_settings)


@pytest.fixture
def otp_service(otp_store, otp_settings, clock) -> OtpService:
    return OtpService(otp_store, otp_settings, clock=clock)


@pytest.fixture
def auth_service(
    user_store, otp_service, token_service, email_provider, transactions
) -> AuthService:
    return AuthService(
        users=user_store,
        otps=otp_service,
        tokens=token_service,
        email=email_provider,
        transactions=transactions,
    )
