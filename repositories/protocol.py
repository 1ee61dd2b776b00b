"""Storage protocols: services depend on these, not on pymongo.

`session` arguments are opaque to the services: the MongoDB implementations
pass them through to pymongo so writes join the caller's transaction, and
in-memory fakes ignore them.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Optional, Protocol

from bson import ObjectId

from schemas.models.otp import OtpDoc, OtpPurpose
from schemas.models.user import UserDoc


class OtpStore(Protocol):
    async def find(
        self, user_id: ObjectId, purpose: OtpPurpose, *, session: Any = None
    ) -> Optional[OtpDoc]: ...

    async def upsert(
        self,
        user_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        expires_at: datetime,
        *,
        session: Any = None,
    ) -> OtpDoc: ...

    async def record_failure(
        self, otp_id: ObjectId, max_attempts: int
    ) -> Optional[int]: ...

    async def consume(
        self, otp_id: ObjectId, code_hash: str, max_attempts: int, now: datetime
    ) -> bool: ...

    async def delete(self, otp_id: ObjectId) -> None: ...

    async def delete_many(
        self,
        user_id: ObjectId,
        purpose: Optional[OtpPurpose] = None,
        *,
        session: Any = None,
    ) -> int: ...


class UserStore(Protocol):
    async def find_by_email(
        self, email: str, *, session: Any = None
    ) -> Optional[UserDoc]: ...

    async def find_by_id(self, user_id: Any) -> Optional[UserDoc]: ...

    async def insert(self, user: UserDoc, *, session: Any = None) -> ObjectId: ...

    async def mark_verified(self, user_id: ObjectId) -> None: ...

    async def append_token(self, user_id: ObjectId, token: str) -> None: ...

    async def set_password_hash(self, user_id: ObjectId, password_hash: str) -> None: ...

    async def delete(self, user_id: ObjectId) -> None: ...


class TransactionManager(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Any]: ...
