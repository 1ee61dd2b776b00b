"""
MongoDB implementation of OtpStore for the `otps` collection.

Indexes:
- unique (user_id, type): at most one live code per purpose
- TTL on expires_at (expireAfterSeconds=0): background sweep of dead codes
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from schemas.models.otp import OtpDoc, OtpPurpose
from shared.logging import get_logger

log = get_logger(__name__)

OTP_COLLECTION = "otps"


class OtpRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("user_id", ASCENDING), ("type", ASCENDING)],
            unique=True,
            name="user_type_unique",
        )
        await self._col.create_index(
            [("expires_at", ASCENDING)], expireAfterSeconds=0, name="expires_at_ttl"
        )

    async def find(
        self, user_id: ObjectId, purpose: OtpPurpose, *, session: Any = None
    ) -> Optional[OtpDoc]:
        doc = await self._col.find_one(
            {"user_id": user_id, "type": purpose.value}, session=session
        )
        return OtpDoc.from_mongo(doc)

    async def upsert(
        self,
        user_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        expires_at: datetime,
        *,
        session: Any = None,
    ) -> OtpDoc:
        """Create or replace the code for (user_id, purpose) in one write.

        The server retries equality-predicate upserts that lose a race on the
        unique index; one client-side retry covers older deployments.
        """
        query = {"user_id": user_id, "type": purpose.value}
        update = {
            "$set": {"code_hash": code_hash, "expires_at": expires_at, "attempts": 0}
        }
        try:
            doc = await self._col.find_one_and_update(
                query,
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
                session=session,
            )
        except DuplicateKeyError:
            log.warning("otp_upsert_race_retry", user_id=str(user_id), purpose=purpose.value)
            doc = await self._col.find_one_and_update(
                query,
                update,
                upsert=True,
                return_document=ReturnDocument.AFTER,
                session=session,
            )
        return OtpDoc.model_validate(doc)

    async def record_failure(self, otp_id: ObjectId, max_attempts: int) -> Optional[int]:
        """Count one wrong guess unless the cap is already reached.

        Returns the new attempt count, or None when nothing matched.
        """
        doc = await self._col.find_one_and_update(
            {"_id": otp_id, "attempts": {"$lt": max_attempts}},
            {"$inc": {"attempts": 1}},
            projection={"attempts": 1},
            return_document=ReturnDocument.AFTER,
        )
        return doc["attempts"] if doc else None

    async def consume(
        self, otp_id: ObjectId, code_hash: str, max_attempts: int, now: datetime
    ) -> bool:
        """Delete the record only if it is still live, unchanged and under the cap."""
        doc = await self._col.find_one_and_delete(
            {
                "_id": otp_id,
                "code_hash": code_hash,
                "attempts": {"$lt": max_attempts},
                "expires_at": {"$gt": now},
            }
        )
        return doc is not None

    async def delete(self, otp_id: ObjectId) -> None:
        await self._col.delete_one({"_id": otp_id})

    async def delete_many(
        self,
        user_id: ObjectId,
        purpose: Optional[OtpPurpose] = None,
        *,
        session: Any = None,
    ) -> int:
        query: dict[str, Any] = {"user_id": user_id}
        if purpose is not None:
            query["type"] = purpose.value
        result = await self._col.delete_many(query, session=session)
        return result.deleted_count
