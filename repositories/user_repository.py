"""
MongoDB implementation of UserStore for the `users` collection.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.base import to_object_id
from schemas.models.user import UserDoc

USER_COLLECTION = "users"


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)

    async def find_by_email(
        self, email: str, *, session: Any = None
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one({"email": email}, session=session)
        return UserDoc.from_mongo(doc)

    async def find_by_id(self, user_id: Any) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def insert(self, user: UserDoc, *, session: Any = None) -> ObjectId:
        """Insert *user*; raises pymongo DuplicateKeyError on a taken email."""
        result = await self._col.insert_one(user.to_mongo(), session=session)
        return result.inserted_id

    async def mark_verified(self, user_id: ObjectId) -> None:
        now = datetime.now(timezone.utc)
        await self._col.update_one(
            {"_id": user_id, "is_verified": False},
            {"$set": {"is_verified": True, "verified_at": now, "updated_at": now}},
        )

    async def append_token(self, user_id: ObjectId, token: str) -> None:
        now = datetime.now(timezone.utc)
        await self._col.update_one(
            {"_id": user_id},
            {
                "$push": {"tokens": {"token": token, "created_at": now}},
                "$set": {"updated_at": now},
            },
        )

    async def set_password_hash(self, user_id: ObjectId, password_hash: str) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "password_hash": password_hash,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )

    async def delete(self, user_id: ObjectId) -> None:
        await self._col.delete_one({"_id": user_id})
