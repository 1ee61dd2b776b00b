"""Unit tests for the MongoDB repositories against a mocked AsyncCollection."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from repositories.otp_repository import OtpRepository
from repositories.user_repository import UserRepository
from schemas.models.otp import OtpPurpose
from schemas.models.user import UserDoc


def _otp_doc(user_id, **overrides):
    doc = {
        "_id": ObjectId(),
        "user_id": user_id,
        "type": "email_verification",
        "code_hash": "ab" * 32,
        "expires_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
        "attempts": 0,
    }
    doc.update(overrides)
    return doc


class TestOtpRepository:
    async def test_ensure_indexes(self):
        col = AsyncMock()
        await OtpRepository(col).ensure_indexes()
        unique_call, ttl_call = col.create_index.await_args_list
        assert unique_call.args[0] == [("user_id", 1), ("type", 1)]
        assert unique_call.kwargs["unique"] is True
        assert ttl_call.kwargs["expireAfterSeconds"] == 0

    async def test_upsert_is_single_atomic_write(self):
        uid = ObjectId()
        col = AsyncMock()
        col.find_one_and_update.return_value = _otp_doc(uid)
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)

        doc = await OtpRepository(col).upsert(
            uid, OtpPurpose.EMAIL_VERIFICATION, "ab" * 32, expires
        )

        assert doc.user_id == uid
        call = col.find_one_and_update.await_args
        assert call.args[0] == {"user_id": uid, "type": "email_verification"}
        assert call.args[1] == {
            "$set": {"code_hash": "ab" * 32, "expires_at": expires, "attempts": 0}
        }
        assert call.kwargs["upsert"] is True
        assert call.kwargs["return_document"] is ReturnDocument.AFTER

    async def test_upsert_retries_once_on_duplicate_key(self):
        uid = ObjectId()
        col = AsyncMock()
        col.find_one_and_update.side_effect = [
            DuplicateKeyError("E11000"),
            _otp_doc(uid),
        ]
        await OtpRepository(col).upsert(
            uid, OtpPurpose.EMAIL_VERIFICATION, "x", datetime.now(timezone.utc)
        )
        assert col.find_one_and_update.await_count == 2

    async def test_find_returns_none_when_absent(self):
        col = AsyncMock()
        col.find_one.return_value = None
        assert await OtpRepository(col).find(ObjectId(), OtpPurpose.PASSWORD_RESET) is None

    async def test_record_failure_is_capped_increment(self):
        col = AsyncMock()
        otp_id = ObjectId()
        col.find_one_and_update.return_value = {"_id": otp_id, "attempts": 4}

        assert await OtpRepository(col).record_failure(otp_id, 10) == 4
        query, update = col.find_one_and_update.await_args.args
        assert query == {"_id": otp_id, "attempts": {"$lt": 10}}
        assert update == {"$inc": {"attempts": 1}}

    async def test_record_failure_at_cap_returns_none(self):
        col = AsyncMock()
        col.find_one_and_update.return_value = None
        assert await OtpRepository(col).record_failure(ObjectId(), 10) is None

    @pytest.mark.parametrize(
        "deleted, expected", [({"_id": "x"}, True), (None, False)], ids=["won", "lost"]
    )
    async def test_consume_is_conditional_delete(self, deleted, expected):
        col = AsyncMock()
        col.find_one_and_delete.return_value = deleted
        otp_id = ObjectId()
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)

        assert await OtpRepository(col).consume(otp_id, "ab" * 32, 10, now) is expected
        col.find_one_and_delete.assert_awaited_once_with(
            {
                "_id": otp_id,
                "code_hash": "ab" * 32,
                "attempts": {"$lt": 10},
                "expires_at": {"$gt": now},
            }
        )

    @pytest.mark.parametrize(
        "purpose, expected",
        [(None, {}), (OtpPurpose.PASSWORD_RESET, {"type": "password_reset"})],
        ids=["all_purposes", "one_purpose"],
    )
    async def test_delete_many_filter(self, purpose, expected):
        uid = ObjectId()
        col = AsyncMock()
        col.delete_many.return_value = MagicMock(deleted_count=2)
        deleted = await OtpRepository(col).delete_many(uid, purpose)
        assert deleted == 2
        assert col.delete_many.await_args.args[0] == {"user_id": uid, **expected}


class TestUserRepository:
    async def test_insert_drops_none_id(self):
        col = AsyncMock()
        new_id = ObjectId()
        col.insert_one.return_value = MagicMock(inserted_id=new_id)
        user = UserDoc(name="A", email="a@b.co", password_hash="h")

        assert await UserRepository(col).insert(user) == new_id
        inserted = col.insert_one.await_args.args[0]
        assert "_id" not in inserted
        assert inserted["is_verified"] is False

    async def test_find_by_id_rejects_bad_id_without_query(self):
        col = AsyncMock()
        assert await UserRepository(col).find_by_id("not-an-id") is None
        col.find_one.assert_not_awaited()

    async def test_mark_verified_only_touches_unverified(self):
        col = AsyncMock()
        uid = ObjectId()
        await UserRepository(col).mark_verified(uid)
        query, update = col.update_one.await_args.args
        assert query == {"_id": uid, "is_verified": False}
        assert update["$set"]["is_verified"] is True

    async def test_append_token_pushes(self):
        col = AsyncMock()
        uid = ObjectId()
        await UserRepository(col).append_token(uid, "tok")
        _, update = col.update_one.await_args.args
        assert update["$push"]["tokens"]["token"] == "tok"
