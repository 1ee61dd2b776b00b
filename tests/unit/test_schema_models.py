"""Unit tests for MongoDB document models and request/response DTOs."""

import json
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from schemas.dto.requests.predict import PredictRequest
from schemas.dto.responses.auth import LoginResponse
from schemas.models.base import MongoBaseModel, PyObjectId, to_object_id
from schemas.models.otp import OtpDoc, OtpPurpose
from schemas.models.user import UserDoc


# ── Helpers ───────────────────────────────────────────────────────────────────

def now():
    return datetime.now(timezone.utc)


def oid():
    return ObjectId()


# ── PyObjectId ────────────────────────────────────────────────────────────────

class TestPyObjectId:
    def test_accepts_objectid_instance(self):
        o = oid()
        assert PyObjectId._validate(o) == o

    def test_accepts_valid_string(self):
        s = str(oid())
        result = PyObjectId._validate(s)
        assert isinstance(result, ObjectId)
        assert str(result) == s

    def test_rejects_invalid_string(self):
        with pytest.raises(ValueError):
            PyObjectId._validate("not-an-objectid")

    @pytest.mark.parametrize("value", [None, "nope", 42])
    def test_to_object_id_is_lenient(self, value):
        assert to_object_id(value) is None


# ── MongoBaseModel ─────────────────────────────────────────────────────────────

class TestMongoBaseModel:
    def test_from_mongo_returns_none_for_none(self):
        assert MongoBaseModel.from_mongo(None) is None

    def test_to_mongo_drops_none_id(self):
        assert "_id" not in MongoBaseModel().to_mongo()

    def test_to_mongo_keeps_set_id(self):
        o = oid()
        assert MongoBaseModel.model_validate({"_id": o}).to_mongo()["_id"] == o


# ── UserDoc ───────────────────────────────────────────────────────────────────

class TestUserDoc:
    def test_defaults(self):
        user = UserDoc(name="Alice", email="a@b.co", password_hash="$argon2id$...")
        assert user.is_verified is False
        assert user.verified_at is None
        assert user.tokens == []

    def test_tokens_not_shared_between_instances(self):
        a = UserDoc(name="A", email="a@b.co", password_hash="h")
        b = UserDoc(name="B", email="b@b.co", password_hash="h")
        a.tokens.append({"token": "t", "created_at": now()})
        assert b.tokens == []

    def test_json_dump_stringifies_id(self):
        o = oid()
        user = UserDoc.model_validate(
            {"_id": o, "name": "A", "email": "a@b.co", "password_hash": "h"}
        )
        assert json.loads(user.model_dump_json(by_alias=True))["_id"] == str(o)


# ── OtpDoc ────────────────────────────────────────────────────────────────────

class TestOtpDoc:
    def test_from_mongo(self):
        uid = oid()
        doc = OtpDoc.from_mongo(
            {
                "_id": oid(),
                "user_id": uid,
                "type": "password_reset",
                "code_hash": "ab" * 32,
                "expires_at": now(),
                "attempts": 2,
            }
        )
        assert doc.user_id == uid
        assert doc.type is OtpPurpose.PASSWORD_RESET
        assert doc.attempts == 2

    def test_negative_attempts_rejected(self):
        with pytest.raises(ValidationError):
            OtpDoc(user_id=oid(), code_hash="x", expires_at=now(), attempts=-1)

    def test_to_mongo_keeps_object_ids(self):
        uid = oid()
        data = OtpDoc(user_id=uid, code_hash="x", expires_at=now()).to_mongo()
        assert data["user_id"] == uid
        assert isinstance(data["user_id"], ObjectId)


# ── DTOs ──────────────────────────────────────────────────────────────────────

class TestDtos:
    def test_predict_request_alias(self):
        assert PredictRequest.model_validate({"dataUrl": "data:x"}).data_url == "data:x"

    def test_predict_request_missing_is_none(self):
        assert PredictRequest.model_validate({}).data_url is None

    def test_login_response_omits_unset(self):
        dumped = LoginResponse(message="ok", success=True).model_dump(exclude_none=True)
        assert dumped == {"message": "ok", "success": True}

    def test_login_response_rejects_unknown_reason(self):
        with pytest.raises(ValidationError):
            LoginResponse(message="x", reason="something_else")
