"""
One-time code document model.

Maps to the `otps` MongoDB collection.

One record per (user_id, type): a unique compound index backs the invariant
and creation is an upsert. code_hash stores SHA-256(code); the plain code is
never stored. attempts counts failed checks against this record.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from schemas.models.base import MongoBaseModel, PyObjectId


class OtpPurpose(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OtpDoc(MongoBaseModel):
    """Document model for the `otps` collection."""

    user_id: PyObjectId
    type: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION
    code_hash: str
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
