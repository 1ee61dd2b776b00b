"""
User document model.

Maps to the `users` MongoDB collection. `email` is stored normalised
(trimmed, lower-case) and carries a unique index.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from schemas.models.base import MongoBaseModel


class IssuedToken(BaseModel):
    """Audit entry for an access token handed out at login."""

    token: str
    created_at: datetime


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    name: str
    email: str
    password_hash: str
    is_verified: bool = False
    verified_at: Optional[datetime] = None
    tokens: list[IssuedToken] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
