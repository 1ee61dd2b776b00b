"""
Base model for MongoDB document models.

PyObjectId bridges BSON ObjectId and Pydantic v2 validation/serialization.
MongoBaseModel converts between model instances and raw pymongo dicts.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

ModelT = TypeVar("ModelT", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    """BSON ObjectId that Pydantic v2 knows how to validate and serialize."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            # str in JSON mode, ObjectId kept as-is for pymongo writes
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Coerce *value* to an ObjectId, or None when it is not a valid id."""
    try:
        return PyObjectId._validate(value)
    except ValueError:
        return None


class MongoBaseModel(BaseModel):
    """
    Base for all document models.

    Stores the MongoDB _id as `id`.

    to_mongo()  : model → dict suitable for insert (drops a None `_id`)
    from_mongo(): raw pymongo dict → model, None passes through
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        data = self.model_dump(by_alias=True, exclude_none=False)
        # Let MongoDB generate _id on insert
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: type[ModelT], data: Optional[dict]) -> Optional[ModelT]:
        if data is None:
            return None
        return cls.model_validate(data)
