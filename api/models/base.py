# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what pymongo returns for stored dates."""
    return datetime.utcnow()


class CamelModel(BaseModel):
    """Model stored with camelCase field names and exposed with snake_case attributes."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
        alias_generator=to_camel
    )


class BaseEntity(CamelModel):
    """Base entity with common fields for all stored workflow records."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")
    version: int = Field(default=0, description="Optimistic concurrency counter")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a stored document (``_id`` or ``id``)."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Dump the entity as a storable camelCase document keyed by ``_id``."""
        document = self.model_dump(by_alias=True)
        document["_id"] = document.pop("id")
        return document
