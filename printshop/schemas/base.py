"""
Base Pydantic schemas with common patterns.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(from_attributes=True, validate_assignment=True, use_enum_values=True)


class BaseResponseSchema(BaseSchema):
    """Schema for ORM-backed responses."""

    id: int
    created_at: datetime
