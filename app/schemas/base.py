"""Base schemas for the application."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema class with common configuration."""
    model_config = ConfigDict(from_attributes=True)


class CamelSchema(BaseSchema):
    """Schema exchanged with the web client, camelCase on the wire."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class BaseModelSchema(CamelSchema):
    """Base schema for database models."""
    id: str
    created_at: datetime
    updated_at: datetime


class ResponseSchema(BaseSchema):
    """Standard API response schema."""
    status: str
    message: Optional[str] = None
    data: Optional[dict] = None
