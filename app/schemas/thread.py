"""Thread schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from app.schemas.base import BaseModelSchema, CamelSchema


class MessageResponse(BaseModelSchema):
    thread_id: str
    role: str
    status: str
    parts: list[dict[str, Any]] = Field(default_factory=list)
    usage: dict[str, Any] | None = None
    model: str | None = None
    generation_start_at: datetime | None = None
    generation_end_at: datetime | None = None


class ThreadResponse(BaseModelSchema):
    title: str | None = None
    user_set_title: bool = False
    pinned: bool = False
    generation_status: str
    branched_from_thread_id: str | None = None
    last_message_at: datetime


class ThreadDetailResponse(ThreadResponse):
    messages: list[MessageResponse] = Field(default_factory=list)


class ThreadListResponse(CamelSchema):
    threads: list[ThreadResponse]


class ThreadUpdate(CamelSchema):
    """PATCH body; at least one field must be present."""

    title: str | None = Field(default=None, min_length=1, max_length=300)
    pinned: bool | None = None
    branched_from_thread_id: str | None = None

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("No valid fields to update")
        return self


class SplitThreadRequest(CamelSchema):
    message_id: str = Field(..., min_length=1)


class SplitThreadResponse(CamelSchema):
    thread: ThreadResponse
    to: str
