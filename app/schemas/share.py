"""Share schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from app.schemas.base import CamelSchema


class ShareCreateRequest(CamelSchema):
    name: str | None = Field(default=None, max_length=100)


class ShareResponse(CamelSchema):
    share_id: str
    share_url: str
    name: str | None = None
    message_count: int


class ShareInfoResponse(CamelSchema):
    has_share: bool
    share_id: str | None = None
    share_url: str | None = None
    name: str | None = None
    message_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SharedThreadInfo(CamelSchema):
    id: str
    title: str | None = None
    created_at: datetime


class SharedMessageResponse(CamelSchema):
    id: str
    role: str
    parts: list[dict[str, Any]] = Field(default_factory=list)
    usage: dict[str, Any] | None = None
    model: str | None = None
    generation_start_at: datetime | None = None
    generation_end_at: datetime | None = None
    created_at: datetime


class SharedChatResponse(CamelSchema):
    share_id: str
    name: str | None = None
    thread: SharedThreadInfo
    messages: list[SharedMessageResponse]
    created_at: datetime
    updated_at: datetime


class CreateChatFromShareResponse(CamelSchema):
    thread_id: str
    thread_url: str
    title: str | None = None
    message_count: int
