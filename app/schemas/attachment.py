"""Attachment schemas."""

from datetime import datetime

from pydantic import Field

from app.schemas.base import CamelSchema


class AttachmentResponse(CamelSchema):
    id: str
    file_name: str
    mime_type: str | None = None
    file_size: int | None = None
    attachment_type: str
    status: str
    url: str
    created_at: datetime


class AttachmentDetailsRequest(CamelSchema):
    attachment_ids: list[str] = Field(default_factory=list, max_length=100)


class AttachmentDetailsResponse(CamelSchema):
    attachments: list[AttachmentResponse]


class MessageAttachmentsResponse(CamelSchema):
    attachment_ids: list[str]
