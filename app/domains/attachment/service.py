"""Attachment upload, lookup and content loading."""

import base64
import logging
from pathlib import PurePath

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domains.ai.providers import ConversationFile
from app.domains.attachment.storage import AttachmentStorage
from app.exceptions.base import ValidationError
from app.exceptions.chat import AttachmentNotFoundError
from models import Attachment, new_id

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "application/pdf"})


def attachment_type_for(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return "image"
    if mime_type == "application/pdf":
        return "pdf"
    return "file"


def attachment_url(attachment: Attachment) -> str:
    return f"/api/attachments/{attachment.attachment_url}"


def attachment_file_part(attachment: Attachment, data: bytes) -> dict:
    """Inline file part for a stored attachment.

    Images are rendered as ``data:`` URLs, everything else as bare base64.
    """
    mime_type = attachment.mime_type or "application/octet-stream"
    encoded = base64.b64encode(data).decode("ascii")
    if attachment.attachment_type == "image":
        encoded = f"data:{mime_type};base64,{encoded}"
    return {"type": "file", "mimeType": mime_type, "data": encoded, "name": attachment.file_name}


class AttachmentService:
    """Service for attachment metadata and blob access."""

    def __init__(self, db: AsyncSession, storage: AttachmentStorage):
        self.db = db
        self.storage = storage

    async def upload(self, user_id: str, filename: str | None, content_type: str | None, data: bytes) -> Attachment:
        """Store an uploaded file and record its metadata.

        Raises:
            ValidationError: Disallowed type, empty or oversized file.
        """
        if not content_type or content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(message="No valid file uploaded")
        if not data:
            raise ValidationError(message="Uploaded file is empty")
        if len(data) > settings.max_file_size:
            raise ValidationError(
                message="File too large",
                details={"max_file_size": settings.max_file_size, "file_size": len(data)},
            )

        attachment_id = new_id()
        extension = PurePath(filename or "").suffix.lower()
        path = f"{user_id}/{attachment_id}{extension}"

        await self.storage.put(path, data, content_type)

        attachment = Attachment(
            id=attachment_id,
            user_id=user_id,
            status="uploaded",
            attachment_type=attachment_type_for(content_type),
            attachment_url=path,
            file_name=filename or "",
            mime_type=content_type,
            file_size=len(data),
        )
        try:
            self.db.add(attachment)
            await self.db.commit()
            await self.db.refresh(attachment)
        except SQLAlchemyError as e:
            await self.db.rollback()
            await self.storage.remove(path)
            raise e

        logger.info(f"Stored attachment {attachment_id} ({attachment.attachment_type}, {len(data)} bytes)")
        return attachment

    async def get_owned(self, user_id: str, attachment_id: str) -> Attachment:
        result = await self.db.execute(
            select(Attachment).where(Attachment.id == attachment_id, Attachment.user_id == user_id)
        )
        attachment = result.scalar_one_or_none()
        if attachment is None:
            raise AttachmentNotFoundError()
        return attachment

    async def delete(self, user_id: str, attachment_id: str) -> None:
        attachment = await self.get_owned(user_id, attachment_id)

        if attachment.attachment_url:
            try:
                await self.storage.remove(attachment.attachment_url)
            except OSError as e:
                # The row goes regardless; an orphaned blob is harmless
                logger.warning(f"Failed to delete blob for attachment {attachment_id}: {str(e)}")

        try:
            await self.db.delete(attachment)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def get_details(self, user_id: str, attachment_ids: list[str]) -> list[Attachment]:
        if not attachment_ids:
            return []
        result = await self.db.execute(
            select(Attachment)
            .where(Attachment.id.in_(attachment_ids), Attachment.user_id == user_id)
            .order_by(Attachment.created_at)
        )
        return list(result.scalars().all())

    async def read(self, attachment: Attachment) -> bytes | None:
        """Blob content, or ``None`` when it is missing or unreadable."""
        if not attachment.attachment_url:
            logger.warning(f"Attachment {attachment.id} has no storage path, skipping")
            return None
        try:
            return await self.storage.get(attachment.attachment_url)
        except OSError as e:
            logger.error(f"Failed to load attachment {attachment.id}: {str(e)}", exc_info=True)
            return None

    async def load_for_generation(self, attachment_ids: list[str]) -> list[ConversationFile]:
        """Readable attachments as provider-ready files, in the given id order."""
        if not attachment_ids:
            return []
        result = await self.db.execute(select(Attachment).where(Attachment.id.in_(attachment_ids)))
        by_id = {attachment.id: attachment for attachment in result.scalars().all()}

        files = []
        for attachment_id in attachment_ids:
            attachment = by_id.get(attachment_id)
            if attachment is None:
                continue
            data = await self.read(attachment)
            if data is None:
                continue
            files.append(
                ConversationFile(
                    name=attachment.file_name or attachment.id,
                    mime_type=attachment.mime_type or "application/octet-stream",
                    data=data,
                )
            )
        return files
