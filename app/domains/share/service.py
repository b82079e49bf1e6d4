"""Public snapshots of threads and cloning them back into private threads."""

import base64
import logging
import uuid
from datetime import timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.domains.attachment.storage import AttachmentStorage
from app.exceptions.chat import ShareNotFoundError, ThreadNotFoundError
from app.schemas.share import (
    CreateChatFromShareResponse,
    ShareInfoResponse,
    ShareResponse,
    SharedChatResponse,
    SharedMessageResponse,
    SharedThreadInfo,
)
from models import (
    Attachment,
    Message,
    MessageAttachment,
    SharedChat,
    SharedMessage,
    SharedMessageAttachment,
    Thread,
    new_id,
    utcnow,
)
from models.message import MessageStatus
from models.thread import ThreadStatus

logger = logging.getLogger(__name__)


def new_share_id() -> str:
    """Short URL-friendly id: 12 hex characters."""
    return uuid.uuid4().hex[:12]


def share_url(share_id: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/share/{share_id}"


class ShareService:
    """Service for creating, reading and cloning shared chats."""

    def __init__(self, db: AsyncSession, storage: AttachmentStorage | None = None):
        self.db = db
        self.storage = storage

    async def _get_owned_thread(self, user_id: str, thread_id: str, with_messages: bool = False) -> Thread:
        query = select(Thread).where(Thread.id == thread_id, Thread.user_id == user_id)
        if with_messages:
            query = query.options(selectinload(Thread.messages).selectinload(Message.message_attachments))
        result = await self.db.execute(query)
        thread = result.scalar_one_or_none()
        if thread is None:
            raise ThreadNotFoundError()
        return thread

    async def _get_thread_share(self, thread_id: str) -> SharedChat | None:
        result = await self.db.execute(select(SharedChat).where(SharedChat.thread_id == thread_id))
        return result.scalar_one_or_none()

    async def _message_count(self, shared_chat_id: str) -> int:
        result = await self.db.execute(
            select(func.count(SharedMessage.id)).where(SharedMessage.shared_chat_id == shared_chat_id)
        )
        return result.scalar_one()

    async def create_or_update_share(self, user_id: str, thread_id: str, name: str | None = None) -> ShareResponse:
        """Snapshot the thread's current messages.

        Re-sharing keeps the share id and replaces the snapshot; a new name
        replaces the old one, an omitted name keeps it.
        """
        thread = await self._get_owned_thread(user_id, thread_id, with_messages=True)
        share = await self._get_thread_share(thread_id)

        try:
            if share is not None:
                if name:
                    share.name = name
                share.updated_at = utcnow()
                await self.db.execute(delete(SharedMessage).where(SharedMessage.shared_chat_id == share.id))
            else:
                share = SharedChat(
                    id=new_id(),
                    share_id=new_share_id(),
                    thread_id=thread_id,
                    user_id=user_id,
                    name=name or None,
                )
                self.db.add(share)

            now = utcnow()
            for offset, message in enumerate(thread.messages):
                shared_message = SharedMessage(
                    id=new_id(),
                    shared_chat_id=share.id,
                    original_message_id=message.id,
                    role=message.role,
                    parts=message.parts,
                    usage=message.usage,
                    model=message.model,
                    generation_start_at=message.generation_start_at,
                    generation_end_at=message.generation_end_at,
                    created_at=now + timedelta(microseconds=offset),
                )
                self.db.add(shared_message)
                for link in message.message_attachments:
                    self.db.add(
                        SharedMessageAttachment(
                            shared_message_id=shared_message.id, attachment_id=link.attachment_id
                        )
                    )

            await self.db.commit()
            await self.db.refresh(share)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to share thread {thread_id}: {str(e)}", exc_info=True)
            raise e

        logger.info(f"Shared thread {thread_id} as {share.share_id} ({len(thread.messages)} messages)")
        return ShareResponse(
            share_id=share.share_id,
            share_url=share_url(share.share_id),
            name=share.name,
            message_count=len(thread.messages),
        )

    async def get_share_info(self, user_id: str, thread_id: str) -> ShareInfoResponse:
        await self._get_owned_thread(user_id, thread_id)
        share = await self._get_thread_share(thread_id)
        if share is None:
            return ShareInfoResponse(has_share=False)

        return ShareInfoResponse(
            has_share=True,
            share_id=share.share_id,
            share_url=share_url(share.share_id),
            name=share.name,
            message_count=await self._message_count(share.id),
            created_at=share.created_at,
            updated_at=share.updated_at,
        )

    async def delete_share(self, user_id: str, thread_id: str) -> None:
        await self._get_owned_thread(user_id, thread_id)
        share = await self._get_thread_share(thread_id)
        if share is None:
            raise ShareNotFoundError()

        try:
            await self.db.delete(share)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        logger.info(f"Removed share {share.share_id} of thread {thread_id}")

    async def _load_share(self, share_id: str) -> SharedChat:
        result = await self.db.execute(
            select(SharedChat)
            .where(SharedChat.share_id == share_id)
            .options(
                selectinload(SharedChat.thread),
                selectinload(SharedChat.shared_messages)
                .selectinload(SharedMessage.shared_message_attachments)
                .selectinload(SharedMessageAttachment.attachment),
            )
        )
        share = result.scalar_one_or_none()
        if share is None:
            raise ShareNotFoundError()
        return share

    async def _attachment_part(self, attachment: Attachment) -> dict | None:
        """Render a shared attachment; only images and PDFs are inlined."""
        if not attachment.attachment_url or self.storage is None:
            return None
        try:
            data = await self.storage.get(attachment.attachment_url)
        except OSError as e:
            logger.error(f"Failed to read shared attachment {attachment.id}: {str(e)}", exc_info=True)
            return {"type": "text", "text": f"[Attachment: {attachment.file_name} - Error loading]"}
        if data is None:
            return None

        mime_type = attachment.mime_type or ""
        if mime_type.startswith("image/") or mime_type == "application/pdf":
            part = {
                "type": "file",
                "mimeType": mime_type,
                "data": f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}",
            }
            if mime_type == "application/pdf":
                part["name"] = attachment.file_name
            return part
        return {"type": "text", "text": f"[Attachment: {attachment.file_name}]"}

    async def get_shared_chat(self, share_id: str) -> SharedChatResponse:
        """Public view of a share, attachments resolved inline."""
        share = await self._load_share(share_id)

        messages = []
        for message in share.shared_messages:
            parts = list(message.parts or [])
            for link in message.shared_message_attachments:
                part = await self._attachment_part(link.attachment)
                if part is not None:
                    parts.append(part)
            messages.append(
                SharedMessageResponse(
                    id=message.id,
                    role=message.role,
                    parts=parts,
                    usage=message.usage,
                    model=message.model,
                    generation_start_at=message.generation_start_at,
                    generation_end_at=message.generation_end_at,
                    created_at=message.created_at,
                )
            )

        return SharedChatResponse(
            share_id=share.share_id,
            name=share.name,
            thread=SharedThreadInfo(id=share.thread.id, title=share.thread.title, created_at=share.thread.created_at),
            messages=messages,
            created_at=share.created_at,
            updated_at=share.updated_at,
        )

    async def create_chat_from_share(self, user_id: str, share_id: str) -> CreateChatFromShareResponse:
        """Clone a share into a new completed thread owned by ``user_id``."""
        share = await self._load_share(share_id)

        now = utcnow()
        thread = Thread(
            id=new_id(),
            user_id=user_id,
            title=share.thread.title,
            user_set_title=False,
            generation_status=ThreadStatus.COMPLETED.value,
            last_message_at=now,
        )
        try:
            self.db.add(thread)
            for offset, shared_message in enumerate(share.shared_messages):
                message_id = new_id()
                self.db.add(
                    Message(
                        id=message_id,
                        thread_id=thread.id,
                        role=shared_message.role,
                        status=MessageStatus.DONE.value,
                        parts=shared_message.parts,
                        usage=shared_message.usage,
                        model=shared_message.model,
                        generation_start_at=shared_message.generation_start_at,
                        generation_end_at=shared_message.generation_end_at,
                        created_at=now + timedelta(microseconds=offset),
                    )
                )
                for link in shared_message.shared_message_attachments:
                    self.db.add(MessageAttachment(message_id=message_id, attachment_id=link.attachment_id))

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        logger.info(f"Created thread {thread.id} from share {share_id} for user {user_id}")
        return CreateChatFromShareResponse(
            thread_id=thread.id,
            thread_url=f"/chat/{thread.id}",
            title=thread.title,
            message_count=len(share.shared_messages),
        )
