"""Thread lifecycle: creation, listing, updates, deletion and splitting."""

import logging
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.domains.ai.title import generate_thread_title
from app.domains.attachment.service import AttachmentService, attachment_file_part
from app.domains.attachment.storage import AttachmentStorage
from app.exceptions.chat import MessageNotFoundError, ThreadNotFoundError
from app.schemas.ai import ApiKeys
from models import Message, MessageAttachment, Thread, new_id, utcnow
from models.thread import ThreadStatus

logger = logging.getLogger(__name__)


class ThreadService:
    """Service for thread CRUD operations."""

    def __init__(self, db: AsyncSession, storage: AttachmentStorage | None = None):
        """Initialize service with a database session.

        Args:
            db: Async database session.
            storage: Attachment storage, needed only to inline attachments
                when reading a thread.
        """
        self.db = db
        self.storage = storage

    async def _create_thread(self, user_id: str) -> Thread:
        thread = Thread(id=new_id(), user_id=user_id, generation_status=ThreadStatus.PENDING.value)
        self.db.add(thread)
        await self.db.flush()
        return thread

    async def find_owned_thread(self, user_id: str, thread_id: str | None) -> Thread | None:
        if not thread_id:
            return None
        result = await self.db.execute(
            select(Thread).where(Thread.id == thread_id, Thread.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_owned_thread(self, user_id: str, thread_id: str) -> Thread:
        """Raises ThreadNotFoundError when missing or owned by someone else."""
        thread = await self.find_owned_thread(user_id, thread_id)
        if thread is None:
            raise ThreadNotFoundError()
        return thread

    async def handle_thread_creation(
        self,
        user_id: str,
        thread_id: str | None,
        first_message_text: str | None = None,
        api_keys: ApiKeys | None = None,
    ) -> Thread:
        """Resolve the thread a chat submission goes to.

        An owned ``thread_id`` is reused. Anything else, including an id owned
        by another user, yields a brand new thread with a fresh id.
        """
        thread = await self.find_owned_thread(user_id, thread_id)

        try:
            if thread is None:
                thread = await self._create_thread(user_id)
                logger.info(f"Created thread {thread.id} for user {user_id}")

            if not thread.title and first_message_text:
                thread.title = await generate_thread_title(first_message_text, api_keys)
                thread.user_set_title = False
                thread.updated_at = utcnow()

            await self.db.commit()
            await self.db.refresh(thread)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        return thread

    async def update_thread_status(self, thread_id: str, status: ThreadStatus) -> None:
        now = utcnow()
        try:
            await self.db.execute(
                update(Thread)
                .where(Thread.id == thread_id)
                .values(generation_status=status.value, last_message_at=now, updated_at=now)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def list_threads(self, user_id: str) -> list[Thread]:
        result = await self.db.execute(
            select(Thread).where(Thread.user_id == user_id).order_by(Thread.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_thread(self, user_id: str, thread_id: str) -> tuple[Thread, list[dict]]:
        """Thread plus its messages, with linked attachments appended as file parts.

        Returns:
            The thread and a list of message dicts ready for serialization.
        """
        result = await self.db.execute(
            select(Thread)
            .where(Thread.id == thread_id, Thread.user_id == user_id)
            .options(
                selectinload(Thread.messages)
                .selectinload(Message.message_attachments)
                .selectinload(MessageAttachment.attachment)
            )
        )
        thread = result.scalar_one_or_none()
        if thread is None:
            raise ThreadNotFoundError()

        attachments = AttachmentService(self.db, self.storage) if self.storage else None
        messages = []
        for message in thread.messages:
            parts = list(message.parts or [])
            if attachments is not None:
                for link in message.message_attachments:
                    data = await attachments.read(link.attachment)
                    if data is None:
                        logger.warning(f"Skipping unreadable attachment {link.attachment_id}")
                        continue
                    parts.append(attachment_file_part(link.attachment, data))
            messages.append(
                {
                    "id": message.id,
                    "thread_id": message.thread_id,
                    "role": message.role,
                    "status": message.status,
                    "parts": parts,
                    "usage": message.usage,
                    "model": message.model,
                    "generation_start_at": message.generation_start_at,
                    "generation_end_at": message.generation_end_at,
                    "created_at": message.created_at,
                    "updated_at": message.updated_at,
                }
            )
        return thread, messages

    async def update_thread(
        self,
        user_id: str,
        thread_id: str,
        fields: dict,
    ) -> Thread:
        """Apply a partial update.

        Args:
            fields: Subset of ``title``, ``pinned`` and ``branched_from_thread_id``;
                a title marks the thread as user-titled.

        Raises:
            ThreadNotFoundError: The thread, or the thread it is said to branch
                from, is missing or owned by someone else.
        """
        thread = await self.get_owned_thread(user_id, thread_id)
        if fields.get("branched_from_thread_id") is not None:
            await self.get_owned_thread(user_id, fields["branched_from_thread_id"])

        try:
            if "title" in fields and fields["title"] is not None:
                thread.title = fields["title"]
                thread.user_set_title = True
            if "pinned" in fields and fields["pinned"] is not None:
                thread.pinned = fields["pinned"]
            if "branched_from_thread_id" in fields:
                thread.branched_from_thread_id = fields["branched_from_thread_id"]
            thread.updated_at = utcnow()

            await self.db.commit()
            await self.db.refresh(thread)
            return thread
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def delete_thread(self, user_id: str, thread_id: str) -> None:
        """Delete a thread; branches pointing at it lose their back-reference first."""
        thread = await self.get_owned_thread(user_id, thread_id)

        try:
            await self.db.execute(
                update(Thread)
                .where(Thread.branched_from_thread_id == thread_id)
                .values(branched_from_thread_id=None)
            )
            await self.db.delete(thread)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        logger.info(f"Deleted thread {thread_id}")

    async def split_thread(self, user_id: str, thread_id: str, message_id: str) -> Thread:
        """Branch a new thread holding every message up to ``message_id``."""
        origin = await self.get_owned_thread(user_id, thread_id)

        result = await self.db.execute(
            select(Message).where(Message.id == message_id, Message.thread_id == thread_id)
        )
        target = result.scalar_one_or_none()
        if target is None:
            raise MessageNotFoundError()

        result = await self.db.execute(
            select(Message)
            .where(Message.thread_id == thread_id, Message.created_at <= target.created_at)
            .options(selectinload(Message.message_attachments))
            .order_by(Message.created_at)
        )
        to_copy = list(result.scalars().all())

        now = utcnow()
        branch = Thread(
            id=new_id(),
            user_id=user_id,
            title=origin.title,
            user_set_title=False,
            generation_status=ThreadStatus.COMPLETED.value,
            branched_from_thread_id=thread_id,
            last_message_at=now,
        )
        try:
            self.db.add(branch)
            for offset, message in enumerate(to_copy):
                copy_id = new_id()
                self.db.add(
                    Message(
                        id=copy_id,
                        thread_id=branch.id,
                        role=message.role,
                        status=message.status,
                        parts=message.parts,
                        usage=message.usage,
                        model=message.model,
                        generation_start_at=message.generation_start_at,
                        generation_end_at=message.generation_end_at,
                        created_at=now + timedelta(microseconds=offset),
                    )
                )
                for link in message.message_attachments:
                    self.db.add(MessageAttachment(message_id=copy_id, attachment_id=link.attachment_id))

            await self.db.commit()
            await self.db.refresh(branch)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

        logger.info(f"Split thread {thread_id} at {message_id} into {branch.id} ({len(to_copy)} messages)")
        return branch
