"""Persistence of chat messages for the generation pipeline."""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.domains.chat.reconciler import ReconciliationPlan, reconcile
from app.exceptions.chat import MessageNotFoundError, MessageOwnershipError
from app.schemas.chat import ChatMessage
from models import Attachment, Message, MessageAttachment, Thread, utcnow
from models.message import MessageRole, MessageStatus

logger = logging.getLogger(__name__)

TICK = timedelta(microseconds=1)


class MessageService:
    """Service applying reconciliation plans and tracking message status."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_thread_messages(self, thread_id: str) -> list[Message]:
        result = await self.db.execute(
            select(Message).where(Message.thread_id == thread_id).order_by(Message.created_at)
        )
        return list(result.scalars().all())

    async def _foreign_message_ids(self, thread_id: str | None, message_ids: list[str]) -> set[str]:
        """Ids already stored outside ``thread_id``; any stored id when there is no thread yet."""
        if not message_ids:
            return set()
        query = select(Message.id).where(Message.id.in_(message_ids))
        if thread_id is not None:
            query = query.where(Message.thread_id != thread_id)
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def check_ownership(self, thread_id: str | None, messages: list[ChatMessage]) -> None:
        """Raises MessageOwnershipError if a submitted id is stored outside ``thread_id``."""
        incoming_ids = [message.id for message in messages if message.id]
        foreign_ids = await self._foreign_message_ids(thread_id, incoming_ids)
        for message_id in incoming_ids:
            if message_id in foreign_ids:
                logger.warning(f"Message {message_id} does not belong to thread {thread_id}")
                raise MessageOwnershipError(message_id)

    async def _next_timestamp(self, thread_id: str) -> datetime:
        """A creation time strictly after every message already in the thread."""
        result = await self.db.execute(
            select(func.max(Message.created_at)).where(Message.thread_id == thread_id)
        )
        latest = result.scalar_one_or_none()
        now = utcnow()
        if latest is not None and latest >= now:
            return latest + TICK
        return now

    async def _owned_attachment_ids(self, user_id: str, attachment_ids: list[str]) -> list[str]:
        if not attachment_ids:
            return []
        result = await self.db.execute(
            select(Attachment.id).where(Attachment.id.in_(attachment_ids), Attachment.user_id == user_id)
        )
        owned = set(result.scalars().all())
        return [attachment_id for attachment_id in dict.fromkeys(attachment_ids) if attachment_id in owned]

    async def save_messages(
        self,
        thread_id: str,
        user_id: str,
        messages: list[ChatMessage],
        model: str,
        attachment_ids: list[str] | None = None,
    ) -> ReconciliationPlan:
        """Reconcile ``messages`` with the thread and apply the result atomically.

        Raises:
            InvalidChatRequestError: Empty submission.
            MessageOwnershipError: A submitted id lives in another thread.
        """
        existing = await self.get_thread_messages(thread_id)
        incoming_ids = [message.id for message in messages if message.id]
        foreign_ids = await self._foreign_message_ids(thread_id, incoming_ids)

        plan = reconcile(thread_id, messages, existing, foreign_ids)
        linked_ids = await self._owned_attachment_ids(user_id, attachment_ids or [])

        try:
            if plan.to_delete:
                await self.db.execute(delete(Message).where(Message.id.in_(plan.to_delete)))

            created_at = await self._next_timestamp(thread_id)
            for offset, item in enumerate(plan.to_insert):
                self.db.add(
                    Message(
                        id=item.id,
                        thread_id=thread_id,
                        role=item.role,
                        status=item.status.value,
                        parts=item.parts,
                        model=model,
                        created_at=created_at + offset * TICK,
                        updated_at=created_at,
                    )
                )
                if item.link_attachments:
                    for attachment_id in linked_ids:
                        self.db.add(MessageAttachment(message_id=item.id, attachment_id=attachment_id))

            if not plan.target_is_new:
                await self.db.execute(
                    update(Message)
                    .where(Message.id == plan.generation_target_id, Message.thread_id == thread_id)
                    .values(status=MessageStatus.PENDING.value, updated_at=utcnow())
                )

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to save messages for thread {thread_id}: {str(e)}", exc_info=True)
            raise e

        logger.info(
            f"Reconciled thread {thread_id} ({plan.mode}): "
            f"{len(plan.to_delete)} deleted, {len(plan.to_insert)} inserted"
        )
        return plan

    async def update_message_status(self, message_id: str, status: MessageStatus) -> None:
        try:
            await self.db.execute(
                update(Message)
                .where(Message.id == message_id)
                .values(status=status.value, updated_at=utcnow())
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e

    async def create_assistant_message(
        self,
        thread_id: str,
        model: str,
        parts: list[dict[str, Any]],
        generation_start_at: datetime,
        generation_end_at: datetime,
        usage: dict[str, Any] | None = None,
    ) -> Message:
        message = Message(
            thread_id=thread_id,
            role=MessageRole.ASSISTANT.value,
            status=MessageStatus.DONE.value,
            parts=parts,
            usage=usage,
            model=model,
            generation_start_at=generation_start_at,
            generation_end_at=generation_end_at,
            created_at=await self._next_timestamp(thread_id),
        )
        try:
            self.db.add(message)
            await self.db.commit()
            await self.db.refresh(message)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        return message

    async def get_history(self, thread_id: str, up_to_message_id: str) -> list[Message]:
        """Messages up to and including ``up_to_message_id``, with attachment links loaded."""
        result = await self.db.execute(
            select(Message)
            .where(Message.thread_id == thread_id)
            .options(selectinload(Message.message_attachments))
            .order_by(Message.created_at)
        )
        history = []
        for message in result.scalars().all():
            history.append(message)
            if message.id == up_to_message_id:
                return history
        raise MessageNotFoundError(details={"message_id": up_to_message_id})

    async def get_message_attachment_ids(self, user_id: str, message_id: str) -> list[str]:
        """Attachment ids linked to a message the user owns.

        Raises:
            MessageNotFoundError: The message is missing or in another user's thread.
        """
        result = await self.db.execute(
            select(Message.id)
            .join(Thread, Thread.id == Message.thread_id)
            .where(Message.id == message_id, Thread.user_id == user_id)
        )
        if result.scalar_one_or_none() is None:
            raise MessageNotFoundError()

        links = await self.db.execute(
            select(MessageAttachment.attachment_id)
            .where(MessageAttachment.message_id == message_id)
            .order_by(MessageAttachment.created_at)
        )
        return list(links.scalars().all())
