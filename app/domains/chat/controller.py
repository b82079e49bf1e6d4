"""Chat API controller: the streaming generation endpoint and message lookups."""

import logging

from fastapi import APIRouter, Body, Depends, Path
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import get_current_user, get_db, validate_token
from app.database import get_session_factory
from app.domains.attachment.storage import AttachmentStorage, get_attachment_storage
from app.domains.chat.dispatcher import GenerationDispatcher
from app.domains.chat.message_service import MessageService
from app.domains.chat.service import ChatService
from app.schemas.attachment import MessageAttachmentsResponse
from app.schemas.chat import ChatRequest
from app.shared.data_stream import DATA_STREAM_HEADERS, DATA_STREAM_MEDIA_TYPE
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["chat"],
    dependencies=[Depends(validate_token)],
)


def get_generation_dispatcher(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    storage: AttachmentStorage = Depends(get_attachment_storage),
) -> GenerationDispatcher:
    return GenerationDispatcher(session_factory, storage)


@router.post("/chat")
async def chat(
    chat_request: ChatRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: GenerationDispatcher = Depends(get_generation_dispatcher),
):
    """Submit a conversation and stream the assistant's reply.

    The first data event carries the thread id; text, reasoning, metrics and
    image events follow in the line-oriented data stream format.
    """
    service = ChatService(db, dispatcher)
    thread_id, stream = await service.start_chat(chat_request, current_user.id)

    return StreamingResponse(
        stream,
        media_type=DATA_STREAM_MEDIA_TYPE,
        headers={**DATA_STREAM_HEADERS, "X-Thread-Id": thread_id},
    )


@router.get("/message/{message_id}/attachments", response_model=MessageAttachmentsResponse)
async def get_message_attachments(
    message_id: str = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attachment ids linked to one of the caller's messages."""
    attachment_ids = await MessageService(db).get_message_attachment_ids(current_user.id, message_id)
    return MessageAttachmentsResponse(attachment_ids=attachment_ids)
