"""Thread API controller with FastAPI endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, validate_token
from app.domains.attachment.storage import AttachmentStorage, get_attachment_storage
from app.domains.thread.service import ThreadService
from app.schemas.thread import (
    MessageResponse,
    SplitThreadRequest,
    SplitThreadResponse,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadResponse,
    ThreadUpdate,
)
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["threads"],
    dependencies=[Depends(validate_token)],
)


@router.get("/threads", response_model=ThreadListResponse)
async def list_threads(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's threads, most recently updated first."""
    threads = await ThreadService(db).list_threads(current_user.id)
    return ThreadListResponse(threads=[ThreadResponse.model_validate(thread) for thread in threads])


@router.get("/thread/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: str = Path(..., description="Thread ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    """Get a thread with its messages; attachments are inlined as file parts."""
    thread, messages = await ThreadService(db, storage).get_thread(current_user.id, thread_id)
    response = ThreadResponse.model_validate(thread)
    return ThreadDetailResponse(
        **response.model_dump(),
        messages=[MessageResponse.model_validate(message) for message in messages],
    )


@router.patch("/thread/{thread_id}", response_model=ThreadResponse)
async def update_thread(
    thread_id: str = Path(..., description="Thread ID"),
    thread_update: ThreadUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rename, pin or re-parent a thread."""
    fields = thread_update.model_dump(include=thread_update.model_fields_set)
    thread = await ThreadService(db).update_thread(current_user.id, thread_id, fields)
    return ThreadResponse.model_validate(thread)


@router.delete("/thread/{thread_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_thread(
    thread_id: str = Path(..., description="Thread ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a thread with its messages and shares."""
    await ThreadService(db).delete_thread(current_user.id, thread_id)


@router.post("/thread/{thread_id}/split", response_model=SplitThreadResponse, status_code=201)
async def split_thread(
    thread_id: str = Path(..., description="Thread ID"),
    split_request: SplitThreadRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Branch a new thread from the messages up to ``messageId``."""
    branch = await ThreadService(db).split_thread(current_user.id, thread_id, split_request.message_id)
    return SplitThreadResponse(thread=ThreadResponse.model_validate(branch), to=f"/chat/{branch.id}")
