"""Share API controller: owner endpoints under a thread, public read by share id."""

import logging

from fastapi import APIRouter, Body, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.attachment.storage import AttachmentStorage, get_attachment_storage
from app.domains.share.service import ShareService
from app.schemas.share import (
    CreateChatFromShareResponse,
    ShareCreateRequest,
    ShareInfoResponse,
    ShareResponse,
    SharedChatResponse,
)
from models.user import User

logger = logging.getLogger(__name__)

# Auth is declared per route: viewing a share is public
router = APIRouter(prefix="/api", tags=["share"])


@router.get("/thread/{thread_id}/share", response_model=ShareInfoResponse)
async def get_share_info(
    thread_id: str = Path(..., description="Thread ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Whether the thread is shared, and under which id."""
    return await ShareService(db).get_share_info(current_user.id, thread_id)


@router.post("/thread/{thread_id}/share", response_model=ShareResponse)
async def create_or_update_share(
    thread_id: str = Path(..., description="Thread ID"),
    share_request: ShareCreateRequest | None = Body(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Share the thread, or refresh an existing share with the current messages."""
    return await ShareService(db).create_or_update_share(
        current_user.id, thread_id, share_request.name if share_request else None
    )


@router.delete("/thread/{thread_id}/share", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(
    thread_id: str = Path(..., description="Thread ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ShareService(db).delete_share(current_user.id, thread_id)


@router.get("/share/{share_id}", response_model=SharedChatResponse)
async def get_shared_chat(
    share_id: str = Path(..., description="Public share ID"),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    """Public view of a shared chat."""
    return await ShareService(db, storage).get_shared_chat(share_id)


@router.post("/share/{share_id}/create-chat", response_model=CreateChatFromShareResponse, status_code=201)
async def create_chat_from_share(
    share_id: str = Path(..., description="Public share ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Copy a shared chat into a new thread owned by the caller."""
    return await ShareService(db).create_chat_from_share(current_user.id, share_id)
