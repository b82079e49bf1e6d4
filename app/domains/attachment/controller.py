"""Attachment API controller with FastAPI endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, File, Path, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, validate_token
from app.domains.attachment.service import AttachmentService, attachment_url
from app.domains.attachment.storage import AttachmentStorage, get_attachment_storage
from app.schemas.attachment import AttachmentDetailsRequest, AttachmentDetailsResponse, AttachmentResponse
from models import Attachment
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/attachments",
    tags=["attachments"],
    dependencies=[Depends(validate_token)],
)


def to_response(attachment: Attachment) -> AttachmentResponse:
    return AttachmentResponse(
        id=attachment.id,
        file_name=attachment.file_name,
        mime_type=attachment.mime_type,
        file_size=attachment.file_size,
        attachment_type=attachment.attachment_type,
        status=attachment.status,
        url=attachment_url(attachment),
        created_at=attachment.created_at,
    )


@router.post("", response_model=AttachmentResponse, status_code=201)
async def upload_attachment(
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    """Upload an image or PDF for use in a later chat message."""
    service = AttachmentService(db, storage)
    if file is None:
        attachment = await service.upload(current_user.id, None, None, b"")
    else:
        data = await file.read()
        attachment = await service.upload(current_user.id, file.filename, file.content_type, data)
    return to_response(attachment)


@router.delete("/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: str = Path(..., description="Attachment ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    await AttachmentService(db, storage).delete(current_user.id, attachment_id)


@router.post("/details", response_model=AttachmentDetailsResponse)
async def get_attachment_details(
    details_request: AttachmentDetailsRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    """Metadata for the caller's attachments among ``attachmentIds``."""
    attachments = await AttachmentService(db, storage).get_details(
        current_user.id, details_request.attachment_ids
    )
    return AttachmentDetailsResponse(attachments=[to_response(attachment) for attachment in attachments])
