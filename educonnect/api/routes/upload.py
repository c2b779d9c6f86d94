import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from educonnect.api.deps import get_current_user
from educonnect.models.user import User
from educonnect.schemas.upload import UploadResponse
from educonnect.services.file_storage import FileStorageError, save_files

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])


@router.post("", response_model=UploadResponse)
async def upload_files(
    files: list[UploadFile] = File(default=[]),
    current_user: User = Depends(get_current_user),
):
    """Store message attachments and return their public URLs."""
    payload = []
    for upload in files:
        payload.append((upload.filename or "file", await upload.read()))

    try:
        urls = save_files(payload)
    except FileStorageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"User {current_user.id} uploaded {len(urls)} file(s)")
    return UploadResponse(message="Files uploaded successfully", urls=urls)
