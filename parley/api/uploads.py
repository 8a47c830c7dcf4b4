"""
Attachment upload endpoint.

Stores one file under the storage directory and returns the reference a
client passes as ``attachmentRef`` when sending a message.
"""

import os
import time
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from parley.api.deps import AppSettings, StorageProvider
from parley.core.exceptions import StorageError
from parley.core.logger import setup_logger

router = APIRouter()

logger = setup_logger(__name__)


class UploadResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reference: str
    filename: str
    original_name: str
    mime_type: str
    size: int


def is_allowed_type(content_type: Optional[str], allowed: list[str]) -> bool:
    """Match a MIME type against exact entries and ``type/*`` prefixes."""
    if not content_type:
        return False
    content_type = content_type.split(";")[0].strip().lower()
    for entry in allowed:
        entry = entry.lower()
        if entry.endswith("/*"):
            if content_type.startswith(entry[:-1]):
                return True
        elif content_type == entry:
            return True
    return False


def storage_filename(original_name: Optional[str]) -> str:
    """``<epoch-ms>-<uuid><ext>``, keeping only the extension of the client's name."""
    ext = os.path.splitext(os.path.basename(original_name or ""))[1]
    return f"{int(time.time() * 1000)}-{uuid4()}{ext}"


@router.post("/upload", response_model=UploadResponse, response_model_by_alias=True)
async def upload_attachment(
    settings: AppSettings,
    storage: StorageProvider,
    file: Optional[UploadFile] = File(None),
) -> UploadResponse:
    if file is None or not is_allowed_type(file.content_type, settings.UPLOAD_ALLOWED_TYPES):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded or file type not allowed.",
        )

    data = await file.read(settings.UPLOAD_MAX_BYTES + 1)
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.UPLOAD_MAX_BYTES} bytes)",
        )

    filename = storage_filename(file.filename)
    try:
        await storage.upload(filename, data, content_type=file.content_type)
    except StorageError as e:
        logger.error("Upload of %s failed: %s", file.filename, e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store the file",
        ) from e

    logger.info("Stored upload %s (%d bytes)", filename, len(data))
    return UploadResponse(
        reference=storage.get_public_url(filename),
        filename=filename,
        original_name=os.path.basename(file.filename or ""),
        mime_type=file.content_type,
        size=len(data),
    )
