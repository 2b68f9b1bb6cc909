"""
Image upload and retrieval endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from app.dependencies import get_files_store
from socialpublish.files import FilesStore
from socialpublish.types import FileUploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


@router.post("/api/files/upload", response_model=FileUploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    alt_text: Optional[str] = Form(None, alias="altText"),
    files: FilesStore = Depends(get_files_store),
) -> FileUploadResponse:
    """
    Upload a PNG or JPEG image.

    The returned UUID can be referenced in the `images` field of any
    create-post request.
    """
    data = await file.read() if file is not None else None
    return await files.upload_file(
        file.filename if file is not None else None,
        data,
        alt_text,
    )


@router.get("/files/{file_uuid}")
async def get_file(
    file_uuid: str,
    files: FilesStore = Depends(get_files_store),
) -> FileResponse:
    """Serve an uploaded image inline."""
    upload, path = await files.get_file(file_uuid)
    return FileResponse(
        path,
        media_type=upload.mimetype,
        filename=upload.original_name,
        content_disposition_type="inline",
    )
