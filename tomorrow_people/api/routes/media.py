"""
tomorrow_people.api.routes.media — Image & attachment uploads
==============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, UploadFile

from tomorrow_people.api.deps import get_current_user
from tomorrow_people.services.upload_service import classify_attachment, save_upload

router = APIRouter(prefix="/uploads", tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/image", status_code=201)
async def upload_image(
    file: UploadFile,
    user: dict = Depends(get_current_user),
):
    """Upload a profile, event, idea or section image."""
    content = await file.read()
    try:
        url = await save_upload(file.filename or "upload.png", content, file.content_type)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    logger.info("User %s uploaded image %s", user["id"], url)
    return {"url": url, "original_name": file.filename}


@router.post("/attachment", status_code=201)
async def upload_attachment(
    file: UploadFile,
    user: dict = Depends(get_current_user),
):
    """Upload a chat attachment; the response can be sent as a message attachment."""
    content = await file.read()
    name = file.filename or "attachment"
    try:
        url = await save_upload(name, content, file.content_type, kind="attachment")
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc
    return {
        "url": url,
        "name": name,
        "size": len(content),
        "type": classify_attachment(file.content_type, name),
    }
