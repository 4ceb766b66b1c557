"""
tomorrow_people.services.upload_service — File upload handling
===============================================================

Stores profile pictures, event / idea / section images (kind ``image``)
and chat attachments (kind ``attachment``).  Files land in ``TP_UPLOAD_DIR``
(default ``uploads/``) under a random name and are served by the static
``/api/uploads`` mount.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("TP_UPLOAD_DIR", "uploads"))
URL_PREFIX = "/api/uploads/"
MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
IMAGE_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}

VIDEO_EXTENSIONS = {".mp4", ".webm", ".mov"}
VIDEO_MIME_TYPES = {"video/mp4", "video/webm", "video/quicktime"}

DOCUMENT_EXTENSIONS = {
    ".pdf", ".txt", ".md", ".csv", ".doc", ".docx", ".xls", ".xlsx",
    ".ppt", ".pptx", ".zip",
}
DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "text/plain",
    "text/markdown",
    "text/csv",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/zip",
    "application/octet-stream",
}

# kind → (allowed extensions, allowed MIME types)
UPLOAD_KINDS: dict[str, tuple[set[str], set[str]]] = {
    "image": (IMAGE_EXTENSIONS, IMAGE_MIME_TYPES),
    "attachment": (
        IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | DOCUMENT_EXTENSIONS,
        IMAGE_MIME_TYPES | VIDEO_MIME_TYPES | DOCUMENT_MIME_TYPES,
    ),
}


def ensure_upload_dir() -> None:
    """Create the upload directory if it doesn't exist."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)


def classify_attachment(content_type: str | None, filename: str | None = None) -> str:
    """Message attachment type for a file: ``image``, ``video`` or ``file``."""
    if content_type:
        if content_type.startswith("image/"):
            return "image"
        if content_type.startswith("video/"):
            return "video"
    if filename:
        ext = Path(filename).suffix.lower()
        if ext in IMAGE_EXTENSIONS:
            return "image"
        if ext in VIDEO_EXTENSIONS:
            return "video"
    return "file"


async def save_upload(
    filename: str,
    content: bytes,
    content_type: str | None = None,
    kind: str = "image",
) -> str:
    """Validate and persist an uploaded file.

    Parameters
    ----------
    filename:
        Original filename from the upload.
    content:
        Raw file bytes.
    content_type:
        MIME type from the upload header.
    kind:
        ``image`` or ``attachment``; selects the allow-lists.

    Returns
    -------
    str
        URL path to the saved file (e.g. ``/api/uploads/abc123.png``).

    Raises
    ------
    ValueError
        If validation fails (wrong type, too large, empty, etc.).
    """
    if kind not in UPLOAD_KINDS:
        raise ValueError(f"Unknown upload kind {kind!r}")
    allowed_ext, allowed_mime = UPLOAD_KINDS[kind]

    if not content:
        raise ValueError("File is empty")
    if len(content) > MAX_FILE_SIZE:
        raise ValueError(
            f"File too large: {len(content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in allowed_ext:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(allowed_ext))}"
        )

    if content_type and content_type not in allowed_mime:
        raise ValueError(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(allowed_mime))}"
        )

    unique_name = f"{uuid.uuid4().hex}{ext}"
    dest = UPLOAD_DIR / unique_name

    await asyncio.to_thread(dest.write_bytes, content)
    logger.info("Stored %s upload %s (%d bytes)", kind, unique_name, len(content))

    return f"{URL_PREFIX}{unique_name}"


def delete_upload(url_path: str) -> bool:
    """Remove an uploaded file by its URL path.

    Returns True if the file existed and was deleted.
    """
    if not url_path.startswith(URL_PREFIX):
        return False
    filename = url_path.rsplit("/", 1)[-1]
    filepath = UPLOAD_DIR / filename
    if filepath.exists() and filepath.is_file():
        filepath.unlink()
        return True
    return False


def release_replaced(old_url: str | None, new_url: str | None = None) -> bool:
    """Delete the stored file behind *old_url* once a row stops pointing at it.

    Call after the change is committed.  URLs outside the upload mount and
    unchanged URLs are left alone.
    """
    if not old_url or old_url == new_url:
        return False
    removed = delete_upload(old_url)
    if removed:
        logger.info("Removed replaced upload %s", old_url)
    return removed
