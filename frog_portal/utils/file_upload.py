"""
File Upload Utility - validate and store uploaded files.

Buckets:
- avatars: profile pictures (images only)
- school-photos: photos added through the school editor (images only)
- user-files: application documents (images and PDF)

Max file size: 5MB
Files are written below settings.media_root/<bucket>/ under a random name
and served from settings.media_url.
"""

import logging
import os
import uuid
from typing import Tuple

from fastapi import UploadFile, HTTPException

from frog_portal.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

MAX_FILE_SIZE_MB = 5
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.gif'}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {'.pdf'}

BUCKETS = {
    "avatars": IMAGE_EXTENSIONS,
    "school-photos": IMAGE_EXTENSIONS,
    "user-files": DOCUMENT_EXTENSIONS,
}


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


async def read_upload(file: UploadFile, bucket: str) -> Tuple[bytes, str]:
    """
    Read and validate an uploaded file for a bucket.

    Returns:
        Tuple of (content, extension)

    Raises:
        HTTPException on validation errors
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="ファイル名がありません")

    allowed = BUCKETS[bucket]
    ext = get_file_extension(file.filename)
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"対応していないファイル形式です: '{ext}'. 対応形式: {', '.join(sorted(allowed))}"
        )

    content = await file.read()

    if not content:
        raise HTTPException(status_code=400, detail="ファイルが空です")

    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"ファイルサイズが大きすぎます。最大: {MAX_FILE_SIZE_MB}MB"
        )

    return content, ext


def save_file(content: bytes, bucket: str, ext: str, owner: str = "") -> Tuple[str, str]:
    """
    Write content to storage.

    Returns:
        Tuple of (storage path relative to media_root, public URL)
    """
    folder = os.path.join(bucket, owner) if owner else bucket
    name = f"{uuid.uuid4().hex}{ext}"
    relative_path = os.path.join(folder, name)

    absolute_dir = os.path.join(settings.media_root, folder)
    os.makedirs(absolute_dir, exist_ok=True)
    with open(os.path.join(settings.media_root, relative_path), "wb") as fh:
        fh.write(content)

    url = f"{settings.media_url.rstrip('/')}/{relative_path.replace(os.sep, '/')}"
    logger.info("Stored %s (%d bytes)", relative_path, len(content))
    return relative_path, url


async def store_upload(file: UploadFile, bucket: str, owner: str = "") -> dict:
    """Validate and persist an upload; returns name, path, url, size and content type."""
    content, ext = await read_upload(file, bucket)
    path, url = save_file(content, bucket, ext, owner)
    return {
        "name": file.filename,
        "path": path,
        "url": url,
        "size": len(content),
        "content_type": file.content_type,
    }


def get_supported_formats() -> dict:
    """Get info about supported upload formats per bucket."""
    return {
        "buckets": {name: sorted(exts) for name, exts in BUCKETS.items()},
        "max_size_mb": MAX_FILE_SIZE_MB
    }
