from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path

from fastapi import UploadFile

from cafehoppr.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"}
MAX_PHOTO_BYTES = 5 * 1024 * 1024
URL_PREFIX = "/uploads"


class InvalidUploadError(ValueError):
    pass


def _cafe_dir(cafe_id: str) -> Path:
    return Path(settings.upload_dir) / "cafes" / cafe_id


def _extension(upload: UploadFile) -> str:
    ext = Path(upload.filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise InvalidUploadError(f"Unsupported photo type: {upload.filename!r}")
    if upload.content_type and not upload.content_type.startswith("image/"):
        raise InvalidUploadError(f"Not an image: {upload.filename!r} ({upload.content_type})")
    return ext


def check_uploads(uploads: list[UploadFile]) -> list[str]:
    """Validate a batch of uploads and return their file extensions."""
    uploads = [u for u in uploads if u.filename]
    if len(uploads) > settings.max_photos_per_cafe:
        raise InvalidUploadError(f"At most {settings.max_photos_per_cafe} photos per cafe")
    return [_extension(u) for u in uploads]


def save_cafe_photos(cafe_id: str, uploads: list[UploadFile]) -> list[str]:
    """Store uploaded photos under UPLOAD_DIR and return their public URLs.

    All files are validated before anything is written.
    """
    extensions = check_uploads(uploads)
    uploads = [u for u in uploads if u.filename]

    target = _cafe_dir(cafe_id)
    target.mkdir(parents=True, exist_ok=True)

    urls: list[str] = []
    for upload, ext in zip(uploads, extensions):
        name = f"{uuid.uuid4().hex}{ext}"
        data = upload.file.read(MAX_PHOTO_BYTES + 1)
        if len(data) > MAX_PHOTO_BYTES:
            raise InvalidUploadError(f"Photo too large: {upload.filename!r}")
        (target / name).write_bytes(data)
        urls.append(f"{URL_PREFIX}/cafes/{cafe_id}/{name}")

    logger.info("Stored %s photo(s) for cafe %s", len(urls), cafe_id)
    return urls


def remove_cafe_photos(cafe_id: str) -> None:
    target = _cafe_dir(cafe_id)
    if target.exists():
        shutil.rmtree(target, ignore_errors=True)
