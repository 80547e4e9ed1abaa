"""
Media Storage
Saves CMS uploads under UPLOAD_DIR and reads image dimensions with Pillow
"""
import io
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from dotenv import load_dotenv
from fastapi import HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError
import logging

load_dotenv()
logger = logging.getLogger(__name__)

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MEDIA_URL_PREFIX = "/files"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class StoredFile:
    filename: str
    original_filename: str
    mime_type: str
    path: str
    url: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None


def image_dimensions(contents: bytes) -> Tuple[Optional[int], Optional[int]]:
    """(width, height) for image bytes, (None, None) if Pillow cannot read them."""
    try:
        with Image.open(io.BytesIO(contents)) as image:
            return image.width, image.height
    except (UnidentifiedImageError, OSError):
        return None, None


async def save_upload(file: UploadFile, folder: Optional[str] = None) -> StoredFile:
    """
    Write an uploaded file to UPLOAD_DIR under a random name.

    Args:
        file: The uploaded file
        folder: Optional sub-folder inside UPLOAD_DIR

    Raises:
        HTTPException: 400 for empty files, 413 for files over 10 MB
    """
    original_filename = file.filename or "uploaded_file"
    contents = await file.read()

    if not contents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if len(contents) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File exceeds the 10 MB limit"
        )

    extension = os.path.splitext(original_filename)[1].lower()
    filename = f"{uuid.uuid4().hex}{extension}"
    relative_dir = folder.strip("/") if folder else ""
    target_dir = Path(UPLOAD_DIR) / relative_dir
    target_dir.mkdir(parents=True, exist_ok=True)

    path = target_dir / filename
    with open(path, "wb") as f:
        f.write(contents)

    mime_type = file.content_type or "application/octet-stream"
    width, height = image_dimensions(contents) if mime_type.startswith("image/") else (None, None)
    url = "/".join(part for part in (MEDIA_URL_PREFIX, relative_dir, filename) if part)

    logger.info(f"Stored upload {original_filename} as {path}")
    return StoredFile(
        filename=filename,
        original_filename=original_filename,
        mime_type=mime_type,
        path=str(path),
        url=url,
        size=len(contents),
        width=width,
        height=height,
    )


def delete_stored_file(path: str) -> None:
    """Remove a stored file; a file that is already gone is ignored."""
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning(f"Media file already missing: {path}")
