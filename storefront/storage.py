# storage.py
"""
Local file storage for uploaded product images.

Files land in `UPLOAD_DIR` under a random name whose extension follows the
accepted content type; the database stores only that filename.
"""
import asyncio
import logging
import os
import uuid
from typing import List, Optional

from fastapi import HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError

log = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
CHUNK_SIZE = 64 * 1024
MEDIA_TYPES = {extension: content_type for content_type, extension in ALLOWED_CONTENT_TYPES.items()}


def is_safe_filename(filename: str) -> bool:
    """Rejects anything that could escape the upload directory."""
    return bool(filename) and ".." not in filename and "/" not in filename and "\\" not in filename


def verify_image(path: str) -> None:
    """Uses PIL to check that the stored bytes really are an image."""
    try:
        with Image.open(path) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is not a valid image.")


def resolve_path(upload_dir: str, filename: str) -> str:
    if not is_safe_filename(filename):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename")
    return os.path.join(upload_dir, filename)


def media_type_for(filename: str) -> str:
    """Content type a stored file is served with; never derived from client input."""
    return MEDIA_TYPES.get(os.path.splitext(filename)[1].lower(), "application/octet-stream")


def _write_and_verify(file_path: str, chunks: List[bytes]) -> None:
    with open(file_path, "wb") as buffer:
        for chunk in chunks:
            buffer.write(chunk)
    verify_image(file_path)


async def save_upload(file: UploadFile, upload_dir: str, max_bytes: int) -> str:
    """
    Reads an uploaded image, stores it and returns the stored filename.

    Raises 400 for unsupported content types or bytes PIL cannot read, and 413
    once the stream passes `max_bytes`. The stored extension follows the
    accepted content type. A partially written file is removed on every
    failure.
    """
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only JPEG, PNG, WEBP and GIF images are allowed.",
        )

    filename = f"{uuid.uuid4().hex}{ALLOWED_CONTENT_TYPES[file.content_type]}"
    file_path = os.path.join(upload_dir, filename)

    chunks: List[bytes] = []
    written = 0
    try:
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > max_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File exceeds the {max_bytes} byte upload limit.",
                )
            chunks.append(chunk)

        # Disk and PIL work runs off the event loop.
        await asyncio.to_thread(os.makedirs, upload_dir, exist_ok=True)
        await asyncio.to_thread(_write_and_verify, file_path, chunks)
    except HTTPException:
        _remove_quietly(file_path)
        raise
    except OSError as e:
        _remove_quietly(file_path)
        log.error(f"File upload failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="File upload failed")
    finally:
        await file.close()

    log.info(f"Stored upload '{file.filename}' as {filename} ({written} bytes)")
    return filename


def delete_file(upload_dir: str, filename: Optional[str]) -> None:
    """Removes a stored file; a file that is already gone is not an error."""
    if not filename or not is_safe_filename(filename):
        return
    _remove_quietly(os.path.join(upload_dir, filename))


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f"Could not remove stored file {path}: {e}")
