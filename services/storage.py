"""Storage service for uploaded files (local disk, served under /uploads)."""

import os
from pathlib import Path
from uuid import uuid4

from fastapi import HTTPException, UploadFile, status

import config
from models.attachment import StoredFile

PUBLIC_URL_PREFIX = "/uploads"


def generate_storage_key(folder: str, filename: str) -> str:
    """
    Generate a storage key for a file.

    Args:
        folder: Sub-directory grouping files of one kind (e.g. "renditions")
        filename: Original filename (will be sanitized)

    Returns:
        Storage key path string
    """
    # Sanitize filename (remove path separators and other problematic chars)
    sanitized = os.path.basename(filename or "file")
    sanitized = sanitized.replace("/", "_").replace("\\", "_").replace("..", "_").replace(" ", "_")

    return f"{folder}/{uuid4().hex}-{sanitized}"


async def save_upload(file: UploadFile, folder: str) -> StoredFile:
    """
    Save an uploaded file to local disk.

    Args:
        file: FastAPI UploadFile object
        folder: Sub-directory grouping files of one kind

    Returns:
        StoredFile with the public URL, original name and content type

    Raises:
        HTTPException: 413 if the file exceeds MAX_UPLOAD_BYTES
        OSError: If directory creation or file write fails
    """
    storage_key = generate_storage_key(folder, file.filename or "file")
    full_path = Path(config.settings.UPLOADS_DIR) / storage_key

    content = await file.read()
    if len(content) > config.settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File {file.filename} exceeds the upload size limit",
        )

    # Create parent directories if they don't exist
    full_path.parent.mkdir(parents=True, exist_ok=True)
    with open(full_path, "wb") as f:
        f.write(content)

    return StoredFile(
        url=f"{PUBLIC_URL_PREFIX}/{storage_key}",
        name=file.filename or full_path.name,
        content_type=file.content_type,
    )


async def save_uploads(files: list[UploadFile], folder: str) -> list[StoredFile]:
    """Save several uploads, in order."""
    return [await save_upload(file, folder) for file in files]


async def delete_file(url: str) -> None:
    """
    Delete a stored file given its public URL. Unknown URLs are ignored.

    Raises:
        OSError: If file deletion fails
    """
    if not url.startswith(PUBLIC_URL_PREFIX + "/"):
        return
    full_path = Path(config.settings.UPLOADS_DIR) / url[len(PUBLIC_URL_PREFIX) + 1:]

    if full_path.exists():
        full_path.unlink()
