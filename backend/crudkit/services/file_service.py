"""
crudkit Backend — File Storage Service
=======================================

What:  Validates and stores uploaded files (avatars) under the storage root.
How:   Validates extension, size and MIME type, then writes the content with
       aiofiles under a per-user directory with a generated filename.
Who:   Called by ProfileController.upload_avatar; ImageService resizes the
       stored original.

Security Model:
    1. Extension check:  fast rejection before reading the content
    2. Size check:       Content-Length first, then the actual byte count
    3. MIME check:       libmagic inspects the header bytes, so a renamed
                         file is rejected
    4. UUID filename:    no user input ever reaches the file system path

Directory Structure:
    storage/
    └── avatar/               ← UploadOptions.path
        └── user/             ← UploadOptions.prefix (settings.upload_prefix)
            └── <user uid>/
                ├── 3f2a....jpg            original
                └── 3f2a...-medium.jpg     resized variants
"""

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import magic

from crudkit.config import settings
from crudkit.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}


@dataclass(frozen=True)
class UploadOptions:
    """Where an upload goes: <path>/<prefix>/<user_id>/."""

    path: str
    prefix: str
    user_id: str

    @property
    def directory(self) -> str:
        return f"{self.path}/{self.prefix}/{self.user_id}"


@dataclass(frozen=True)
class StoredFile:
    absolute_path: str
    relative_path: str
    mime_type: str


class FileService:
    """
    Manages upload validation and storage.

    Lifecycle of an uploaded avatar:
        1. ProfileController reads the multipart "file" field
        2. save_upload() validates extension, size and MIME type
        3. Content is written to <storage_root>/<options.directory>/<uuid><ext>
        4. StoredFile is handed to ImageService for resizing
        5. On a later failure cleanup_file() removes the original
    """

    def __init__(self, storage_root: Optional[str] = None, max_file_size: Optional[int] = None):
        """
        Args:
            storage_root:  Override settings.storage_root (used in tests)
            max_file_size: Override settings.max_file_size
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.max_file_size = max_file_size or settings.max_file_size
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_extension(self, filename: str) -> str:
        """Returns the normalized extension; raises ValidationError if not allowed."""
        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="file",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject oversized uploads.

        Content-Length is checked first (may be missing or wrong), then the
        real byte count.
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="file",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

        if actual_size == 0:
            raise ValidationError(message="Uploaded file is empty", field="file")

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Detect the real MIME type from the content bytes (libmagic).

        Raises:
            ValidationError if the type is not an allowed image type
            FileStorageError if detection itself fails
        """
        try:
            mime_type = magic.from_buffer(file_content, mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a valid image (PNG, JPEG or WebP)."
                ),
                field="file",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES)},
            )

        return mime_type

    def build_path(self, options: UploadOptions, name: str) -> Tuple[Path, str]:
        """(absolute_path, path relative to storage_root) for a file name."""
        relative_path = f"{options.directory}/{name}"
        return self.storage_root / relative_path, relative_path

    def absolute(self, relative_path: str) -> Path:
        return self.storage_root / relative_path

    async def write_file(self, absolute_path: Path, content: bytes) -> None:
        """Async write; creates intermediate directories."""
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort removal of a stored file; failures are only logged."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def save_upload(
        self,
        filename: str,
        content: bytes,
        options: UploadOptions,
        content_length: Optional[int] = None,
    ) -> StoredFile:
        """
        Complete validation and storage pipeline, cheapest checks first.

        Returns:
            StoredFile pointing at the stored original
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        mime_type = self.validate_mime_type(content)

        absolute_path, relative_path = self.build_path(options, f"{uuid.uuid4()}{ext}")
        await self.write_file(absolute_path, content)

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return StoredFile(
            absolute_path=str(absolute_path),
            relative_path=relative_path,
            mime_type=mime_type,
        )
