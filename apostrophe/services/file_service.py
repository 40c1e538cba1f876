"""
Apostrophe Backend — Image Storage Service
============================================

What:  Stores images pasted into notes and AI-generated covers, and resolves
       stored paths back to files for serving.
Why:   Notes reference images by URL; keeping the bytes on disk (not in the
       notes table) keeps the database small and images directly servable.
How:   Validates names, extension and size, decodes base64 payloads, writes
       with aiofiles under <images_root>/<note_id>/<filename>.
Who:   Notes routes (paste image), AIService (cover image), files route.

Directory Structure:
    notes-images/
    └── <note_id>/
        ├── cover.png            (generated by the image model)
        └── pasted-1712345.png   (pasted from the clipboard)

Security Model:
    1. Name check:      note ids and filenames must be single path segments
    2. Extension check: only common image types are stored
    3. Size check:      decoded payload bounded by settings.max_image_size
    4. Serve check:     resolved path must stay inside images_root
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Union

import aiofiles

from apostrophe.config import Settings
from apostrophe.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}


class FileService:
    """
    Manages image storage beneath settings.images_root.

    Paths handed back to callers are relative to images_root with forward
    slashes, which is exactly what GET /api/files/{path} expects.
    """

    def __init__(self, settings: Settings):
        self.storage_root = Path(settings.images_root).expanduser().resolve()
        self.max_image_size = settings.max_image_size

    @staticmethod
    def validate_segment(value: str, field: str) -> str:
        """Reject anything that is not a plain, single path component."""
        if (
            not value
            or value in (".", "..")
            or "/" in value
            or "\\" in value
            or "\x00" in value
        ):
            raise ValidationError(
                message=f"Invalid {field}: '{value}'",
                field=field,
            )
        return value

    def validate_extension(self, filename: str) -> str:
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="filename",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, actual_size: int) -> None:
        max_mb = self.max_image_size / (1024 * 1024)
        if actual_size > self.max_image_size:
            raise ValidationError(
                message=f"Image size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="data",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def note_image_path(self, note_id: str, filename: str) -> Path:
        """Absolute path for an image belonging to a note."""
        self.validate_segment(note_id, "note_id")
        self.validate_segment(filename, "filename")
        return self.storage_root / note_id / filename

    def relative(self, path: Union[str, Path]) -> str:
        return Path(path).resolve().relative_to(self.storage_root).as_posix()

    @staticmethod
    def decode_image(data: str) -> bytes:
        """
        Decode base64 image data. A data-URI prefix ("data:image/png;base64,")
        is stripped first.

        Raises:
            ValidationError: not valid base64 or empty
        """
        if "," in data:
            data = data.split(",", 1)[1]
        try:
            content = base64.b64decode(data.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(message="Image data is not valid base64", field="data")
        if not content:
            raise ValidationError(message="Image data is empty", field="data")
        return content

    async def store_bytes(self, path: Path, content: bytes) -> Path:
        """
        Write bytes to disk, creating parent directories.

        Raises:
            FileStorageError: if directory creation or file write fails
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save image. Please try again.",
                context={"os_error": type(e).__name__},
            )
        logger.info("File stored: %s (%d bytes)", self.relative(path), len(content))
        return path

    async def save_image(self, note_id: str, data: str, filename: str) -> str:
        """
        Validate and store a base64 image for a note.

        Returns:
            Relative path (<note_id>/<filename>) of the stored image

        Raises:
            ValidationError: bad note id, filename, extension, data or size
            FileStorageError: disk write failed
        """
        path = self.note_image_path(note_id, filename)
        self.validate_extension(filename)
        content = self.decode_image(data)
        self.validate_size(len(content))

        await self.store_bytes(path, content)
        return self.relative(path)

    def resolve_stored(self, relative_path: str) -> Path:
        """
        Map a relative path from a URL back to a stored file.

        Raises:
            ValidationError: path escapes the storage root
            NotFoundError: no such file
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root):
            logger.warning("Rejected path outside storage root: %s", relative_path)
            raise ValidationError(message="Invalid file path", field="path")
        if not candidate.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return candidate
