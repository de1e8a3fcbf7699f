"""
Vietnam eVisa Portal — File Upload Client

Validates, names and transmits applicant documents (passport scan,
portrait photo) to the configured storage target.

One upload attempt:
  1. local checks — size ≤ 5 MB, MIME type jpeg/jpg/png (no network call
     when they fail)
  2. portrait slot only — photo dimension and aspect-ratio checks
  3. collision-resistant filename
  4. transmit to storage, receive a public URL
  5. progress reported at coarse milestones (25 / 75 / 100)

There is no retry. Multi-file uploads run one after another and stop at
the first failure.
"""

from __future__ import annotations

import io
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from PIL import Image, UnidentifiedImageError

from evisa.errors import ApplicationError
from evisa.models.draft import PendingFile
from evisa.storage import StorageBackend

logger = logging.getLogger(__name__)


# ── File constraints ─────────────────────────────────────────────────

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5,242,880 bytes
ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png")

PHOTO_MIN_WIDTH = 200
PHOTO_MIN_HEIGHT = 200
PHOTO_MAX_WIDTH = 4000
PHOTO_MAX_HEIGHT = 4000
PHOTO_ASPECT_TOLERANCE = 0.3
SQUARE_RATIO = 1.0     # 1:1
PORTRAIT_RATIO = 0.8   # 4:5

PROGRESS_STARTED = 25
PROGRESS_TRANSFERRED = 75
PROGRESS_DONE = 100

ProgressCallback = Callable[[int], None]


@dataclass
class FileValidationResult:
    is_valid: bool
    error: str | None = None


@dataclass
class UploadResult:
    success: bool
    url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    error: str | None = None


# ── Local validation ─────────────────────────────────────────────────

def validate_file_metadata(size: int, content_type: str) -> FileValidationResult:
    if size > MAX_FILE_SIZE:
        return FileValidationResult(False, "File size must be less than 5MB")
    if content_type not in ALLOWED_MIME_TYPES:
        return FileValidationResult(False, "Only JPG, JPEG, and PNG files are allowed")
    return FileValidationResult(True)


def validate_file(file: PendingFile) -> FileValidationResult:
    """Size and type checks; never touches the network."""
    return validate_file_metadata(file.size, file.content_type)


def is_image_file(content_type: str) -> bool:
    return content_type.startswith("image/")


def validate_icao_photo(file: PendingFile) -> FileValidationResult:
    """
    Heuristic passport-photo checks: pixel bounds and a square (1:1) or
    portrait (4:5) aspect ratio. Not a certified ICAO compliance check.
    """
    if not is_image_file(file.content_type):
        return FileValidationResult(False, "File must be an image")

    try:
        with Image.open(io.BytesIO(file.content)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        return FileValidationResult(False, "Invalid image file")

    if width < PHOTO_MIN_WIDTH or height < PHOTO_MIN_HEIGHT:
        return FileValidationResult(
            False,
            f"Photo must be at least {PHOTO_MIN_WIDTH}x{PHOTO_MIN_HEIGHT} pixels for good quality",
        )
    if width > PHOTO_MAX_WIDTH or height > PHOTO_MAX_HEIGHT:
        return FileValidationResult(
            False,
            f"Photo must be no larger than {PHOTO_MAX_WIDTH}x{PHOTO_MAX_HEIGHT} pixels",
        )

    ratio = width / height
    is_squareish = abs(ratio - SQUARE_RATIO) <= PHOTO_ASPECT_TOLERANCE
    is_portraitish = abs(ratio - PORTRAIT_RATIO) <= PHOTO_ASPECT_TOLERANCE
    if not (is_squareish or is_portraitish):
        return FileValidationResult(
            False,
            "Photo should be square (1:1) or portrait (4:5) format for passport photos",
        )
    return FileValidationResult(True)


# ── Naming & formatting helpers ──────────────────────────────────────

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def generate_unique_filename(
    original_name: str,
    application_id: str | None = None,
    timestamp_ms: int | None = None,
) -> str:
    """``{applicationId_}{baseName}_{timestampMillis}_{token}.{ext}``"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(6))
    if "." in original_name:
        base_name, extension = original_name.rsplit(".", 1)
        suffix = f".{extension}"
    else:
        base_name, suffix = original_name, ""
    prefix = f"{application_id}_" if application_id else ""
    return f"{prefix}{base_name}_{timestamp_ms}_{token}{suffix}"


def get_file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def format_file_size(size: int | None) -> str:
    if size is None:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1
    return f"{value:.1f} {units[unit_index]}"


# ── Upload client ────────────────────────────────────────────────────

class FileUploadClient:
    """Uploads applicant files to a StorageBackend."""

    def __init__(self, storage: StorageBackend):
        self._storage = storage

    async def upload(
        self,
        file: PendingFile,
        application_id: str | None = None,
        on_progress: ProgressCallback | None = None,
        *,
        check_photo: bool = False,
    ) -> UploadResult:
        validation = validate_file(file)
        if not validation.is_valid:
            return UploadResult(success=False, error=validation.error)

        if check_photo:
            photo = validate_icao_photo(file)
            if not photo.is_valid:
                return UploadResult(success=False, error=photo.error)

        filename = generate_unique_filename(file.filename, application_id)
        target_path = f"{application_id}/{filename}" if application_id else filename
        notify = on_progress or (lambda progress: None)

        try:
            notify(PROGRESS_STARTED)
            url = await self._storage.upload_object(file.content, target_path, file.content_type)
            notify(PROGRESS_TRANSFERRED)
        except ApplicationError as exc:
            logger.warning("Upload of %s failed: %s", file.filename, exc.message)
            return UploadResult(success=False, error=exc.message)

        notify(PROGRESS_DONE)
        logger.info("Uploaded %s (%d bytes) as %s", file.filename, file.size, filename)
        return UploadResult(
            success=True, url=url, file_name=filename, file_size=file.size,
        )

    async def upload_many(
        self,
        files: Iterable[PendingFile],
        application_id: str | None = None,
        on_progress: Callable[[int, int, str], None] | None = None,
    ) -> list[UploadResult]:
        """
        Upload one file at a time. The first failure halts the queue, so
        the result list can be shorter than the input.
        """
        results: list[UploadResult] = []
        for index, file in enumerate(files):
            callback = None
            if on_progress is not None:
                def callback(progress: int, i: int = index, name: str = file.filename) -> None:
                    on_progress(i, progress, name)

            result = await self.upload(file, application_id, callback)
            results.append(result)
            if not result.success:
                break
        return results

    async def delete(self, url: str) -> bool:
        try:
            return await self._storage.delete_object(url)
        except ApplicationError as exc:
            logger.warning("File deletion failed: %s", exc.message)
            return False
