"""
Tests for the file upload client: local checks, photo checks, naming,
progress reporting and sequential multi-file uploads.
"""
import asyncio
import re
from unittest.mock import AsyncMock

from conftest import make_png

from evisa.errors import TransportError
from evisa.file_upload import (
    MAX_FILE_SIZE,
    FileUploadClient,
    format_file_size,
    generate_unique_filename,
    get_file_extension,
    is_image_file,
    validate_file,
    validate_icao_photo,
)
from evisa.models.draft import PendingFile


def _storage(url="/uploads/app-1/file.png"):
    storage = AsyncMock()
    storage.upload_object.return_value = url
    storage.delete_object.return_value = True
    return storage


def _oversized():
    return PendingFile("scan.jpg", "image/jpeg", b"\0" * (6 * 1024 * 1024))


# ── Local validation ─────────────────────────────────────────────────

def test_size_limit_is_exact():
    at_limit = PendingFile("a.jpg", "image/jpeg", b"\0" * MAX_FILE_SIZE)
    over = PendingFile("a.jpg", "image/jpeg", b"\0" * (MAX_FILE_SIZE + 1))
    assert validate_file(at_limit).is_valid
    result = validate_file(over)
    assert not result.is_valid
    assert result.error == "File size must be less than 5MB"


def test_only_jpeg_and_png_accepted():
    for content_type in ("image/jpeg", "image/jpg", "image/png"):
        assert validate_file(PendingFile("f", content_type, b"x")).is_valid
    result = validate_file(PendingFile("f.gif", "image/gif", b"x"))
    assert result.error == "Only JPG, JPEG, and PNG files are allowed"


def test_six_megabyte_file_never_reaches_storage():
    storage = _storage()
    client = FileUploadClient(storage)
    result = asyncio.run(client.upload(_oversized(), "app-1"))
    assert not result.success
    assert result.error == "File size must be less than 5MB"
    storage.upload_object.assert_not_awaited()


# ── Photo checks ─────────────────────────────────────────────────────

def test_small_portrait_fails_photo_check():
    result = validate_icao_photo(make_png(100, 100))
    assert not result.is_valid
    assert result.error == "Photo must be at least 200x200 pixels for good quality"


def test_oversized_dimensions_fail_photo_check():
    result = validate_icao_photo(make_png(4200, 4200))
    assert result.error == "Photo must be no larger than 4000x4000 pixels"


def test_square_and_portrait_ratios_pass():
    assert validate_icao_photo(make_png(400, 400)).is_valid
    assert validate_icao_photo(make_png(400, 500)).is_valid


def test_wide_image_fails_aspect_ratio():
    result = validate_icao_photo(make_png(1200, 400))
    assert result.error == (
        "Photo should be square (1:1) or portrait (4:5) format for passport photos"
    )


def test_undecodable_image():
    result = validate_icao_photo(PendingFile("x.png", "image/png", b"not an image"))
    assert result.error == "Invalid image file"


def test_photo_check_only_when_requested():
    storage = _storage()
    client = FileUploadClient(storage)
    small = make_png(100, 100, "scan.png")

    ok = asyncio.run(client.upload(small, "app-1"))
    assert ok.success

    rejected = asyncio.run(client.upload(small, "app-1", check_photo=True))
    assert not rejected.success
    assert storage.upload_object.await_count == 1


# ── Upload ───────────────────────────────────────────────────────────

def test_successful_upload_reports_progress_and_metadata(portrait_photo):
    storage = _storage("/uploads/app-1/portrait.png")
    client = FileUploadClient(storage)
    progress = []

    result = asyncio.run(client.upload(portrait_photo, "app-1", progress.append))

    assert result.success
    assert result.url == "/uploads/app-1/portrait.png"
    assert result.file_size == portrait_photo.size
    assert result.file_name.startswith("app-1_portrait_")
    assert progress == [25, 75, 100]

    data, path, content_type = storage.upload_object.await_args.args
    assert data == portrait_photo.content
    assert path == f"app-1/{result.file_name}"
    assert content_type == "image/png"


def test_storage_failure_becomes_failed_result(passport_scan):
    storage = _storage()
    storage.upload_object.side_effect = TransportError("Failed to upload file to blob storage")
    client = FileUploadClient(storage)
    progress = []

    result = asyncio.run(client.upload(passport_scan, None, progress.append))

    assert not result.success
    assert result.error == "Failed to upload file to blob storage"
    assert progress == [25]


def test_sequential_upload_halts_after_first_failure(passport_scan):
    storage = _storage()
    client = FileUploadClient(storage)

    results = asyncio.run(client.upload_many([_oversized(), passport_scan], "app-1"))

    assert len(results) == 1
    assert not results[0].success
    storage.upload_object.assert_not_awaited()


def test_sequential_upload_progress_carries_index(passport_scan, portrait_photo):
    client = FileUploadClient(_storage())
    events = []

    results = asyncio.run(client.upload_many(
        [passport_scan, portrait_photo], "app-1",
        on_progress=lambda i, progress, name: events.append((i, progress, name)),
    ))

    assert [r.success for r in results] == [True, True]
    assert events[0] == (0, 25, "passport.png")
    assert events[-1] == (1, 100, "portrait.png")


def test_delete_delegates_to_storage():
    storage = _storage()
    assert asyncio.run(FileUploadClient(storage).delete("/uploads/app-1/x.png"))
    storage.delete_object.assert_awaited_once_with("/uploads/app-1/x.png")


# ── Helpers ──────────────────────────────────────────────────────────

def test_unique_filename_format():
    name = generate_unique_filename("passport.scan.JPG", "app-9", timestamp_ms=1700000000000)
    assert re.fullmatch(r"app-9_passport\.scan_1700000000000_[a-z0-9]{6}\.JPG", name)


def test_unique_filename_without_application_or_extension():
    name = generate_unique_filename("README", timestamp_ms=42)
    assert re.fullmatch(r"README_42_[a-z0-9]{6}", name)


def test_unique_filenames_differ():
    names = {generate_unique_filename("a.png", "x", timestamp_ms=1) for _ in range(20)}
    assert len(names) > 1


def test_format_helpers():
    assert format_file_size(None) == "0 B"
    assert format_file_size(512) == "512.0 B"
    assert format_file_size(1536 * 1024) == "1.5 MB"
    assert get_file_extension("photo.PNG") == "png"
    assert get_file_extension("noext") == ""
    assert is_image_file("image/png")
    assert not is_image_file("application/pdf")
