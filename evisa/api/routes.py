"""
Vietnam eVisa Portal — API Routes

  POST  /applications                 — create a DRAFT record
  GET   /applications/{id}            — fetch a record
  PATCH /applications/{id}            — overwrite fields of a DRAFT record
  POST  /applications/{id}/submit     — DRAFT → SUBMITTED
  POST  /upload/local                 — store a document on local disk
  POST  /upload/blob                  — store a document in the blob store
  POST  /upload/delete                — delete a stored document
  GET   /catalog                      — visa types, durations, processing tiers
  POST  /quote                        — price + delivery date for a selection
  GET   /health                       — liveness probe

ApplicationError subclasses raised below are turned into JSON responses by
application_error_handler (registered in evisa.server).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from evisa.config import settings
from evisa.errors import ApplicationError, NotFoundError, UploadError, ValidationError, status_code_for
from evisa.file_upload import validate_file_metadata
from evisa.models.record import ApplicationRecord
from evisa.models.schemas import (
    DeleteFileRequest,
    DeleteFileResponse,
    HealthResponse,
    QuoteRequest,
    QuoteResponse,
    UploadResponse,
)
from evisa.record_service import ApplicationRecordService, get_record_service
from evisa.storage import BlobStorage, LocalFileStorage, is_local_url, sanitize_path
from evisa.visa_options import catalog_as_dict, quote

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Dependencies ─────────────────────────────────────────────────────

def get_local_storage() -> LocalFileStorage:
    return LocalFileStorage(settings.uploads_dir, settings.public_upload_prefix)


def get_blob_storage() -> BlobStorage:
    if not settings.blob_api_token:
        raise UploadError("Blob storage is not configured")
    return BlobStorage(
        settings.blob_api_url,
        settings.blob_api_token,
        timeout=settings.http_timeout_seconds,
    )


async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    status_code = status_code_for(exc)
    body: dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=body)


# ── Application records ──────────────────────────────────────────────

@router.post("/applications", response_model=ApplicationRecord, status_code=201, tags=["applications"])
async def create_application(
    fields: dict[str, Any] | None = Body(default=None),
    service: ApplicationRecordService = Depends(get_record_service),
):
    """Create a DRAFT record; anything left out takes its default."""
    return service.create_draft(fields or {})


@router.get("/applications/{application_id}", response_model=ApplicationRecord, tags=["applications"])
async def get_application(
    application_id: str,
    service: ApplicationRecordService = Depends(get_record_service),
):
    return service.get_by_id(application_id)


@router.patch("/applications/{application_id}", response_model=ApplicationRecord, tags=["applications"])
async def update_application(
    application_id: str,
    fields: dict[str, Any] = Body(...),
    service: ApplicationRecordService = Depends(get_record_service),
):
    """Overwrite the given fields. 409 once the record has left DRAFT."""
    return service.update(application_id, fields)


@router.post("/applications/{application_id}/submit", response_model=ApplicationRecord, tags=["applications"])
async def submit_application(
    application_id: str,
    fields: dict[str, Any] = Body(...),
    service: ApplicationRecordService = Depends(get_record_service),
):
    """Final submission. 409 if the record was already submitted."""
    return service.submit(application_id, fields)


# ── Document storage ─────────────────────────────────────────────────

async def _read_checked(file: UploadFile) -> bytes:
    content = await file.read()
    check = validate_file_metadata(len(content), file.content_type or "")
    if not check.is_valid:
        raise UploadError(check.error)
    return content


@router.post("/upload/local", response_model=UploadResponse, tags=["uploads"])
async def upload_local(
    file: UploadFile = File(...),
    path: str = Form(default=""),
    storage: LocalFileStorage = Depends(get_local_storage),
):
    """Write the file under the uploads root; the URL is path-relative."""
    content = await _read_checked(file)
    target = sanitize_path(path or file.filename or "")
    url = await storage.upload_object(content, target, file.content_type or "")
    return UploadResponse(url=url, pathname=target, file_size=len(content))


@router.post("/upload/blob", response_model=UploadResponse, tags=["uploads"])
async def upload_blob(
    file: UploadFile = File(...),
    filename: str = Form(default=""),
    storage: BlobStorage = Depends(get_blob_storage),
):
    content = await _read_checked(file)
    target = sanitize_path(filename or file.filename or "")
    if not target:
        raise UploadError("No filename provided")
    url = await storage.upload_object(content, target, file.content_type or "")
    return UploadResponse(url=url, pathname=target, file_size=len(content))


@router.post("/upload/delete", response_model=DeleteFileResponse, tags=["uploads"])
async def delete_upload(
    request: DeleteFileRequest,
    storage: LocalFileStorage = Depends(get_local_storage),
):
    """
    Path-relative URLs are removed from disk (404 when missing). Remote
    URLs are left alone and reported as deleted.
    """
    if not is_local_url(request.url):
        logger.info("External file deletion not implemented; reporting success")
        return DeleteFileResponse(success=True)
    if not await storage.delete_object(request.url):
        raise NotFoundError("File not found")
    return DeleteFileResponse(success=True)


# ── Catalog & pricing ────────────────────────────────────────────────

@router.get("/catalog", tags=["catalog"])
async def get_catalog():
    return catalog_as_dict()


@router.post("/quote", response_model=QuoteResponse, tags=["catalog"])
async def get_quote(request: QuoteRequest):
    result = quote(
        request.visa_type,
        request.visa_duration,
        request.processing_time,
        request.number_of_applicants,
    )
    return QuoteResponse(
        total_price=result.total_price,
        formatted_price=result.formatted_price,
        estimated_delivery_date=result.estimated_delivery_date,
    )


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health(service: ApplicationRecordService = Depends(get_record_service)):
    """Liveness probe."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        storage_backend=settings.storage_backend,
        applications=service.record_count,
    )
