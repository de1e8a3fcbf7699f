"""
Vietnam eVisa Portal — Security Middleware

  - Strict CORS (configurable allowed origins for the frontend)
  - Security headers (HSTS, X-Content-Type, X-Frame-Options)
  - Request size cap sized for one document upload
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from evisa.config import settings
from evisa.file_upload import MAX_FILE_SIZE

logger = logging.getLogger(__name__)

# multipart framing around a maximum-size file
MAX_REQUEST_BYTES = MAX_FILE_SIZE + 64 * 1024


def configure_cors(app: FastAPI) -> None:
    """In production, allowed_origins should list only the portal's own domain."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body is larger than MAX_REQUEST_BYTES."""

    async def dispatch(self, request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > MAX_REQUEST_BYTES:
            logger.warning("Rejected %s %s: body of %s bytes", request.method, request.url.path, length)
            return Response(
                content='{"detail":"File size must be less than 5MB"}',
                status_code=413,
                media_type="application/json",
            )
        return await call_next(request)


# Responses under these prefixes carry applicant data or uploaded documents
NO_STORE_PREFIXES = ("/applications", "/upload")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Security headers on every response. Application records and upload
    results are never cached; uploaded files are served as plain images.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "no-referrer"
        if request.url.path.startswith(NO_STORE_PREFIXES):
            headers["Cache-Control"] = "no-store"
        if request.url.path.startswith(settings.public_upload_prefix):
            headers["Content-Security-Policy"] = "default-src 'none'; img-src 'self'"
        if settings.enable_hsts:
            headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response


def configure_security(app: FastAPI) -> None:
    """Apply all security middleware to the FastAPI app."""
    configure_cors(app)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)
    logger.info("Security middleware configured (CORS + size limit + headers)")
