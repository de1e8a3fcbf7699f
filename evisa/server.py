"""
Vietnam eVisa Portal — FastAPI Server

Serves the application record service, document uploads, the visa
catalog and pricing over HTTP (see evisa.api.routes for the route list).
Locally stored documents are served read-only under /uploads.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from evisa.api.routes import application_error_handler, router
from evisa.config import settings
from evisa.errors import ApplicationError
from evisa.middleware import configure_security
from evisa.pii import install_log_scrubber
from evisa.record_service import get_record_service

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s  %(name)-28s  %(levelname)-7s  %(message)s",
)
logger = logging.getLogger(__name__)


# ── Application lifespan (startup / shutdown) ────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize subsystems at startup."""
    # Install PII log scrubber FIRST — protects all subsequent log output
    install_log_scrubber()
    logger.info("Starting %s v%s …", settings.app_name, settings.app_version)

    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    get_record_service()
    logger.info(
        "Storage backend: %s (uploads served at %s)",
        settings.storage_backend, settings.public_upload_prefix,
    )

    yield

    logger.info("Shutting down %s.", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Visa application intake: drafts, document uploads and submission.",
    version=settings.app_version,
    lifespan=lifespan,
)

# Apply CORS, request size limit, and security headers
configure_security(app)

app.add_exception_handler(ApplicationError, application_error_handler)
app.include_router(router)
app.mount(
    settings.public_upload_prefix,
    StaticFiles(directory=settings.uploads_dir, check_dir=False),
    name="uploads",
)


# ── Entrypoint ───────────────────────────────────────────────────────

def main():
    """Run with: python -m evisa.server"""
    import uvicorn
    uvicorn.run(
        "evisa.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
