"""
Vietnam eVisa Portal — File Storage Backends

Three interchangeable targets share one contract:

    upload_object(data, path, content_type) -> public URL
    delete_object(url)                      -> bool

  LocalFileStorage   writes under a fixed uploads root (development);
                     URLs are path-relative, e.g. /uploads/<id>/<file>
  BlobStorage        pushes to a remote blob API (production)
  UploadEndpoint     the client-side view: posts to this service's own
                     /upload/* routes, which hold one of the two above

Deleting a non path-relative URL is a no-op that reports success: remote
blob deletion is not implemented.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Protocol

import httpx

from evisa.config import Settings, settings
from evisa.errors import TransportError, UploadError

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    async def upload_object(self, data: bytes, path: str, content_type: str) -> str: ...

    async def delete_object(self, url: str) -> bool: ...


def sanitize_path(path: str) -> str:
    """Drop '..' sequences and leading slashes from a client-supplied path."""
    return path.replace("..", "").lstrip("/")


def is_local_url(url: str) -> bool:
    return url.startswith("/")


# ── Local filesystem ─────────────────────────────────────────────────

class LocalFileStorage:
    """Stores uploads on disk under ``root``, served at ``public_prefix``."""

    def __init__(self, root: Path, public_prefix: str = "/uploads"):
        self.root = Path(root)
        self.public_prefix = "/" + public_prefix.strip("/")

    def _resolve(self, relative: str) -> Path:
        root = self.root.resolve()
        full = (root / relative).resolve()
        if full != root and root not in full.parents:
            raise UploadError("Invalid file path")
        return full

    def _relative_from_url(self, url: str) -> str:
        safe = sanitize_path(url)
        prefix = self.public_prefix.lstrip("/") + "/"
        if safe.startswith(prefix):
            safe = safe[len(prefix):]
        return safe

    async def upload_object(self, data: bytes, path: str, content_type: str) -> str:
        safe = sanitize_path(path)
        if not safe:
            raise UploadError("No file path provided")
        full = self._resolve(safe)
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_bytes(data)
        except OSError as exc:
            logger.exception("Failed writing upload to %s", full)
            raise UploadError("Failed to upload file") from exc

        logger.info("Stored %d bytes at %s", len(data), full)
        return f"{self.public_prefix}/{safe}"

    async def delete_object(self, url: str) -> bool:
        if not is_local_url(url):
            logger.info("Skipping delete of external URL (not implemented)")
            return True

        full = self._resolve(self._relative_from_url(url))
        if not full.is_file():
            logger.warning("Delete requested for missing file %s", full)
            return False
        full.unlink()
        logger.info("Deleted local upload %s", full)
        return True


# ── Remote blob store ────────────────────────────────────────────────

class BlobStorage:
    """
    Remote blob target. Objects are PUT to ``{api_url}/{filename}`` with a
    bearer token; the JSON response carries the public ``url``.
    """

    def __init__(self, api_url: str, token: str, timeout: float = 30.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport

    async def upload_object(self, data: bytes, path: str, content_type: str) -> str:
        filename = sanitize_path(path)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.put(
                    f"{self._api_url}/{filename}",
                    content=data,
                    headers={
                        "Authorization": f"Bearer {self._token}",
                        "x-content-type": content_type,
                        "x-access": "public",
                    },
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Blob upload of %s failed: %s", filename, exc)
            raise TransportError("Failed to upload file to blob storage") from exc

        url = payload.get("url")
        if not url:
            raise TransportError("Blob storage returned no URL")
        logger.info("Uploaded %s to blob storage", filename)
        return url

    async def delete_object(self, url: str) -> bool:
        # TODO: delete through the blob API's delete endpoint
        logger.info("External file deletion not implemented; reporting success")
        return True


# ── This service's upload routes, seen from the client ───────────────

class UploadEndpoint:
    """Client-side storage target that talks to the /upload/* routes."""

    def __init__(
        self,
        base_url: str,
        target: Literal["local", "blob"] = "local",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._target = target
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport,
        )

    async def upload_object(self, data: bytes, path: str, content_type: str) -> str:
        filename = path.rsplit("/", 1)[-1]
        files = {"file": (filename, data, content_type)}
        if self._target == "local":
            route, form = "/upload/local", {"path": path}
        else:
            route, form = "/upload/blob", {"filename": filename}

        try:
            async with self._client() as client:
                resp = await client.post(route, files=files, data=form)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to upload to {self._target} storage") from exc

        if resp.status_code >= 400:
            detail = _error_detail(resp) or f"Failed to upload to {self._target} storage"
            raise UploadError(detail)
        return resp.json()["url"]

    async def delete_object(self, url: str) -> bool:
        try:
            async with self._client() as client:
                resp = await client.post("/upload/delete", json={"url": url})
        except httpx.HTTPError as exc:
            logger.warning("File deletion request failed: %s", exc)
            return False
        return resp.is_success


def _error_detail(resp: httpx.Response) -> str | None:
    try:
        return resp.json().get("detail")
    except ValueError:
        return None


def get_upload_target(config: Settings = settings) -> UploadEndpoint:
    """Client-side storage target for the configured environment."""
    return UploadEndpoint(
        config.record_service_url,
        target=config.storage_backend,
        timeout=config.http_timeout_seconds,
    )
