"""
Tests for the storage backends: local disk, remote blob API, and the
client view of this service's own /upload routes.
"""
import asyncio

import httpx
import pytest

from evisa.api.routes import get_local_storage
from evisa.errors import TransportError, UploadError
from evisa.server import app
from evisa.storage import (
    BlobStorage,
    LocalFileStorage,
    UploadEndpoint,
    is_local_url,
    sanitize_path,
)


@pytest.fixture
def local_storage(tmp_path):
    return LocalFileStorage(tmp_path / "uploads")


# ── Path handling ────────────────────────────────────────────────────

def test_sanitize_path_strips_traversal_and_leading_slashes():
    assert sanitize_path("../../etc/passwd") == "etc/passwd"
    assert sanitize_path("/uploads/app/x.png") == "uploads/app/x.png"
    assert is_local_url("/uploads/a.png")
    assert not is_local_url("https://blob.example.net/a.png")


# ── Local disk ───────────────────────────────────────────────────────

def test_local_upload_writes_under_root(local_storage):
    url = asyncio.run(local_storage.upload_object(b"data", "app-1/scan.png", "image/png"))
    assert url == "/uploads/app-1/scan.png"
    assert (local_storage.root / "app-1" / "scan.png").read_bytes() == b"data"


def test_local_upload_cannot_escape_root(local_storage):
    url = asyncio.run(local_storage.upload_object(b"x", "../../outside.png", "image/png"))
    assert url == "/uploads/outside.png"
    assert (local_storage.root / "outside.png").exists()
    assert not (local_storage.root.parent.parent / "outside.png").exists()


def test_local_upload_requires_a_path(local_storage):
    with pytest.raises(UploadError):
        asyncio.run(local_storage.upload_object(b"x", "/", "image/png"))


def test_local_delete(local_storage):
    url = asyncio.run(local_storage.upload_object(b"x", "app-1/a.png", "image/png"))
    assert asyncio.run(local_storage.delete_object(url))
    assert not (local_storage.root / "app-1" / "a.png").exists()
    # already gone
    assert not asyncio.run(local_storage.delete_object(url))


def test_local_delete_of_external_url_is_a_reported_success(local_storage):
    assert asyncio.run(local_storage.delete_object("https://blob.example.net/a.png"))


# ── Remote blob API ──────────────────────────────────────────────────

def test_blob_upload_puts_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = request.content
        return httpx.Response(200, json={"url": "https://blob.example.net/app-1/a.png"})

    blob = BlobStorage("https://blob.example.net/api", "secret", transport=httpx.MockTransport(handler))
    url = asyncio.run(blob.upload_object(b"img", "app-1/a.png", "image/png"))

    assert url == "https://blob.example.net/app-1/a.png"
    assert seen["method"] == "PUT"
    assert seen["url"] == "https://blob.example.net/api/app-1/a.png"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == b"img"


def test_blob_http_error_becomes_transport_error():
    blob = BlobStorage(
        "https://blob.example.net/api", "secret",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(TransportError):
        asyncio.run(blob.upload_object(b"img", "a.png", "image/png"))


def test_blob_timeout_becomes_transport_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    blob = BlobStorage("https://blob.example.net/api", "secret", transport=httpx.MockTransport(handler))
    with pytest.raises(TransportError):
        asyncio.run(blob.upload_object(b"img", "a.png", "image/png"))


# ── Upload routes seen from the client ───────────────────────────────

@pytest.fixture
def upload_endpoint(local_storage):
    app.dependency_overrides[get_local_storage] = lambda: local_storage
    yield UploadEndpoint("http://testserver", transport=httpx.ASGITransport(app=app))
    app.dependency_overrides.clear()


def test_upload_endpoint_round_trip(upload_endpoint, local_storage, portrait_photo):
    url = asyncio.run(upload_endpoint.upload_object(
        portrait_photo.content, "app-7/portrait.png", "image/png",
    ))
    assert url == "/uploads/app-7/portrait.png"
    assert (local_storage.root / "app-7" / "portrait.png").exists()

    assert asyncio.run(upload_endpoint.delete_object(url))
    assert not asyncio.run(upload_endpoint.delete_object(url))


def test_upload_endpoint_surfaces_server_rejection(upload_endpoint):
    with pytest.raises(UploadError) as exc_info:
        asyncio.run(upload_endpoint.upload_object(b"GIF89a", "app-7/a.gif", "image/gif"))
    assert exc_info.value.message == "Only JPG, JPEG, and PNG files are allowed"


def test_upload_endpoint_posts_expected_form_fields():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = request.content
        return httpx.Response(200, json={"url": "https://blob.example.net/x.png"})

    endpoint = UploadEndpoint("http://portal", target="blob", transport=httpx.MockTransport(handler))
    url = asyncio.run(endpoint.upload_object(b"img", "app-1/x.png", "image/png"))

    assert url == "https://blob.example.net/x.png"
    assert seen["path"] == "/upload/blob"
    assert b'name="filename"' in seen["body"]
    assert b"x.png" in seen["body"]


def test_blob_route_without_configuration(upload_endpoint):
    endpoint = UploadEndpoint("http://testserver", target="blob", transport=httpx.ASGITransport(app=app))
    with pytest.raises(UploadError) as exc_info:
        asyncio.run(endpoint.upload_object(b"img", "a.png", "image/png"))
    assert exc_info.value.message == "Blob storage is not configured"
