"""
Vietnam eVisa Portal — Configuration

Centralizes runtime settings: server, storage target for uploaded files,
record-service endpoint, draft autosave timing, local draft store, and
HTTP hardening. Uses pydantic-settings so values can be overridden with
environment variables or a .env file.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


# ── Paths ────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
UPLOADS_DIR = DATA_DIR / "uploads"
LOCAL_STORE_FILE = DATA_DIR / "local_store.json"

UPLOADS_DIR.mkdir(parents=True, exist_ok=True)


class Settings(BaseSettings):
    """Runtime settings — override via env vars or .env file."""

    # ── Application ──────────────────────────────────────────────────
    app_name: str = "Vietnam eVisa Portal"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # ── Server ───────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ── File storage ─────────────────────────────────────────────────
    # "local" writes under uploads_dir (development),
    # "blob" pushes to the remote blob API (production).
    storage_backend: Literal["local", "blob"] = "local"
    uploads_dir: Path = UPLOADS_DIR
    public_upload_prefix: str = "/uploads"
    blob_api_url: str = ""
    blob_api_token: str = ""

    # ── Record service (client side) ─────────────────────────────────
    record_service_url: str = "http://localhost:8000"
    http_timeout_seconds: float = 30.0

    # ── Draft autosave / local store ─────────────────────────────────
    autosave_delay_seconds: float = 1.0
    local_store_path: Path = LOCAL_STORE_FILE
    # Fernet key; when set, local store values are encrypted at rest.
    # Generate with:
    # python -c "from cryptography.fernet import Fernet; \
    #   print(Fernet.generate_key().decode())"
    local_store_key: str = ""

    # ── Security / CORS ──────────────────────────────────────────────
    allowed_origins: list[str] = ["http://localhost:3000"]
    enable_hsts: bool = False            # enable in production behind HTTPS

    model_config = {
        "env_file": str(BASE_DIR.parent / ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
