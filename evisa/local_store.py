"""
Vietnam eVisa Portal — Client-Local Draft Store

A small key → string store that survives reloads, plus the draft
persistence built on top of it. Two keys are in use:

  visa-application-draft   JSON snapshot of the in-progress draft
  current-application-id   id of the server record the draft belongs to

Both are cleared after a successful submission. When a Fernet key is
configured, values are encrypted before they reach disk.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from evisa.config import settings
from evisa.models.draft import VisaApplicationDraft, draft_from_dict, draft_to_dict

logger = logging.getLogger(__name__)

DRAFT_KEY = "visa-application-draft"
APPLICATION_ID_KEY = "current-application-id"


class LocalStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryLocalStore:
    """Process-local store, handy for tests and headless runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._values


class JsonFileLocalStore:
    """
    Store backed by a single JSON file. Every write rewrites the file.
    With ``key`` set, each value is Fernet-encrypted; values that fail to
    decrypt read back as missing.
    """

    def __init__(self, path: Path | str, key: str = ""):
        self.path = Path(path)
        self._fernet = Fernet(key.encode()) if key else None
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Local store %s is unreadable; starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, values: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(values), encoding="utf-8")

    def get(self, key: str) -> str | None:
        with self._lock:
            raw = self._read_all().get(key)
        if raw is None or self._fernet is None:
            return raw
        try:
            return self._fernet.decrypt(raw.encode()).decode()
        except InvalidToken:
            logger.warning("Could not decrypt local store value for %s", key)
            return None

    def set(self, key: str, value: str) -> None:
        stored = self._fernet.encrypt(value.encode()).decode() if self._fernet else value
        with self._lock:
            values = self._read_all()
            values[key] = stored
            self._write_all(values)

    def remove(self, key: str) -> None:
        with self._lock:
            values = self._read_all()
            if values.pop(key, None) is not None:
                self._write_all(values)


def get_default_local_store() -> JsonFileLocalStore:
    return JsonFileLocalStore(settings.local_store_path, settings.local_store_key)


# ── Draft persistence ────────────────────────────────────────────────

class DraftPersistence:
    """Reads and writes the wizard's snapshot and record id in a LocalStore."""

    def __init__(self, store: LocalStore):
        self.store = store

    def save_draft(self, draft: VisaApplicationDraft) -> None:
        self.store.set(DRAFT_KEY, json.dumps(draft_to_dict(draft)))

    def load_draft(self) -> VisaApplicationDraft | None:
        """The last saved snapshot, dates re-hydrated; None if absent or unusable."""
        raw = self.store.get(DRAFT_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("snapshot is not an object")
            return draft_from_dict(data, strict=False)
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable draft snapshot: %s", exc)
            self.store.remove(DRAFT_KEY)
            return None

    def save_application_id(self, application_id: str) -> None:
        self.store.set(APPLICATION_ID_KEY, application_id)

    def load_application_id(self) -> str | None:
        return self.store.get(APPLICATION_ID_KEY) or None

    def clear_application_id(self) -> None:
        self.store.remove(APPLICATION_ID_KEY)

    def clear(self) -> None:
        self.store.remove(DRAFT_KEY)
        self.store.remove(APPLICATION_ID_KEY)
        logger.info("Cleared local draft state")
