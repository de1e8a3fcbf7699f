"""
Tests for the client-local key/value stores and draft persistence.
"""
import json
from datetime import date

from cryptography.fernet import Fernet

from evisa.local_store import (
    APPLICATION_ID_KEY,
    DRAFT_KEY,
    DraftPersistence,
    JsonFileLocalStore,
    MemoryLocalStore,
)
from evisa.models.draft import PendingFile, draft_from_dict


def test_json_file_store_survives_reopen(tmp_path):
    path = tmp_path / "store.json"
    JsonFileLocalStore(path).set("k", "v")
    reopened = JsonFileLocalStore(path)
    assert reopened.get("k") == "v"
    reopened.remove("k")
    assert JsonFileLocalStore(path).get("k") is None


def test_encrypted_store_keeps_plaintext_off_disk(tmp_path):
    path = tmp_path / "store.json"
    key = Fernet.generate_key().decode()
    store = JsonFileLocalStore(path, key)
    store.set(APPLICATION_ID_KEY, "alex.morgan@example.com")

    assert "alex.morgan" not in path.read_text()
    assert store.get(APPLICATION_ID_KEY) == "alex.morgan@example.com"
    # a different key cannot read it
    other = JsonFileLocalStore(path, Fernet.generate_key().decode())
    assert other.get(APPLICATION_ID_KEY) is None


def test_corrupt_store_file_reads_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json")
    assert JsonFileLocalStore(path).get("anything") is None


def test_draft_round_trip_rehydrates_dates(application_data):
    persistence = DraftPersistence(MemoryLocalStore())
    draft = draft_from_dict(application_data)

    persistence.save_draft(draft)
    restored = persistence.load_draft()

    assert restored == draft
    assert restored.service_type.entry_date == date(2026, 4, 1)
    assert isinstance(restored.personal_info.date_of_birth, date)


def test_pending_files_are_not_persisted(application_data):
    persistence = DraftPersistence(MemoryLocalStore())
    draft = draft_from_dict(application_data)
    draft.personal_info.file_uploads.portrait_photo = PendingFile("p.png", "image/png", b"x")

    persistence.save_draft(draft)
    restored = persistence.load_draft()

    assert restored.personal_info.file_uploads.portrait_photo is None
    assert restored.personal_info.file_uploads.passport_scan == "/uploads/existing/passport.jpg"


def test_unreadable_snapshot_is_discarded():
    store = MemoryLocalStore({DRAFT_KEY: json.dumps({"service_type": {"entry_date": "April"}})})
    persistence = DraftPersistence(store)
    assert persistence.load_draft() is None
    assert DRAFT_KEY not in store


def test_snapshot_with_unknown_keys_still_loads():
    store = MemoryLocalStore({DRAFT_KEY: json.dumps({
        "service_type": {"visa_type": "business", "legacy_field": 1},
        "ui_state": {"step": 2},
    })})
    restored = DraftPersistence(store).load_draft()
    assert restored.service_type.visa_type == "business"


def test_application_id_and_clear():
    store = MemoryLocalStore()
    persistence = DraftPersistence(store)
    persistence.save_application_id("app-1")
    persistence.save_draft(draft_from_dict({}))
    assert persistence.load_application_id() == "app-1"

    persistence.clear()

    assert persistence.load_application_id() is None
    assert persistence.load_draft() is None
