"""
Tests for the draft model: structured patching, serialization and the
record field mapping.
"""
from datetime import date, datetime

import pytest

from evisa.models.draft import (
    PendingFile,
    VisaApplicationDraft,
    draft_from_dict,
    draft_from_record,
    draft_to_dict,
    draft_to_record_fields,
    merge_draft,
    parse_date,
)
from evisa.models.record import RECORD_DEFAULTS


def test_merge_returns_new_draft():
    draft = VisaApplicationDraft()
    merged = merge_draft(draft, {"service_type": {"visa_type": "business"}})
    assert merged.service_type.visa_type == "business"
    assert draft.service_type.visa_type == "tourist"


def test_merge_keeps_absent_keys_and_clears_none():
    draft = draft_from_dict({"personal_info": {"full_name": "Alex", "nationality": "Canada"}})
    merged = merge_draft(draft, {"personal_info": {"nationality": None}})
    assert merged.personal_info.full_name == "Alex"
    assert merged.personal_info.nationality is None


def test_none_resets_a_whole_section():
    draft = draft_from_dict({"personal_info": {"agreements": {"terms_and_conditions": True}}})
    merged = merge_draft(draft, {"personal_info": {"agreements": None}})
    assert merged.personal_info.agreements.terms_and_conditions is False


def test_strict_merge_rejects_unknown_keys():
    with pytest.raises(KeyError):
        merge_draft(VisaApplicationDraft(), {"personal_info": {"shoe_size": 42}})
    lenient = merge_draft(VisaApplicationDraft(), {"personal_info": {"shoe_size": 42}}, strict=False)
    assert lenient == VisaApplicationDraft()


def test_date_strings_are_rehydrated():
    draft = draft_from_dict({"service_type": {"entry_date": "2026-04-01T00:00:00.000Z"}})
    assert draft.service_type.entry_date == date(2026, 4, 1)


def test_parse_date_variants():
    assert parse_date("") is None
    assert parse_date(datetime(2026, 4, 1, 12, 30)) == date(2026, 4, 1)
    assert parse_date("2026-04-01") == date(2026, 4, 1)
    with pytest.raises(ValueError):
        parse_date("01/04/2026")


def test_to_dict_serializes_dates_and_drops_pending_files():
    draft = draft_from_dict({
        "service_type": {"entry_date": "2026-04-01"},
        "personal_info": {"file_uploads": {"passport_scan": "/uploads/a.png"}},
    })
    draft.personal_info.file_uploads.portrait_photo = PendingFile("p.png", "image/png", b"x")

    data = draft_to_dict(draft)

    assert data["service_type"]["entry_date"] == "2026-04-01"
    assert data["personal_info"]["file_uploads"] == {
        "passport_scan": "/uploads/a.png",
        "portrait_photo": None,
    }
    kept = draft_to_dict(draft, keep_pending_files=True)
    assert isinstance(kept["personal_info"]["file_uploads"]["portrait_photo"], PendingFile)


def test_record_fields_skip_pending_files(application_data):
    draft = draft_from_dict(application_data)
    draft.personal_info.file_uploads.portrait_photo = PendingFile("p.png", "image/png", b"x")

    fields = draft_to_record_fields(draft)

    assert fields["passport_scan_url"] == "/uploads/existing/passport.jpg"
    assert "portrait_photo_url" not in fields
    assert fields["contact_full_name"] == "Alex Morgan"
    assert fields["emergency_contact_relationship"] == "Sibling"
    assert fields["terms_accepted"] is True
    assert fields["entry_date"] == date(2026, 4, 1)


def test_record_round_trip(application_data):
    draft = draft_from_dict(application_data)
    fields = draft_to_record_fields(draft)
    assert draft_from_record(fields) == draft


def test_pending_file_from_path(tmp_path):
    path = tmp_path / "scan.jpg"
    path.write_bytes(b"\xff\xd8\xff")
    pending = PendingFile.from_path(path)
    assert pending.content_type == "image/jpeg"
    assert pending.size == 3


def test_record_fields_clear_empty_file_slots(application_data):
    draft = draft_from_dict(application_data)
    draft.personal_info.file_uploads.passport_scan = None

    fields = draft_to_record_fields(draft)

    assert fields["passport_scan_url"] == ""
    assert fields["portrait_photo_url"] == "/uploads/existing/portrait.png"


def test_record_fields_cover_every_record_field():
    assert set(draft_to_record_fields(VisaApplicationDraft())) == set(RECORD_DEFAULTS)
