"""
Vietnam eVisa Portal — Application Draft

The working record the wizard edits while the applicant fills the form.
It is a tree of small dataclasses (service type + personal info and its
sub-sections) with one structured patch operation:

  - keys present in a patch override the current value
  - keys absent from a patch keep the current value
  - a dict patched onto a sub-section merges field by field
  - ``None`` clears a value
  - unknown keys are rejected (strict) or skipped (lenient restore)

Date fields accept ``date`` objects or ISO strings; strings are re-hydrated
into ``date`` values, which is how a JSON snapshot round-trips.
"""

from __future__ import annotations

import copy
import mimetypes
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping, Union


# ── Files attached to the draft ──────────────────────────────────────

@dataclass
class PendingFile:
    """A file chosen locally but not uploaded yet."""
    filename: str
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> "PendingFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or guessed or "application/octet-stream",
            content=path.read_bytes(),
        )


# A file slot holds a pending local file, the URL of an uploaded one, or nothing
FileRef = Union[PendingFile, str, None]


# ── Draft sections ───────────────────────────────────────────────────

@dataclass
class ServiceType:
    number_of_applicants: int = 1
    visa_type: str = "tourist"
    visa_duration: str = ""
    purpose_of_visit: str = ""
    entry_date: date | None = None
    exit_date: date | None = None
    processing_time: str = ""


@dataclass
class ContactInfo:
    full_name: str = ""
    phone_number: str = ""
    email_address: str = ""
    current_address: str = ""
    vietnam_address: str = ""


@dataclass
class EmergencyContact:
    full_name: str = ""
    phone_number: str = ""
    email_address: str = ""
    relationship: str = ""


@dataclass
class FileUploads:
    passport_scan: FileRef = None
    portrait_photo: FileRef = None


@dataclass
class Agreements:
    information_confirmation: bool = False
    terms_and_conditions: bool = False


@dataclass
class PersonalInfo:
    full_name: str = ""
    date_of_birth: date | None = None
    nationality: str = ""
    passport_number: str = ""
    passport_issue_date: date | None = None
    passport_expiry_date: date | None = None
    passport_issuing_country: str = ""
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    emergency_contact: EmergencyContact = field(default_factory=EmergencyContact)
    file_uploads: FileUploads = field(default_factory=FileUploads)
    agreements: Agreements = field(default_factory=Agreements)


@dataclass
class VisaApplicationDraft:
    service_type: ServiceType = field(default_factory=ServiceType)
    personal_info: PersonalInfo = field(default_factory=PersonalInfo)


DATE_FIELDS = frozenset({
    "entry_date",
    "exit_date",
    "date_of_birth",
    "passport_issue_date",
    "passport_expiry_date",
})

FILE_SLOTS = ("passport_scan", "portrait_photo")


def parse_date(value: Any) -> date | None:
    """Coerce an ISO date/datetime string (or date/datetime) into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    raise TypeError(f"Cannot interpret {value!r} as a date")


# ── Structured patch ─────────────────────────────────────────────────

def _apply_patch(target: Any, patch: Mapping[str, Any], *, strict: bool, prefix: str) -> None:
    known = {f.name for f in fields(target)}
    for key, value in patch.items():
        path = f"{prefix}{key}"
        if key not in known:
            if strict:
                raise KeyError(f"Unknown draft field '{path}'")
            continue

        current = getattr(target, key)
        if is_dataclass(current) and isinstance(value, Mapping):
            _apply_patch(current, value, strict=strict, prefix=f"{path}.")
        elif is_dataclass(current) and value is None:
            setattr(target, key, type(current)())
        elif key in DATE_FIELDS:
            setattr(target, key, parse_date(value))
        else:
            setattr(target, key, value)


def merge_draft(
    draft: VisaApplicationDraft,
    patch: Mapping[str, Any],
    *,
    strict: bool = True,
) -> VisaApplicationDraft:
    """Return a new draft with ``patch`` applied (the input is not modified)."""
    merged = copy.deepcopy(draft)
    _apply_patch(merged, patch, strict=strict, prefix="")
    return merged


# ── Serialization ────────────────────────────────────────────────────

def _to_plain(obj: Any, *, keep_pending_files: bool) -> Any:
    if is_dataclass(obj) and not isinstance(obj, PendingFile):
        return {
            f.name: _to_plain(getattr(obj, f.name), keep_pending_files=keep_pending_files)
            for f in fields(obj)
        }
    if isinstance(obj, PendingFile):
        return obj if keep_pending_files else None
    if isinstance(obj, date):
        return obj.isoformat()
    return obj


def draft_to_dict(draft: Any, *, keep_pending_files: bool = False) -> dict:
    """
    Plain dict view of a draft (or any section of one).

    Dates become ISO strings. Pending files cannot be represented in JSON
    and become None unless ``keep_pending_files`` is set; uploaded URLs
    are kept.
    """
    return _to_plain(draft, keep_pending_files=keep_pending_files)


def draft_from_dict(data: Mapping[str, Any], *, strict: bool = False) -> VisaApplicationDraft:
    """Build a draft from defaults plus ``data`` (e.g. a restored snapshot)."""
    return merge_draft(VisaApplicationDraft(), data, strict=strict)


# ── Record mapping ───────────────────────────────────────────────────

# flat record field → dotted path of the same value in the draft
RECORD_FIELD_PATHS: dict[str, str] = {
    "number_of_applicants": "service_type.number_of_applicants",
    "visa_type": "service_type.visa_type",
    "visa_duration": "service_type.visa_duration",
    "purpose_of_visit": "service_type.purpose_of_visit",
    "entry_date": "service_type.entry_date",
    "exit_date": "service_type.exit_date",
    "processing_time": "service_type.processing_time",
    "full_name": "personal_info.full_name",
    "date_of_birth": "personal_info.date_of_birth",
    "nationality": "personal_info.nationality",
    "passport_number": "personal_info.passport_number",
    "passport_issue_date": "personal_info.passport_issue_date",
    "passport_expiry_date": "personal_info.passport_expiry_date",
    "passport_issuing_country": "personal_info.passport_issuing_country",
    "contact_full_name": "personal_info.contact_info.full_name",
    "email_address": "personal_info.contact_info.email_address",
    "phone_number": "personal_info.contact_info.phone_number",
    "current_address": "personal_info.contact_info.current_address",
    "vietnam_address": "personal_info.contact_info.vietnam_address",
    "emergency_contact_name": "personal_info.emergency_contact.full_name",
    "emergency_contact_phone": "personal_info.emergency_contact.phone_number",
    "emergency_contact_email": "personal_info.emergency_contact.email_address",
    "emergency_contact_relationship": "personal_info.emergency_contact.relationship",
    "passport_scan_url": "personal_info.file_uploads.passport_scan",
    "portrait_photo_url": "personal_info.file_uploads.portrait_photo",
    "information_confirmed": "personal_info.agreements.information_confirmation",
    "terms_accepted": "personal_info.agreements.terms_and_conditions",
}

RECORD_FIELD_BY_PATH: dict[str, str] = {path: name for name, path in RECORD_FIELD_PATHS.items()}


def _lookup(draft: VisaApplicationDraft, path: str) -> Any:
    value: Any = draft
    for part in path.split("."):
        value = getattr(value, part)
    return value


def draft_to_record_fields(draft: VisaApplicationDraft) -> dict[str, Any]:
    """
    Flatten a draft into the full set of record fields.

    Empty file slots are sent as "" so a removed file is cleared on the
    record. Slots still holding a pending local file are left out.
    """
    record: dict[str, Any] = {}
    for name, path in RECORD_FIELD_PATHS.items():
        value = _lookup(draft, path)
        if isinstance(value, PendingFile):
            continue
        if name.endswith("_url"):
            value = value or ""
        record[name] = value
    return record


def draft_from_record(record: Mapping[str, Any]) -> VisaApplicationDraft:
    """Hydrate a draft from a server record (dict form)."""
    get = record.get
    return draft_from_dict({
        "service_type": {
            "number_of_applicants": get("number_of_applicants") or 1,
            "visa_type": get("visa_type") or "tourist",
            "visa_duration": get("visa_duration") or "",
            "purpose_of_visit": get("purpose_of_visit") or "",
            "entry_date": get("entry_date"),
            "exit_date": get("exit_date"),
            "processing_time": get("processing_time") or "",
        },
        "personal_info": {
            "full_name": get("full_name") or "",
            "date_of_birth": get("date_of_birth"),
            "nationality": get("nationality") or "",
            "passport_number": get("passport_number") or "",
            "passport_issue_date": get("passport_issue_date"),
            "passport_expiry_date": get("passport_expiry_date"),
            "passport_issuing_country": get("passport_issuing_country") or "",
            "contact_info": {
                "full_name": get("contact_full_name") or get("full_name") or "",
                "phone_number": get("phone_number") or "",
                "email_address": get("email_address") or "",
                "current_address": get("current_address") or "",
                "vietnam_address": get("vietnam_address") or "",
            },
            "emergency_contact": {
                "full_name": get("emergency_contact_name") or "",
                "phone_number": get("emergency_contact_phone") or "",
                "email_address": get("emergency_contact_email") or "",
                "relationship": get("emergency_contact_relationship") or "",
            },
            "file_uploads": {
                "passport_scan": get("passport_scan_url") or None,
                "portrait_photo": get("portrait_photo_url") or None,
            },
            "agreements": {
                "information_confirmation": bool(get("information_confirmed")),
                "terms_and_conditions": bool(get("terms_accepted")),
            },
        },
    })
