"""
Vietnam eVisa Portal — Application Record

The server-owned, persisted form of a visa application. Records are flat:
one field per form input plus identity, status and timestamps.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApplicationStatus(str, Enum):
    """Record lifecycle. DRAFT → SUBMITTED is one-way."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


VisaTypeValue = Literal["tourist", "business", "transit", "diplomatic"]


# Value applied for every field a create-draft request leaves out (or
# sends as null). Updates reset a field to this value when sent as null.
RECORD_DEFAULTS: dict[str, Any] = {
    "number_of_applicants": 1,
    "visa_type": "tourist",
    "visa_duration": "",
    "purpose_of_visit": "",
    "entry_date": None,
    "exit_date": None,
    "processing_time": "",
    "full_name": "",
    "date_of_birth": None,
    "nationality": "",
    "passport_number": "",
    "passport_issue_date": None,
    "passport_expiry_date": None,
    "passport_issuing_country": "",
    "contact_full_name": "",
    "email_address": "",
    "phone_number": "",
    "current_address": "",
    "vietnam_address": "",
    "emergency_contact_name": "",
    "emergency_contact_phone": "",
    "emergency_contact_email": "",
    "emergency_contact_relationship": "",
    "passport_scan_url": "",
    "portrait_photo_url": "",
    "information_confirmed": False,
    "terms_accepted": False,
}


class ApplicationFields(BaseModel):
    """Every record field, all optional — the shape of draft saves."""

    model_config = ConfigDict(extra="forbid")

    number_of_applicants: int | None = Field(default=None, ge=1, le=10)
    visa_type: VisaTypeValue | None = None
    visa_duration: str | None = None
    purpose_of_visit: str | None = Field(default=None, max_length=500)
    entry_date: date | None = None
    exit_date: date | None = None
    processing_time: str | None = None
    full_name: str | None = Field(default=None, max_length=100)
    date_of_birth: date | None = None
    nationality: str | None = None
    passport_number: str | None = Field(default=None, max_length=20)
    passport_issue_date: date | None = None
    passport_expiry_date: date | None = None
    passport_issuing_country: str | None = None
    contact_full_name: str | None = Field(default=None, max_length=100)
    email_address: str | None = None
    phone_number: str | None = None
    current_address: str | None = Field(default=None, max_length=500)
    vietnam_address: str | None = Field(default=None, max_length=500)
    emergency_contact_name: str | None = Field(default=None, max_length=100)
    emergency_contact_phone: str | None = None
    emergency_contact_email: str | None = None
    emergency_contact_relationship: str | None = Field(default=None, max_length=50)
    passport_scan_url: str | None = None
    portrait_photo_url: str | None = None
    information_confirmed: bool | None = None
    terms_accepted: bool | None = None


class SubmissionFields(ApplicationFields):
    """Final submission: the identifying fields must be filled."""

    full_name: str = Field(..., min_length=1, max_length=100)
    email_address: str = Field(..., min_length=3)
    phone_number: str = Field(..., min_length=1)
    nationality: str = Field(..., min_length=1)
    passport_number: str = Field(..., min_length=1, max_length=20)
    visa_type: VisaTypeValue
    processing_time: str = Field(..., min_length=1)
    entry_date: date


class ApplicationRecord(BaseModel):
    """A persisted visa application."""

    id: str
    status: ApplicationStatus = ApplicationStatus.DRAFT
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None = None

    number_of_applicants: int = 1
    visa_type: VisaTypeValue = "tourist"
    visa_duration: str = ""
    purpose_of_visit: str = ""
    entry_date: date | None = None
    exit_date: date | None = None
    processing_time: str = ""
    full_name: str = ""
    date_of_birth: date | None = None
    nationality: str = ""
    passport_number: str = ""
    passport_issue_date: date | None = None
    passport_expiry_date: date | None = None
    passport_issuing_country: str = ""
    contact_full_name: str = ""
    email_address: str = ""
    phone_number: str = ""
    current_address: str = ""
    vietnam_address: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    emergency_contact_email: str = ""
    emergency_contact_relationship: str = ""
    passport_scan_url: str = ""
    portrait_photo_url: str = ""
    information_confirmed: bool = False
    terms_accepted: bool = False

    @property
    def is_draft(self) -> bool:
        return self.status == ApplicationStatus.DRAFT

    def field_values(self) -> dict[str, Any]:
        """Only the form fields (no identity/status/timestamps)."""
        return self.model_dump(include=set(RECORD_DEFAULTS))
