"""
Vietnam eVisa Portal — Validation Rules

Declarative field rules (pydantic models) and ordered cross-field rules for
the two form steps. Every check returns a ValidationResult: pass/fail plus
a field-path → message mapping ready to show next to the inputs.

Field rules evaluate independently of each other. Empty values (None, "",
False) count as "not provided": in full mode that is a "required" error, in
partial (draft) mode it is simply skipped. A cross-field rule only runs once
every field it reads is present and passed its own field rules.

Cross-field rules, in evaluation order:
  1. exit date strictly after entry date
  2. entry date strictly in the future
  3. applicant is 18+ (calendar-year difference only, birthdays ignored)
  4. passport expiry strictly after issue
  5. passport valid for more than 6 months past today, and more than
     6 months past the entry date
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, is_dataclass
from datetime import date
from typing import Any, Callable, Literal, Mapping

import pydantic
from pydantic import BaseModel, EmailStr, Field

from evisa.errors import ValidationError
from evisa.models.draft import DATE_FIELDS, draft_to_dict, parse_date
from evisa.visa_options import is_duration_offered


PHONE_PATTERN = r"^[+]?[(]?[\d\s()-]{10,20}$"
PASSPORT_PATTERN = r"^[A-Z0-9]+$"
MINIMUM_AGE = 18
PASSPORT_VALIDITY_MONTHS = 6


# ── Field rules ──────────────────────────────────────────────────────

class ServiceTypeRules(BaseModel):
    number_of_applicants: int = Field(ge=1, le=10)
    visa_type: Literal["tourist", "business", "transit", "diplomatic"]
    visa_duration: Literal[
        "single",
        "multiple-1month",
        "multiple-3months",
        "multiple-6months",
        "multiple-1year",
        "multiple-2years",
        "multiple-3years",
    ]
    purpose_of_visit: str = Field(min_length=1, max_length=500)
    entry_date: date
    exit_date: date
    processing_time: Literal[
        "normal",
        "urgent",
        "super-urgent",
        "express",
        "emergency",
        "weekend-holiday",
    ]


class ContactInfoRules(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(min_length=1, pattern=PHONE_PATTERN)
    email_address: EmailStr
    current_address: str = Field(min_length=1, max_length=500)
    vietnam_address: str = Field(min_length=1, max_length=500)


class EmergencyContactRules(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(min_length=1, pattern=PHONE_PATTERN)
    email_address: EmailStr
    relationship: str = Field(min_length=1, max_length=50)


class FileUploadRules(BaseModel):
    # pending file or uploaded URL; presence is all that is checked here
    passport_scan: Any
    portrait_photo: Any


class AgreementsRules(BaseModel):
    information_confirmation: Literal[True]
    terms_and_conditions: Literal[True]


class PersonalInfoRules(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    nationality: str = Field(min_length=1)
    passport_number: str = Field(min_length=1, max_length=20, pattern=PASSPORT_PATTERN)
    passport_issue_date: date
    passport_expiry_date: date
    passport_issuing_country: str = Field(min_length=1)
    contact_info: ContactInfoRules
    emergency_contact: EmergencyContactRules
    file_uploads: FileUploadRules
    agreements: AgreementsRules


# field path → pydantic error type → message ("default" catches the rest)
FIELD_MESSAGES: dict[str, dict[str, str]] = {
    "number_of_applicants": {
        "greater_than_equal": "At least 1 applicant required",
        "less_than_equal": "Maximum 10 applicants allowed",
        "default": "Number of applicants must be a whole number",
    },
    "visa_type": {"default": "Please select a visa type"},
    "visa_duration": {"default": "Please select visa duration"},
    "purpose_of_visit": {
        "string_too_long": "Purpose too long",
        "default": "Purpose of visit is required",
    },
    "entry_date": {
        "missing": "Entry date is required",
        "default": "Entry date must be a valid date",
    },
    "exit_date": {
        "missing": "Exit date is required",
        "default": "Exit date must be a valid date",
    },
    "processing_time": {"default": "Please select processing time"},
    "full_name": {
        "string_too_long": "Name too long",
        "default": "Full name is required",
    },
    "date_of_birth": {
        "missing": "Date of birth is required",
        "default": "Date of birth must be a valid date",
    },
    "nationality": {"default": "Nationality is required"},
    "passport_number": {
        "string_too_long": "Passport number too long",
        "string_pattern_mismatch": "Passport number must contain only letters and numbers",
        "default": "Passport number is required",
    },
    "passport_issue_date": {
        "missing": "Passport issue date is required",
        "default": "Passport issue date must be a valid date",
    },
    "passport_expiry_date": {
        "missing": "Passport expiry date is required",
        "default": "Passport expiry date must be a valid date",
    },
    "passport_issuing_country": {"default": "Passport issuing country is required"},
    "contact_info.full_name": {
        "string_too_long": "Name too long",
        "default": "Full name is required",
    },
    "contact_info.phone_number": {
        "string_pattern_mismatch": "Invalid phone number format",
        "default": "Phone number is required",
    },
    "contact_info.email_address": {
        "missing": "Email address is required",
        "default": "Invalid email format",
    },
    "contact_info.current_address": {
        "string_too_long": "Address too long",
        "default": "Current address is required",
    },
    "contact_info.vietnam_address": {
        "string_too_long": "Address too long",
        "default": "Vietnam address is required",
    },
    "emergency_contact.full_name": {
        "string_too_long": "Name too long",
        "default": "Emergency contact name is required",
    },
    "emergency_contact.phone_number": {
        "string_pattern_mismatch": "Invalid phone number format",
        "default": "Emergency contact phone is required",
    },
    "emergency_contact.email_address": {
        "missing": "Emergency contact email is required",
        "default": "Invalid email format",
    },
    "emergency_contact.relationship": {
        "string_too_long": "Relationship too long",
        "default": "Relationship is required",
    },
    "file_uploads.passport_scan": {"default": "Passport scan is required"},
    "file_uploads.portrait_photo": {"default": "Portrait photo is required"},
    "agreements.information_confirmation": {
        "default": "You must confirm the accuracy of information",
    },
    "agreements.terms_and_conditions": {
        "default": "You must accept the terms and conditions",
    },
}


# ── Results ──────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.valid

    def add(self, path: str, message: str) -> None:
        # first message for a path wins
        self.errors.setdefault(path, message)

    def merge(self, other: "ValidationResult", prefix: str = "") -> None:
        for path, message in other.errors.items():
            self.add(f"{prefix}{path}", message)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


# ── Cross-field rules ────────────────────────────────────────────────

def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


@dataclass(frozen=True)
class CrossFieldRule:
    path: str
    requires: tuple[str, ...]
    check: Callable[[dict[str, date | str], date], bool]
    message: str


SERVICE_TYPE_CROSS_RULES: tuple[CrossFieldRule, ...] = (
    CrossFieldRule(
        path="visa_duration",
        requires=("visa_type", "visa_duration"),
        check=lambda v, today: is_duration_offered(v["visa_type"], v["visa_duration"]),
        message="Selected duration is not available for this visa type",
    ),
    CrossFieldRule(
        path="exit_date",
        requires=("entry_date", "exit_date"),
        check=lambda v, today: v["exit_date"] > v["entry_date"],
        message="Exit date must be after entry date",
    ),
    CrossFieldRule(
        path="entry_date",
        requires=("entry_date",),
        check=lambda v, today: v["entry_date"] > today,
        message="Entry date must be in the future",
    ),
)

PERSONAL_INFO_CROSS_RULES: tuple[CrossFieldRule, ...] = (
    CrossFieldRule(
        path="date_of_birth",
        requires=("date_of_birth",),
        check=lambda v, today: today.year - v["date_of_birth"].year >= MINIMUM_AGE,
        message="Applicant must be at least 18 years old",
    ),
    CrossFieldRule(
        path="passport_expiry_date",
        requires=("passport_issue_date", "passport_expiry_date"),
        check=lambda v, today: v["passport_expiry_date"] > v["passport_issue_date"],
        message="Passport expiry date must be after issue date",
    ),
    CrossFieldRule(
        path="passport_expiry_date",
        requires=("passport_expiry_date",),
        check=lambda v, today: (
            v["passport_expiry_date"] > add_months(today, PASSPORT_VALIDITY_MONTHS)
        ),
        message="Passport must be valid for at least 6 months",
    ),
    CrossFieldRule(
        path="passport_expiry_date",
        requires=("passport_expiry_date", "entry_date"),
        check=lambda v, today: (
            v["passport_expiry_date"] > add_months(v["entry_date"], PASSPORT_VALIDITY_MONTHS)
        ),
        message="Passport must be valid for at least 6 months from entry date",
    ),
)


# ── Engine ───────────────────────────────────────────────────────────

def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value is False


def _prune(data: Mapping[str, Any]) -> dict[str, Any]:
    pruned: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            pruned[key] = _prune(value)
        elif not _is_empty(value):
            pruned[key] = value
    return pruned


def _as_mapping(data: Any) -> dict[str, Any]:
    if is_dataclass(data):
        return draft_to_dict(data, keep_pending_files=True)
    return dict(data or {})


def _message_for(path: str, error_type: str, fallback: str) -> str:
    messages = FIELD_MESSAGES.get(path, {})
    return messages.get(error_type) or messages.get("default") or fallback


def _field_errors(
    rules: type[BaseModel], values: dict[str, Any], partial: bool,
) -> ValidationResult:
    result = ValidationResult()
    try:
        rules.model_validate(values)
    except pydantic.ValidationError as exc:
        for err in exc.errors():
            if partial and err["type"] == "missing":
                continue
            path = ".".join(str(part) for part in err["loc"])
            result.add(path, _message_for(path, err["type"], err["msg"]))
    return result


def _run_cross_rules(
    rules: tuple[CrossFieldRule, ...],
    values: dict[str, Any],
    result: ValidationResult,
    today: date,
) -> None:
    usable: dict[str, Any] = {}
    for key, value in values.items():
        if key in result.errors or _is_empty(value) or isinstance(value, Mapping):
            continue
        try:
            usable[key] = parse_date(value) if key in DATE_FIELDS else value
        except (TypeError, ValueError):
            continue

    for rule in rules:
        if not all(name in usable for name in rule.requires):
            continue
        if not rule.check(usable, today):
            result.add(rule.path, rule.message)


def validate_service_type(
    data: Any, *, partial: bool = False, today: date | None = None,
) -> ValidationResult:
    """Validate the service-type step (full or draft mode)."""
    today = today or date.today()
    values = _prune(_as_mapping(data))
    result = _field_errors(ServiceTypeRules, values, partial)
    _run_cross_rules(SERVICE_TYPE_CROSS_RULES, values, result, today)
    return result


def validate_personal_info(
    data: Any,
    *,
    partial: bool = False,
    entry_date: date | None = None,
    today: date | None = None,
) -> ValidationResult:
    """
    Validate the personal-info step (full or draft mode).

    ``entry_date`` comes from the service-type step; without it the
    passport-vs-entry check is skipped.
    """
    today = today or date.today()
    values = _prune(_as_mapping(data))
    result = _field_errors(PersonalInfoRules, values, partial)
    cross_values = dict(values)
    cross_values.pop("entry_date", None)
    if entry_date is not None:
        cross_values["entry_date"] = entry_date
    _run_cross_rules(PERSONAL_INFO_CROSS_RULES, cross_values, result, today)
    return result


def validate_application(
    data: Any, *, partial: bool = False, today: date | None = None,
) -> ValidationResult:
    """Validate both steps; paths are prefixed with the section name."""
    today = today or date.today()
    values = _as_mapping(data)
    service_type = values.get("service_type") or {}
    personal_info = values.get("personal_info") or {}

    service_result = validate_service_type(service_type, partial=partial, today=today)
    try:
        entry_date = parse_date(service_type.get("entry_date"))
    except (TypeError, ValueError):
        entry_date = None

    personal_result = validate_personal_info(
        personal_info, partial=partial, entry_date=entry_date, today=today,
    )

    result = ValidationResult()
    result.merge(service_result, prefix="service_type.")
    result.merge(personal_result, prefix="personal_info.")
    return result
