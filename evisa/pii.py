"""
Vietnam eVisa Portal — Log Scrubbing

Applicant data must never reach log output. Two layers:

  - record fields that identify the applicant or a contact (names, birth
    date, passport number, addresses, emails, phones) are masked by key
    whenever a mapping or a record model is passed as a log argument
  - free text is scrubbed by pattern (emails, phone numbers, passport
    numbers, Fernet tokens from the local store)

PIIScrubFilter applies both to every log record before emission; install it
once at start-up with install_log_scrubber().
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from pydantic import BaseModel

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Keys used both by flat records and by the draft's nested sections
SENSITIVE_FIELDS = frozenset({
    "full_name",
    "contact_full_name",
    "date_of_birth",
    "passport_number",
    "email_address",
    "phone_number",
    "current_address",
    "vietnam_address",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_email",
})

_LOG_SCRUB_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b"), "[EMAIL-SCRUBBED]"),
    (re.compile(r"(?<![\w-])\+?\(?\d{2,4}\)?[-.\s]?\d{3,4}[-.\s]?\d{3,4}\b"), "[PHONE-SCRUBBED]"),
    # one or two letters followed by digits; record ids are UUIDs and never match
    (re.compile(r"(?<![\w-])[A-Z]{1,2}\d{6,9}\b"), "[PASSPORT-SCRUBBED]"),
    # local store values written with a Fernet key
    (re.compile(r"gAAAAA[\w=+/-]{40,}"), "[ENCRYPTED-SCRUBBED]"),
]


def scrub_pii_from_string(text: str) -> str:
    for pattern, replacement in _LOG_SCRUB_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Copy of record (or draft) fields safe to log. Filled-in sensitive
    fields are masked, other strings are pattern-scrubbed, nested sections
    are walked. Empty values are kept so a log still shows what was blank.
    """
    redacted: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Mapping):
            redacted[key] = redact_fields(value)
        elif key in SENSITIVE_FIELDS and value not in (None, ""):
            redacted[key] = REDACTED
        elif isinstance(value, str):
            redacted[key] = scrub_pii_from_string(value)
        else:
            redacted[key] = value
    return redacted


def _scrub_arg(arg: Any) -> Any:
    if isinstance(arg, str):
        return scrub_pii_from_string(arg)
    if isinstance(arg, BaseModel):
        return redact_fields(arg.model_dump(mode="json"))
    if isinstance(arg, Mapping):
        return redact_fields(arg)
    return arg


class PIIScrubFilter(logging.Filter):
    """Masks applicant data in a log record's message and arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub_pii_from_string(record.msg)
        if isinstance(record.args, Mapping):
            # logger.info("%(full_name)s", fields) style
            record.args = redact_fields(record.args)
        elif record.args:
            record.args = tuple(_scrub_arg(a) for a in record.args)
        return True


def install_log_scrubber() -> None:
    """Attach PIIScrubFilter to the root logger and its handlers (once, at start-up)."""
    root_logger = logging.getLogger()
    pii_filter = PIIScrubFilter()
    for handler in root_logger.handlers:
        handler.addFilter(pii_filter)
    root_logger.addFilter(pii_filter)
    logger.info("PII log scrubber installed on root logger")
