"""
Vietnam eVisa Portal — Application Record Service

Owns the persisted application records:

  create_draft(fields)  → new DRAFT record, defaults for anything missing
  get_by_id(id)         → record, or NotFoundError
  update(id, fields)    → overwrite the given fields (DRAFT records only)
  submit(id, fields)    → DRAFT → SUBMITTED, stamps submitted_at

Drafts are checked with the partial validation rules (cross-field rules run
once their inputs are filled in); a submission must pass the full rules.

Each operation is atomic per record id. There is no transaction spanning
file upload and submit; a failed submit after a successful upload leaves
the uploaded file in place.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping

import pydantic

from evisa.errors import ConflictError, NotFoundError, ValidationError
from evisa.models.draft import RECORD_FIELD_BY_PATH, draft_from_record
from evisa.models.record import (
    RECORD_DEFAULTS,
    ApplicationFields,
    ApplicationRecord,
    ApplicationStatus,
    SubmissionFields,
)
from evisa.validation import validate_application

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_fields(model: type[pydantic.BaseModel], fields: Mapping[str, Any]) -> dict[str, Any]:
    """Validate incoming fields; only keys the caller actually sent are returned."""
    try:
        parsed = model.model_validate(dict(fields))
    except pydantic.ValidationError as exc:
        errors = {
            ".".join(str(p) for p in err["loc"]) or "__root__": err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(errors, "Invalid application data") from exc
    return parsed.model_dump(exclude_unset=True)


class ApplicationStore:
    """
    In-memory record store keyed by application id.

    Production migration: replace the _records dict with the database
    table; the service only needs get/put.
    """

    def __init__(self):
        self._records: dict[str, ApplicationRecord] = {}
        self._lock = threading.Lock()
        logger.info("ApplicationStore initialized (in-memory)")

    def get(self, record_id: str) -> ApplicationRecord | None:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    def put(self, record: ApplicationRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    def lock(self) -> threading.Lock:
        return self._lock

    def __len__(self) -> int:
        return len(self._records)


class ApplicationRecordService:
    def __init__(
        self,
        store: ApplicationStore | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self._store = store or ApplicationStore()
        self._clock = clock

    @property
    def record_count(self) -> int:
        return len(self._store)

    def _check_rules(self, values: Mapping[str, Any], *, partial: bool) -> None:
        """Run the form's validation rules over a complete set of record values."""
        result = validate_application(
            draft_from_record(values), partial=partial, today=self._clock(),
        )
        if result.valid:
            return
        errors = {RECORD_FIELD_BY_PATH.get(path, path): msg for path, msg in result.errors.items()}
        logger.info("Rejected application data: %s", ", ".join(sorted(errors)))
        raise ValidationError(errors, "Invalid application data")

    def create_draft(self, fields: Mapping[str, Any] | None = None) -> ApplicationRecord:
        """Create a DRAFT record; missing or null fields take RECORD_DEFAULTS."""
        given = _parse_fields(ApplicationFields, fields or {})
        values = dict(RECORD_DEFAULTS)
        values.update({k: v for k, v in given.items() if v is not None})
        self._check_rules(values, partial=True)

        now = _utcnow()
        record = ApplicationRecord(
            id=str(uuid.uuid4()),
            status=ApplicationStatus.DRAFT,
            created_at=now,
            updated_at=now,
            **values,
        )
        self._store.put(record)
        logger.info("Created draft application %s", record.id)
        return record

    def get_by_id(self, record_id: str) -> ApplicationRecord:
        record = self._store.get(record_id)
        if record is None:
            raise NotFoundError()
        return record

    def update(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        """
        Overwrite the given fields; null resets a field to its default.
        Only DRAFT records can be edited.
        """
        given = _parse_fields(ApplicationFields, fields)
        with self._store.lock():
            record = self.get_by_id(record_id)
            if not record.is_draft:
                logger.warning(
                    "Rejected update of application %s in status %s",
                    record_id, record.status.value,
                )
                raise ConflictError("Application can no longer be edited")

            changes = {
                k: (RECORD_DEFAULTS[k] if v is None else v) for k, v in given.items()
            }
            self._check_rules({**record.field_values(), **changes}, partial=True)
            updated = record.model_copy(update={**changes, "updated_at": _utcnow()})
            self._store.put(updated)

        logger.info("Updated application %s (%d fields)", record_id, len(changes))
        logger.debug("Application %s changes: %s", record_id, changes)
        return updated

    def submit(self, record_id: str, fields: Mapping[str, Any]) -> ApplicationRecord:
        """Finalize a DRAFT record with the full field set."""
        with self._store.lock():
            record = self.get_by_id(record_id)
            if not record.is_draft:
                logger.warning(
                    "Rejected submit of application %s in status %s",
                    record_id, record.status.value,
                )
                raise ConflictError()

            given = _parse_fields(SubmissionFields, fields)
            changes = {
                k: (RECORD_DEFAULTS[k] if v is None else v) for k, v in given.items()
            }
            self._check_rules({**record.field_values(), **changes}, partial=False)
            now = _utcnow()
            submitted = record.model_copy(update={
                **changes,
                "status": ApplicationStatus.SUBMITTED,
                "submitted_at": now,
                "updated_at": now,
            })
            self._store.put(submitted)

        logger.info("Application %s submitted", record_id)
        return submitted


# ── Shared instance (created on first use) ───────────────────────────

_service_instance: ApplicationRecordService | None = None


def get_record_service() -> ApplicationRecordService:
    """Get or create the record service singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = ApplicationRecordService()
    return _service_instance
