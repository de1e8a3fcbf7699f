"""
Vietnam eVisa Portal — Application Wizard

The two-step intake form as a state machine:

  SERVICE_TYPE  →  PERSONAL_INFO  →  submit

Responsibilities:
  - Holds the in-progress VisaApplicationDraft and the id of the server
    record it belongs to (explicit state, mirrored in the local store so
    it survives a reload)
  - Gates forward moves on full validation of the current step
  - Autosaves the whole draft locally, debounced (one write about a
    second after the last edit)
  - save_as_draft(): partial save to the record service, any time
  - submit(): full validation → ensure record → upload pending files →
    submit → clear local state

save_as_draft() and submit() never raise for ApplicationError; they return
an ActionResult and leave the in-memory draft untouched so the applicant
can retry.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping

from evisa.config import settings
from evisa.errors import ApplicationError, NotFoundError, UploadError
from evisa.file_upload import (
    FileUploadClient,
    FileValidationResult,
    validate_file,
    validate_icao_photo,
)
from evisa.local_store import DraftPersistence, LocalStore, get_default_local_store
from evisa.models.draft import (
    FILE_SLOTS,
    PendingFile,
    VisaApplicationDraft,
    draft_from_dict,
    draft_from_record,
    draft_to_record_fields,
    merge_draft,
)
from evisa.models.record import ApplicationRecord
from evisa.record_client import HttpRecordGateway, RecordGateway
from evisa.storage import get_upload_target
from evisa.validation import (
    ValidationResult,
    validate_application,
    validate_personal_info,
    validate_service_type,
)
from evisa.visa_options import PricingQuote, quote

logger = logging.getLogger(__name__)


# ── Steps ────────────────────────────────────────────────────────────

class FormStep(str, Enum):
    """Pages of the intake form, in order."""
    SERVICE_TYPE = "service_type"
    PERSONAL_INFO = "personal_info"


STEP_ORDER = list(FormStep)
TOTAL_STEPS = len(STEP_ORDER)


@dataclass(frozen=True)
class StepInfo:
    title: str
    description: str


STEP_CONFIG: dict[FormStep, StepInfo] = {
    FormStep.SERVICE_TYPE: StepInfo(
        title="Service Type",
        description="Choose your visa type, duration and processing time",
    ),
    FormStep.PERSONAL_INFO: StepInfo(
        title="Personal Information",
        description="Enter passport, contact and emergency contact details",
    ),
}


@dataclass
class ActionResult:
    """Outcome of save_as_draft() / submit(), ready for display."""
    success: bool
    message: str
    record: ApplicationRecord | None = None
    errors: dict[str, str] = field(default_factory=dict)


# ── Wizard ───────────────────────────────────────────────────────────

class ApplicationWizard:
    """
    One applicant's form session. Use ``ApplicationWizard.restore(...)`` to
    pick up where a previous session left off.
    """

    def __init__(
        self,
        gateway: RecordGateway,
        uploader: FileUploadClient,
        persistence: DraftPersistence,
        *,
        draft: VisaApplicationDraft | None = None,
        application_id: str | None = None,
        autosave_delay: float | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self._gateway = gateway
        self._uploader = uploader
        self._persistence = persistence
        self._draft = draft or VisaApplicationDraft()
        self._application_id = application_id
        self._step_index = 0
        self._clock = clock

        self._autosave_delay = (
            settings.autosave_delay_seconds if autosave_delay is None else autosave_delay
        )
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        # bumped on every schedule/cancel; a timer only writes for its own generation
        self._autosave_generation = 0

    @classmethod
    async def restore(
        cls,
        gateway: RecordGateway,
        uploader: FileUploadClient,
        persistence: DraftPersistence,
        *,
        initial_data: Mapping[str, Any] | None = None,
        autosave_delay: float | None = None,
        clock: Callable[[], date] = date.today,
    ) -> "ApplicationWizard":
        """
        Build a wizard, choosing its starting draft in this order:
        explicit ``initial_data``, the locally saved snapshot, the server
        record named by the stored id, then defaults.
        """
        application_id = persistence.load_application_id()
        draft: VisaApplicationDraft | None = None

        if initial_data is not None:
            draft = draft_from_dict(initial_data)
            logger.info("Starting from supplied initial data")
        else:
            draft = persistence.load_draft()
            if draft is not None:
                logger.info("Restored draft from local snapshot")

        if draft is None and application_id:
            try:
                record = await gateway.get_by_id(application_id)
            except NotFoundError:
                logger.info("Stored application %s no longer exists; forgetting it", application_id)
                persistence.clear_application_id()
                application_id = None
            else:
                if record.is_draft:
                    draft = draft_from_record(record.field_values())
                    logger.info("Hydrated draft from server record %s", application_id)
                else:
                    logger.info(
                        "Stored application %s is already %s; starting fresh",
                        application_id, record.status.value,
                    )
                    persistence.clear()
                    application_id = None

        return cls(
            gateway,
            uploader,
            persistence,
            draft=draft,
            application_id=application_id,
            autosave_delay=autosave_delay,
            clock=clock,
        )

    # ── State ────────────────────────────────────────────────────────

    @property
    def draft(self) -> VisaApplicationDraft:
        return self._draft

    @property
    def application_id(self) -> str | None:
        return self._application_id

    @property
    def current_step(self) -> FormStep:
        return STEP_ORDER[self._step_index]

    @property
    def step_number(self) -> int:
        return self._step_index + 1

    @property
    def step_info(self) -> StepInfo:
        return STEP_CONFIG[self.current_step]

    @property
    def is_first_step(self) -> bool:
        return self._step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self._step_index == TOTAL_STEPS - 1

    @property
    def progress_percent(self) -> float:
        return (self.step_number / TOTAL_STEPS) * 100

    @property
    def quote(self) -> PricingQuote:
        st = self._draft.service_type
        return quote(
            st.visa_type,
            st.visa_duration,
            st.processing_time,
            st.number_of_applicants,
            today=self._clock(),
        )

    # ── Edits ────────────────────────────────────────────────────────

    def update(self, patch: Mapping[str, Any]) -> VisaApplicationDraft:
        """Apply a structured patch to the whole draft (unknown keys raise KeyError)."""
        self._set_draft(merge_draft(self._draft, patch))
        return self._draft

    def update_service_type(self, patch: Mapping[str, Any]) -> VisaApplicationDraft:
        return self.update({"service_type": patch})

    def update_personal_info(self, patch: Mapping[str, Any]) -> VisaApplicationDraft:
        return self.update({"personal_info": patch})

    def attach_file(self, slot: str, file: PendingFile) -> FileValidationResult:
        """
        Put a locally chosen file into a slot. The file is checked right
        away (plus the photo check for the portrait slot) and rejected
        without touching the draft when it fails.
        """
        if slot not in FILE_SLOTS:
            raise KeyError(f"Unknown file slot '{slot}'")

        result = validate_file(file)
        if result.is_valid and slot == "portrait_photo":
            result = validate_icao_photo(file)
        if not result.is_valid:
            logger.info("Rejected %s for %s: %s", file.filename, slot, result.error)
            return result

        self.update_personal_info({"file_uploads": {slot: file}})
        return result

    def remove_file(self, slot: str) -> None:
        if slot not in FILE_SLOTS:
            raise KeyError(f"Unknown file slot '{slot}'")
        self.update_personal_info({"file_uploads": {slot: None}})

    def _set_draft(self, draft: VisaApplicationDraft) -> None:
        self._draft = draft
        self._schedule_autosave()

    # ── Debounced local autosave ─────────────────────────────────────

    def _schedule_autosave(self) -> None:
        if self._autosave_delay <= 0:
            self._persistence.save_draft(self._draft)
            return
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._autosave_generation += 1
            self._timer = threading.Timer(
                self._autosave_delay, self._autosave, args=(self._autosave_generation,),
            )
            self._timer.daemon = True
            self._timer.start()

    def _autosave(self, generation: int) -> None:
        with self._timer_lock:
            if generation != self._autosave_generation:
                return
            self._timer = None
            self._persistence.save_draft(self._draft)
        logger.debug("Draft autosaved locally")

    def _cancel_autosave(self) -> bool:
        with self._timer_lock:
            self._autosave_generation += 1
            pending = self._timer is not None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return pending

    @property
    def autosave_pending(self) -> bool:
        return self._timer is not None

    def flush(self) -> None:
        """Write a pending autosave now instead of waiting for the timer."""
        if self._cancel_autosave():
            self._persistence.save_draft(self._draft)

    def close(self) -> None:
        self.flush()

    # ── Navigation ───────────────────────────────────────────────────

    def validate_step(self, step: FormStep | None = None) -> ValidationResult:
        """Full (non-partial) validation of one step's slice of the draft."""
        step = step or self.current_step
        today = self._clock()
        if step is FormStep.SERVICE_TYPE:
            return validate_service_type(self._draft.service_type, today=today)
        return validate_personal_info(
            self._draft.personal_info,
            entry_date=self._draft.service_type.entry_date,
            today=today,
        )

    def can_proceed(self, step: FormStep | None = None) -> bool:
        return self.validate_step(step).valid

    def next(self) -> ValidationResult:
        """Advance one step if the current one validates; no-op on the last step."""
        result = self.validate_step()
        if result.valid and not self.is_last_step:
            self._step_index += 1
        return result

    def previous(self) -> bool:
        if self.is_first_step:
            return False
        self._step_index -= 1
        return True

    # ── Server actions ───────────────────────────────────────────────

    def _remember_application_id(self, application_id: str) -> None:
        self._application_id = application_id
        self._persistence.save_application_id(application_id)

    async def _ensure_record(self) -> str:
        if self._application_id:
            return self._application_id
        record = await self._gateway.create_draft(draft_to_record_fields(self._draft))
        self._remember_application_id(record.id)
        return record.id

    async def save_as_draft(self) -> ActionResult:
        """
        Persist whatever is filled in so far. Creates the server record on
        the first call and overwrites it on later ones.
        """
        fields = draft_to_record_fields(self._draft)
        try:
            if self._application_id:
                record = await self._gateway.update(self._application_id, fields)
            else:
                record = await self._gateway.create_draft(fields)
                self._remember_application_id(record.id)
        except ApplicationError as exc:
            logger.warning("Saving draft failed: %s", exc.message)
            return ActionResult(False, exc.message, errors=getattr(exc, "errors", {}))

        self.flush()
        logger.info("Draft saved as application %s", record.id)
        return ActionResult(True, "Draft saved successfully", record=record)

    async def _upload_pending_files(self, application_id: str) -> None:
        uploads = self._draft.personal_info.file_uploads
        for slot in FILE_SLOTS:
            ref = getattr(uploads, slot)
            if not isinstance(ref, PendingFile):
                continue
            result = await self._uploader.upload(
                ref, application_id, check_photo=(slot == "portrait_photo"),
            )
            if not result.success:
                raise UploadError(result.error)
            self.update_personal_info({"file_uploads": {slot: result.url}})

    async def submit(self) -> ActionResult:
        """Validate everything, upload pending files and submit the record."""
        if not self.is_last_step:
            return ActionResult(False, "Please complete all steps before submitting")

        validation = validate_application(self._draft, today=self._clock())
        if not validation.valid:
            return ActionResult(
                False, "Please correct the highlighted fields.", errors=validation.errors,
            )

        try:
            application_id = await self._ensure_record()
            await self._upload_pending_files(application_id)
            record = await self._gateway.submit(
                application_id, draft_to_record_fields(self._draft),
            )
        except ApplicationError as exc:
            logger.warning("Submission failed: %s", exc.message)
            return ActionResult(False, exc.message, errors=getattr(exc, "errors", {}))

        self._cancel_autosave()
        self._persistence.clear()
        self._application_id = None
        logger.info("Application %s submitted", record.id)
        return ActionResult(True, "Application submitted successfully", record=record)


# ── Session factory ──────────────────────────────────────────────────

async def start_session(
    initial_data: Mapping[str, Any] | None = None,
    *,
    store: LocalStore | None = None,
) -> ApplicationWizard:
    """
    Wizard wired to the configured record service and upload target,
    restored from the local store.
    """
    return await ApplicationWizard.restore(
        HttpRecordGateway(),
        FileUploadClient(get_upload_target()),
        DraftPersistence(get_default_local_store() if store is None else store),
        initial_data=initial_data,
    )
