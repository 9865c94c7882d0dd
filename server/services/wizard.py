"""
Multi-step application wizard.

The controller owns one ApplicationDraft. Sections are updated only through
the typed update methods, which reject unknown field names. Forward
navigation is gated by the active step's predicate; backward navigation is
always allowed and never re-validates.
"""
import logging
from typing import Any, List, Optional

from pydantic import BaseModel

from dtos.application_dtos import ApplicationCreate, ApplicationDraft, DocumentRef
from services import step_validation
from services.document_uploader import DocumentUploader, UploadTransport
from services.step_validation import WizardStep

logger = logging.getLogger(__name__)

FIRST_STEP = WizardStep.PERSONAL
LAST_STEP = WizardStep.REVIEW


class StepResult:
    def __init__(self, moved: bool, step: int, errors: Optional[List[str]] = None):
        self.moved = moved
        self.step = step
        self.errors = errors or []

    def __bool__(self):
        return self.moved

    def __repr__(self):
        return f"StepResult(moved={self.moved}, step={self.step}, errors={self.errors})"


class WizardController:
    def __init__(
        self,
        draft: Optional[ApplicationDraft] = None,
        transport: Optional[UploadTransport] = None,
    ):
        self.draft = draft or ApplicationDraft()
        self.current_step = FIRST_STEP
        self.errors: List[str] = []
        self.uploader = DocumentUploader(self.draft.documents, transport) if transport else None

    # ==================== Navigation ====================

    def next_step(self) -> StepResult:
        if self.current_step == LAST_STEP:
            self.errors = []
            return StepResult(False, int(LAST_STEP))

        missing = step_validation.missing_fields(self.current_step, self.draft)
        if missing:
            self.errors = missing
            logger.debug(f"Step {int(self.current_step)} incomplete: {missing}")
            return StepResult(False, int(self.current_step), missing)

        self.errors = []
        self.current_step = WizardStep(self.current_step + 1)
        return StepResult(True, int(self.current_step))

    def previous_step(self) -> StepResult:
        self.errors = []
        if self.current_step == FIRST_STEP:
            return StepResult(False, int(FIRST_STEP))
        self.current_step = WizardStep(self.current_step - 1)
        return StepResult(True, int(self.current_step))

    def is_step_complete(self, step: Optional[int] = None) -> bool:
        return step_validation.is_step_complete(step or self.current_step, self.draft)

    @property
    def is_application_complete(self) -> bool:
        return step_validation.is_application_complete(self.draft)

    @property
    def completion_percentage(self) -> int:
        return step_validation.completion_percentage(self.draft)

    # ==================== Typed updates ====================

    @staticmethod
    def _apply(section: BaseModel, fields: dict) -> None:
        for name, value in fields.items():
            if name not in type(section).model_fields:
                raise AttributeError(f"{type(section).__name__} has no field '{name}'")
            setattr(section, name, value)

    def update_personal_info(self, **fields: Any) -> None:
        self._apply(self.draft.personal_info, fields)

    def update_address(self, **fields: Any) -> None:
        self._apply(self.draft.personal_info.address, fields)

    def update_academic_info(self, **fields: Any) -> None:
        self._apply(self.draft.academic_info, fields)

    def update_institution(self, **fields: Any) -> None:
        self._apply(self.draft.academic_info.institution, fields)

    def update_family_financial_info(self, **fields: Any) -> None:
        self._apply(self.draft.family_financial_info, fields)

    def update_father(self, **fields: Any) -> None:
        self._apply(self.draft.family_financial_info.father, fields)

    def update_mother(self, **fields: Any) -> None:
        self._apply(self.draft.family_financial_info.mother, fields)

    def update_bank_details(self, **fields: Any) -> None:
        self._apply(self.draft.family_financial_info.bank_details, fields)

    def update_essays(self, **fields: Any) -> None:
        self._apply(self.draft.essays, fields)

    # ==================== Documents ====================

    async def upload_document(
        self,
        slot_key: str,
        array_index: Optional[int],
        filename: str,
        content: bytes,
    ) -> DocumentRef:
        if self.uploader is None:
            raise RuntimeError("No upload transport configured for this wizard")
        return await self.uploader.upload_document(slot_key, array_index, filename, content)

    # ==================== Submission ====================

    def build_submission_payload(self, scholarship_id: str, scholarship_name: str) -> ApplicationCreate:
        return ApplicationCreate(
            scholarship_id=scholarship_id,
            scholarship_name=scholarship_name,
            **self.draft.model_dump(),
        )
