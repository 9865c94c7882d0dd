"""
Per-step completion predicates for the six-step application wizard.

All checks are pure and run against the in-memory draft. The same canonical
field set drives the step gates, the review-step completeness banner, the
completion percentage and the server-side submit check.
"""
from enum import IntEnum
from typing import Any, Callable, Dict, List, Tuple

from dtos.application_dtos import ApplicationDraft, Essays
from services.document_slots import DOCUMENT_SLOTS, is_document_slot_satisfied, slot_value


class WizardStep(IntEnum):
    PERSONAL = 1
    ACADEMIC = 2
    FAMILY_FINANCIAL = 3
    DOCUMENTS = 4
    ESSAYS = 5
    REVIEW = 6


STEP_NAMES = {
    WizardStep.PERSONAL: "Personal Information",
    WizardStep.ACADEMIC: "Academic Details",
    WizardStep.FAMILY_FINANCIAL: "Family & Financial",
    WizardStep.DOCUMENTS: "Documents Upload",
    WizardStep.ESSAYS: "Essays & SOP",
    WizardStep.REVIEW: "Review & Submit",
}

Requirement = Tuple[str, Callable[[ApplicationDraft], Any]]

# (label, accessor) pairs; label is what the user sees in the error list
REQUIRED_FIELDS: Dict[WizardStep, List[Requirement]] = {
    WizardStep.PERSONAL: [
        ("Full name", lambda d: d.personal_info.full_name),
        ("Email", lambda d: d.personal_info.email),
        ("Phone", lambda d: d.personal_info.phone),
        ("Date of birth", lambda d: d.personal_info.date_of_birth),
        ("Gender", lambda d: d.personal_info.gender),
        ("National ID number", lambda d: d.personal_info.national_id_number),
    ],
    WizardStep.ACADEMIC: [
        ("Education level", lambda d: d.academic_info.education_level),
        ("Course", lambda d: d.academic_info.course),
        ("Institution name", lambda d: d.academic_info.institution.name),
        ("Enrollment number", lambda d: d.academic_info.enrollment_number),
    ],
    WizardStep.FAMILY_FINANCIAL: [
        ("Father's name", lambda d: d.family_financial_info.father.name),
        ("Total family income", lambda d: d.family_financial_info.total_family_income),
        ("Bank account number", lambda d: d.family_financial_info.bank_details.account_number),
    ],
    WizardStep.ESSAYS: [
        ("Statement of purpose", lambda d: d.essays.statement_of_purpose),
        ("Why you deserve this scholarship", lambda d: d.essays.why_deserve_scholarship),
        ("Career goals", lambda d: d.essays.career_goals),
    ],
}

# Advisory ceilings shown as UI feedback, never enforced
ESSAY_WORD_LIMITS = {
    "statement_of_purpose": 500,
    "why_deserve_scholarship": 400,
    "career_goals": 400,
    "challenges": 300,
}

# Section weights for the completion percentage
SECTION_WEIGHTS = {
    WizardStep.PERSONAL: 0.25,
    WizardStep.ACADEMIC: 0.25,
    WizardStep.FAMILY_FINANCIAL: 0.20,
    WizardStep.ESSAYS: 0.20,
    WizardStep.DOCUMENTS: 0.10,
}


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _document_checks(draft: ApplicationDraft) -> List[Tuple[str, bool]]:
    return [
        (slot.label, is_document_slot_satisfied(slot_value(draft.documents, slot)))
        for slot in DOCUMENT_SLOTS
        if slot.required
    ]


def _checks(step: WizardStep, draft: ApplicationDraft) -> List[Tuple[str, bool]]:
    if step == WizardStep.DOCUMENTS:
        return _document_checks(draft)
    return [(label, is_filled(getter(draft))) for label, getter in REQUIRED_FIELDS.get(step, [])]


def missing_fields(step: int, draft: ApplicationDraft) -> List[str]:
    """Labels of the required items of `step` that are empty or missing."""
    step = WizardStep(step)
    return [label for label, ok in _checks(step, draft) if not ok]


def is_step_complete(step: int, draft: ApplicationDraft) -> bool:
    return not missing_fields(step, draft)


def is_application_complete(draft: ApplicationDraft) -> bool:
    """Banner flag on the review step: steps 1-5 all satisfied."""
    return all(is_step_complete(step, draft) for step in WizardStep if step != WizardStep.REVIEW)


def completion_percentage(draft: ApplicationDraft) -> int:
    completed = 0.0
    for step, weight in SECTION_WEIGHTS.items():
        checks = _checks(step, draft)
        filled = sum(1 for _, ok in checks if ok)
        completed += weight * filled / len(checks)
    return round(completed * 100)


def word_count(text: str) -> int:
    return len(text.split()) if text and text.strip() else 0


def essay_word_counts(essays: Essays) -> Dict[str, Dict[str, Any]]:
    counts = {}
    for key, max_words in ESSAY_WORD_LIMITS.items():
        words = word_count(getattr(essays, key) or "")
        counts[key] = {"words": words, "max_words": max_words, "over_limit": words > max_words}
    return counts


def step_reports(draft: ApplicationDraft) -> List[Dict[str, Any]]:
    reports = []
    for step in WizardStep:
        missing = missing_fields(step, draft)
        reports.append({
            "step": int(step),
            "name": STEP_NAMES[step],
            "complete": not missing,
            "missing": missing,
        })
    return reports
