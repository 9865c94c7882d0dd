from datetime import datetime, timezone
import math
import logging
from typing import Any, Dict, List, Optional

from dtos.application_dtos import (
    ApplicationCreate,
    ApplicationDraft,
    ApplicationStatus,
    ApplicationUpdate,
)
from services.application_store import get_application_store
from services.errors import ApplicationNotFound, ScholarshipNotFound, ValidationError
from services.scholarship_svc import get_open_scholarship, scholarship_name
from services.event_manager import event_bus, APPLICATION_SUBMITTED, APPLICATION_REVIEWED
from services.step_validation import (
    WizardStep,
    completion_percentage,
    essay_word_counts,
    is_application_complete,
    is_filled,
    missing_fields,
    step_reports,
)
from services import notification_svc  # noqa: F401  registers the event handlers

logger = logging.getLogger(__name__)

# ==================== Configuration & Helpers ====================

DRAFT_SECTIONS = ("personal_info", "academic_info", "family_financial_info", "essays", "documents")

TERMINAL_STATUSES = {
    ApplicationStatus.APPROVED.value,
    ApplicationStatus.REJECTED.value,
    ApplicationStatus.WAITLISTED.value,
}
REVIEWABLE_STATUSES = {ApplicationStatus.SUBMITTED.value, ApplicationStatus.UNDER_REVIEW.value}
# Everything an admin sees: drafts stay private to the applicant
REVIEW_QUEUE_STATUSES = [s.value for s in ApplicationStatus if s != ApplicationStatus.DRAFT]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _history_entry(status: str, changed_by: Optional[str], reason: Optional[str], at: str) -> Dict[str, Any]:
    return {"status": status, "changed_by": changed_by, "reason": reason, "changed_at": at}


def draft_of(application: Dict[str, Any]) -> ApplicationDraft:
    """Rebuild the typed draft from a stored application document."""
    return ApplicationDraft(**{name: application.get(name) or {} for name in DRAFT_SECTIONS})


def all_missing_fields(draft: ApplicationDraft) -> List[str]:
    return [label for step in WizardStep for label in missing_fields(step, draft)]


# ==================== Applicant operations ====================

def application_id(uid: str, scholarship_id: str) -> str:
    """Deterministic document id: one application per applicant and scholarship."""
    return f"{uid}_{scholarship_id}"


def create_application(uid: str, email: Optional[str], name: Optional[str], data: ApplicationCreate) -> Dict[str, Any]:
    store = get_application_store()
    if "/" in data.scholarship_id:
        raise ScholarshipNotFound(data.scholarship_id)
    app_id = application_id(uid, data.scholarship_id)

    # One application per scholarship: hand back the existing one
    existing = store.get(app_id)
    if existing is not None:
        logger.info(f"Application for scholarship {data.scholarship_id} already exists for {uid}")
        return existing

    scholarship = get_open_scholarship(data.scholarship_id)
    max_applications = scholarship.get("max_applications") or scholarship.get("maxApplications")
    if max_applications:
        _, total = store.find(scholarship_id=data.scholarship_id, limit=1)
        if total >= max_applications:
            raise ValidationError("This scholarship has reached its maximum number of applications", ["scholarship_id"])

    draft = ApplicationDraft(**{section: getattr(data, section) for section in DRAFT_SECTIONS})
    now = _now()
    new_app = {
        **draft.model_dump(mode="json"),
        "scholarship_id": data.scholarship_id,
        "scholarship_name": scholarship_name(scholarship) or data.scholarship_id,
        "applicant_id": uid,
        "applicant_email": email or draft.personal_info.email,
        "applicant_name": name or draft.personal_info.full_name,
        "status": ApplicationStatus.DRAFT.value,
        "completion_percentage": completion_percentage(draft),
        "submission_date": None,
        "review_date": None,
        "review_notes": None,
        "reviewed_by": None,
        "award_amount": None,
        "viewed_by_admin": False,
        "status_history": [_history_entry(ApplicationStatus.DRAFT.value, uid, "Application started", now)],
        "created_at": now,
        "updated_at": now,
    }

    result, created = store.create_if_absent(app_id, new_app)
    if created:
        logger.info(f"📝 Application {app_id} created for scholarship {data.scholarship_id}")
    return result


def get_application(app_id: str) -> Dict[str, Any]:
    application = get_application_store().get(app_id)
    if application is None:
        raise ApplicationNotFound(app_id)
    return application


def list_user_applications(uid: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
    rows, _ = get_application_store().find(applicant_id=uid, statuses=[status] if status else None)
    return rows


def update_draft(app_id: str, data: ApplicationUpdate) -> Dict[str, Any]:
    """Replace the given sections of a draft and recompute its completion."""
    sections = {
        name: getattr(data, name).model_dump(mode="json")
        for name in DRAFT_SECTIONS
        if name in data.model_fields_set and getattr(data, name) is not None
    }

    def build_updates(current: Dict[str, Any]) -> Dict[str, Any]:
        merged = draft_of({**current, **sections})
        return {
            **sections,
            "completion_percentage": completion_percentage(merged),
            "updated_at": _now(),
        }

    return get_application_store().transition(
        app_id,
        allowed_from={ApplicationStatus.DRAFT.value},
        build_updates=build_updates,
        target_status=ApplicationStatus.DRAFT.value,
    )


async def submit_application(app_id: str, uid: Optional[str] = None) -> Dict[str, Any]:
    """
    Submit a draft. Every required field, document and essay of steps 1-5
    must be present; otherwise ValidationError lists what is missing.
    """
    def build_updates(current: Dict[str, Any]) -> Dict[str, Any]:
        missing = all_missing_fields(draft_of(current))
        if missing:
            raise ValidationError("Application is incomplete", missing)
        now = _now()
        return {
            "status": ApplicationStatus.SUBMITTED.value,
            "submission_date": now,
            "completion_percentage": 100,
            "status_history": list(current.get("status_history") or [])
            + [_history_entry(ApplicationStatus.SUBMITTED.value, uid, "Submitted by applicant", now)],
            "updated_at": now,
        }

    result = get_application_store().transition(
        app_id,
        allowed_from={ApplicationStatus.DRAFT.value},
        build_updates=build_updates,
        target_status=ApplicationStatus.SUBMITTED.value,
    )
    logger.info(f"📨 Application {app_id} submitted")

    await event_bus.emit(APPLICATION_SUBMITTED, result)
    return result


def completeness_report(application: Dict[str, Any]) -> Dict[str, Any]:
    draft = draft_of(application)
    return {
        "steps": step_reports(draft),
        "is_complete": is_application_complete(draft),
        "completion_percentage": completion_percentage(draft),
        "essay_word_counts": essay_word_counts(draft.essays),
    }


# ==================== Admin operations ====================

def list_applications(
    status: Optional[str] = None,
    scholarship_id: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    statuses = [status] if status else REVIEW_QUEUE_STATUSES
    rows, total = get_application_store().find(
        scholarship_id=scholarship_id,
        statuses=statuses,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return {
        "data": rows,
        "pagination": {
            "current_page": page,
            "total_pages": math.ceil(total / limit) if limit else 1,
            "total_count": total,
            "limit": limit,
        },
    }


def application_stats() -> Dict[str, Any]:
    counts = get_application_store().count_by_status()
    return {
        "total": sum(counts.values()),
        "by_status": {s.value: counts.get(s.value, 0) for s in ApplicationStatus},
    }


def mark_viewed(app_id: str) -> Dict[str, Any]:
    application = get_application(app_id)
    if application.get("viewed_by_admin"):
        return application
    return get_application_store().update(app_id, {"viewed_by_admin": True})


async def review_application(
    app_id: str,
    target_status: str,
    notes: Optional[str] = None,
    award_amount: Optional[float] = None,
    reviewer_uid: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Move a submitted application to under_review or a final decision.

    The status precondition and the write happen in one atomic store
    transition, so of two concurrent reviews exactly one succeeds and the
    other raises InvalidTransition. The notification is dispatched after the
    write; its failure never undoes the review.
    """
    try:
        target = ApplicationStatus(target_status).value
    except ValueError:
        raise ValidationError(f"Invalid review status '{target_status}'", ["status"])

    if target not in TERMINAL_STATUSES and target != ApplicationStatus.UNDER_REVIEW.value:
        raise ValidationError(f"Cannot review an application to '{target}'", ["status"])

    if target == ApplicationStatus.REJECTED.value and not is_filled(notes):
        raise ValidationError("Review notes are required when rejecting an application", ["review_notes"])

    if target == ApplicationStatus.UNDER_REVIEW.value:
        allowed_from = {ApplicationStatus.SUBMITTED.value}
    else:
        allowed_from = REVIEWABLE_STATUSES

    def build_updates(current: Dict[str, Any]) -> Dict[str, Any]:
        now = _now()
        return {
            "status": target,
            "review_date": now,
            "review_notes": notes,
            "reviewed_by": reviewer_uid,
            "award_amount": award_amount if target == ApplicationStatus.APPROVED.value else None,
            "status_history": list(current.get("status_history") or [])
            + [_history_entry(target, reviewer_uid, notes, now)],
            "updated_at": now,
        }

    result = get_application_store().transition(
        app_id,
        allowed_from=allowed_from,
        build_updates=build_updates,
        target_status=target,
    )
    logger.info(f"✅ Application {app_id} reviewed: {target} by {reviewer_uid}")

    await event_bus.emit(APPLICATION_REVIEWED, result)
    return result
