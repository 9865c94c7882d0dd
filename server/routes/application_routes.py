from fastapi import APIRouter, HTTPException, Depends, Query
from dtos.application_dtos import (
    ApplicationCreate,
    ApplicationUpdate,
    ApplicationResponse,
    ApplicationStatus,
    CompletenessResponse,
)
from services.auth_svc import verify_firebase_user, require_user_ownership, AuthenticatedUser
from services.errors import ApplicationNotFound, InvalidTransition, ScholarshipNotFound, ValidationError
from services import application_svc
from typing import List, Optional

router = APIRouter()


def _owned_application(uid: str, app_id: str, user: AuthenticatedUser) -> dict:
    require_user_ownership(user, uid)
    try:
        application = application_svc.get_application(app_id)
    except ApplicationNotFound:
        raise HTTPException(status_code=404, detail="Application not found")
    require_user_ownership(user, application.get("applicant_id"))
    return application


@router.get("/{uid}", response_model=List[ApplicationResponse])
def list_my_applications(
    uid: str,
    status: Optional[ApplicationStatus] = Query(None),
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    require_user_ownership(user, uid)
    return application_svc.list_user_applications(uid, status.value if status else None)


@router.post("/{uid}/add", response_model=ApplicationResponse)
def add_application(
    uid: str,
    data: ApplicationCreate,
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    """Start a draft; returns the existing application if one exists for the scholarship."""
    require_user_ownership(user, uid)
    try:
        return application_svc.create_application(uid, user.email, user.name, data)
    except ScholarshipNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": e.message, "missing": e.errors})


@router.get("/{uid}/{app_id}", response_model=ApplicationResponse)
def get_application(
    uid: str,
    app_id: str,
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    return _owned_application(uid, app_id, user)


@router.put("/{uid}/{app_id}", response_model=ApplicationResponse)
def update_application(
    uid: str,
    app_id: str,
    data: ApplicationUpdate,
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    _owned_application(uid, app_id, user)
    try:
        return application_svc.update_draft(app_id, data)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=f"Only draft applications can be edited (status: {e.current_status})")


@router.post("/{uid}/{app_id}/submit", response_model=ApplicationResponse)
async def submit_application(
    uid: str,
    app_id: str,
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    _owned_application(uid, app_id, user)
    try:
        return await application_svc.submit_application(app_id, uid=user.uid)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": e.message, "missing": e.errors})
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=f"Application already submitted (status: {e.current_status})")


@router.get("/{uid}/{app_id}/completeness", response_model=CompletenessResponse)
def get_completeness(
    uid: str,
    app_id: str,
    user: AuthenticatedUser = Depends(verify_firebase_user)
):
    """Per-step report for the review step: missing items, banner flag, percentage."""
    application = _owned_application(uid, app_id, user)
    return application_svc.completeness_report(application)
