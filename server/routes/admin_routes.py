from fastapi import APIRouter, HTTPException, Depends, Query
from dtos.application_dtos import (
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStats,
    ApplicationStatus,
    ReviewRequest,
)
from services.auth_svc import require_admin, AuthenticatedUser
from services.errors import ApplicationNotFound, InvalidTransition, ValidationError
from services import application_svc
from typing import Optional

router = APIRouter()


@router.get("", response_model=ApplicationListResponse)
def list_applications(
    status: Optional[ApplicationStatus] = Query(None),
    scholarship_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: AuthenticatedUser = Depends(require_admin)
):
    return application_svc.list_applications(
        status=status.value if status else None,
        scholarship_id=scholarship_id,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=ApplicationStats)
def application_stats(admin: AuthenticatedUser = Depends(require_admin)):
    return application_svc.application_stats()


@router.get("/{app_id}", response_model=ApplicationResponse)
def get_application(
    app_id: str,
    admin: AuthenticatedUser = Depends(require_admin)
):
    try:
        return application_svc.mark_viewed(app_id)
    except ApplicationNotFound:
        raise HTTPException(status_code=404, detail="Application not found")


@router.post("/{app_id}/review", response_model=ApplicationResponse)
async def review_application(
    app_id: str,
    req: ReviewRequest,
    admin: AuthenticatedUser = Depends(require_admin)
):
    """
    Approve, reject, waitlist or start reviewing a submitted application.
    Rejections need review notes; award_amount is kept only on approval.
    """
    try:
        return await application_svc.review_application(
            app_id,
            req.status.value,
            notes=req.review_notes,
            award_amount=req.award_amount,
            reviewer_uid=admin.uid,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": e.message, "missing": e.errors})
    except ApplicationNotFound:
        raise HTTPException(status_code=404, detail="Application not found")
    except InvalidTransition as e:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot review application with status '{e.current_status}'",
        )
