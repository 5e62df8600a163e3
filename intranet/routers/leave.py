from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from intranet.core.exceptions import AccessDeniedError
from intranet.database import get_db
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, require_permission
from intranet.schemas.leave import (
    DepartmentCoverage,
    LeaveConflict,
    LeaveCoverageReport,
    LeaveEvent,
    LeaveRejection,
    LeaveRequestCreate,
    LeaveRequestResponse,
)
from intranet.services.leave_service import LeaveService

router = APIRouter(
    prefix="/leave",
    tags=["leave"]
)


def _ensure_property_scope(user: User, property_id: int):
    if user.is_regional or not user.property_ids:
        return
    if property_id not in user.property_ids:
        raise AccessDeniedError("You can only view coverage for your own property")


@router.post("/requests", response_model=LeaveRequestResponse, status_code=201)
def submit_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "create")),
):
    return LeaveService(db, org_id).submit(current_user, data)


@router.get("/requests/mine", response_model=List[LeaveRequestResponse])
def my_leave_requests(
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "read")),
):
    return LeaveService(db, org_id).list_mine(current_user)


@router.get("/requests", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "read")),
):
    """Requests visible to the caller: own, department, property or all, by role."""
    return LeaveService(db, org_id).list_visible(current_user, status=status)


@router.post("/requests/{leave_id}/approve", response_model=LeaveRequestResponse)
def approve_leave_request(
    leave_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "approve")),
):
    return LeaveService(db, org_id).approve(leave_id, current_user)


@router.post("/requests/{leave_id}/reject", response_model=LeaveRequestResponse)
def reject_leave_request(
    leave_id: int,
    data: LeaveRejection,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "approve")),
):
    return LeaveService(db, org_id).reject(leave_id, current_user, data.reason)


@router.post("/requests/{leave_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave_request(
    leave_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "read")),
):
    return LeaveService(db, org_id).cancel(leave_id, current_user)


@router.get("/coverage/{property_id}", response_model=List[DepartmentCoverage])
def department_coverage(
    property_id: int,
    on_date: Optional[date] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "approve")),
):
    _ensure_property_scope(current_user, property_id)
    return LeaveService(db, org_id).department_coverage(property_id, on_date)


@router.get("/conflicts/{property_id}", response_model=List[LeaveConflict])
def leave_conflicts(
    property_id: int,
    start: date,
    end: date,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "approve")),
):
    _ensure_property_scope(current_user, property_id)
    return LeaveService(db, org_id).leave_conflicts(property_id, start, end)


@router.get("/events", response_model=List[LeaveEvent])
def leave_events(
    start: date,
    end: date,
    property_id: Optional[int] = None,
    department_id: Optional[int] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "read")),
):
    return LeaveService(db, org_id).leave_events(
        start, end, property_id=property_id, department_id=department_id, viewer=current_user
    )


@router.get("/report/{property_id}", response_model=LeaveCoverageReport)
def coverage_report(
    property_id: int,
    start: date,
    end: date,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("leave", "approve")),
):
    _ensure_property_scope(current_user, property_id)
    return LeaveService(db, org_id).coverage_report(property_id, start, end)
