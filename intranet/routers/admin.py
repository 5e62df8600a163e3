from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from intranet.core.exceptions import NotFoundError
from intranet.database import get_db
from intranet.models.audit_log import AuditLog
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, require_permission
from intranet.schemas.analytics import AuditLogResponse, DashboardSummary
from intranet.services.analytics import AnalyticsService

router = APIRouter(
    prefix="/admin",
    tags=["admin"]
)


@router.get("/summary", response_model=DashboardSummary)
def get_dashboard_summary(
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("reports", "read")),
):
    """Headcount and pending-work figures for the caller's organisation."""
    return AnalyticsService(db, org_id).dashboard_summary()


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def get_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g. 'leave_request')"),
    action: Optional[str] = Query(None, description="Filter by action name"),
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("pii_audit", "read")),
):
    """Audit trail, newest first. Read-only."""
    query = db.query(AuditLog).filter(AuditLog.organization_id == org_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()


@router.get("/audit-logs/{log_id}", response_model=AuditLogResponse)
def get_audit_log_detail(
    log_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("pii_audit", "read")),
):
    entry = db.query(AuditLog).filter(AuditLog.id == log_id, AuditLog.organization_id == org_id).first()
    if entry is None:
        raise NotFoundError("Audit log entry", log_id)
    return entry
