from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from intranet.database import get_db
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, get_current_user, require_permission
from intranet.schemas.pii import PiiAccessLogResponse, PiiAccessRecord, PiiAccessSummary
from intranet.services.pii_audit import PiiAuditService

router = APIRouter(
    prefix="/pii-audit",
    tags=["pii-audit"]
)


@router.post("/logs", response_model=PiiAccessLogResponse, status_code=201)
def record_access(
    data: PiiAccessRecord,
    request: Request,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    """Record an access to personal data made outside the API, e.g. a client-side export."""
    entry = PiiAuditService(db, org_id).record(
        current_user,
        resource_type=data.resource_type,
        access_type=data.access_type,
        target_user_id=data.target_user_id,
        fields=data.fields_accessed,
        reason=data.reason,
        ip_address=request.client.host if request.client else None,
    )
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/logs", response_model=List[PiiAccessLogResponse])
def list_access_logs(
    user_id: Optional[int] = None,
    resource_type: Optional[str] = None,
    access_type: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("pii_audit", "read")),
):
    return PiiAuditService(db, org_id).list_logs(
        limit=limit,
        offset=offset,
        user_id=user_id,
        resource_type=resource_type,
        access_type=access_type,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/summary", response_model=PiiAccessSummary)
def access_summary(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    top: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("pii_audit", "read")),
):
    return PiiAuditService(db, org_id).summary(date_from=date_from, date_to=date_to, top=top)
