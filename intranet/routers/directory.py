from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from intranet.core.exceptions import AccessDeniedError
from intranet.core.permissions import has_permission
from intranet.database import get_db
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, get_current_user, require_permission
from intranet.schemas.directory import (
    AssignmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    JobTitleChange,
)
from intranet.schemas.org import ChainLink, OrgHierarchy, ReportingLineUpdate, ReportingTreeRow, ReportSummary
from intranet.services.directory import DirectoryService
from intranet.services.org_hierarchy import OrgHierarchyService
from intranet.services.reporting import ReportingService

router = APIRouter(
    prefix="/directory",
    tags=["directory"]
)


@router.get("/hierarchy", response_model=OrgHierarchy)
def get_org_hierarchy(
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    """
    Corporate, property and department tree of active staff, scoped to what
    the caller's role may see.
    """
    return OrgHierarchyService(db, org_id).get_hierarchy(current_user, search)


@router.get("/employees", response_model=List[EmployeeSummary])
def search_employees(
    q: Optional[str] = Query(None, max_length=100),
    property_id: Optional[int] = None,
    department_id: Optional[int] = None,
    include_inactive: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    if include_inactive and not has_permission(current_user.role, "staff", "read"):
        include_inactive = False
    return DirectoryService(db, org_id).search(
        q=q,
        property_id=property_id,
        department_id=department_id,
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )


@router.get("/employees/{employee_id}", response_model=EmployeeDetail)
def get_employee(
    employee_id: int,
    request: Request,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    ip_address = request.client.host if request.client else None
    return DirectoryService(db, org_id).employee_detail(current_user, employee_id, ip_address=ip_address)


@router.post("/employees", response_model=EmployeeDetail, status_code=201)
def create_employee(
    data: EmployeeCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("staff", "create")),
):
    user = DirectoryService(db, org_id).create_employee(current_user, data)
    detail = EmployeeDetail.model_validate(user)
    detail.phone = user.phone
    return detail


@router.put("/employees/{employee_id}/assignments", response_model=EmployeeSummary)
def set_assignments(
    employee_id: int,
    data: AssignmentUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("staff", "update")),
):
    return DirectoryService(db, org_id).set_assignments(
        current_user, employee_id, data.property_ids, data.department_ids
    )


@router.put("/employees/{employee_id}/job-title", response_model=EmployeeSummary)
def change_job_title(
    employee_id: int,
    data: JobTitleChange,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("staff", "update")),
):
    return DirectoryService(db, org_id).update_job_title(
        current_user, employee_id, data.job_title, data.apply_suggested_role
    )


@router.put("/employees/{employee_id}/manager", response_model=EmployeeSummary)
def set_manager(
    employee_id: int,
    data: ReportingLineUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    """Set or clear who the employee reports to. Rejects circular chains."""
    if not (has_permission(current_user.role, "staff", "update") or has_permission(current_user.role, "team", "manage")):
        raise AccessDeniedError("You cannot change reporting lines")
    return ReportingService(db, org_id).set_reporting_line(employee_id, data.manager_id, current_user)


@router.get("/employees/{employee_id}/direct-reports", response_model=List[ReportSummary])
def get_direct_reports(
    employee_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return ReportingService(db, org_id).get_direct_reports(employee_id)


@router.get("/employees/{employee_id}/reporting-chain", response_model=List[ChainLink])
def get_reporting_chain(
    employee_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return ReportingService(db, org_id).get_reporting_chain(employee_id)


@router.get("/reporting-tree", response_model=List[ReportingTreeRow])
def get_reporting_tree(
    root_id: Optional[int] = None,
    property_id: Optional[int] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return ReportingService(db, org_id).get_reporting_tree(root_id=root_id, property_id=property_id)
