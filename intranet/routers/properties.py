from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from intranet.database import get_db
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, require_permission
from intranet.schemas.properties import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    PropertyCreate,
    PropertyResponse,
    PropertyUpdate,
)
from intranet.services.properties import DepartmentService, PropertyService

router = APIRouter(tags=["properties"])


@router.get("/properties", response_model=List[PropertyResponse])
def list_properties(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return PropertyService(db, org_id).list(include_inactive=include_inactive)


@router.get("/properties/{property_id}", response_model=PropertyResponse)
def get_property(
    property_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return PropertyService(db, org_id).get(property_id)


@router.post("/properties", response_model=PropertyResponse, status_code=201)
def create_property(
    data: PropertyCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("properties", "manage")),
):
    return PropertyService(db, org_id).create(data, current_user)


@router.patch("/properties/{property_id}", response_model=PropertyResponse)
def update_property(
    property_id: int,
    data: PropertyUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("properties", "manage")),
):
    return PropertyService(db, org_id).update(property_id, data, current_user)


@router.get("/departments", response_model=List[DepartmentResponse])
def list_departments(
    property_id: Optional[int] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("directory", "read")),
):
    return DepartmentService(db, org_id).list(property_id=property_id, include_inactive=include_inactive)


@router.post("/departments", response_model=DepartmentResponse, status_code=201)
def create_department(
    data: DepartmentCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("departments", "manage")),
):
    return DepartmentService(db, org_id).create(data, current_user)


@router.patch("/departments/{department_id}", response_model=DepartmentResponse)
def update_department(
    department_id: int,
    data: DepartmentUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("departments", "manage")),
):
    return DepartmentService(db, org_id).update(department_id, data, current_user)
