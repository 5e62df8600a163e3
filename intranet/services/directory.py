"""
Staff directory and staff administration.
"""
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from intranet.core.exceptions import AccessDeniedError, ConflictError, NotFoundError
from intranet.core.permissions import PROPERTY_ROLES, can_manage_user, has_permission, outranks
from intranet.core.security import mask_phone
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.user import AppRole, User, UserDepartment, UserProperty
from intranet.schemas.directory import EmployeeCreate, EmployeeDetail, ProfileUpdate
from intranet.services import auth as auth_service
from intranet.services.audit import AuditService
from intranet.services.base import BaseService
from intranet.services.job_titles import suggest_system_role
from intranet.services.pii_audit import PiiAuditService
from intranet.services.reporting import ReportingService


def _summary_state(user: User) -> dict:
    return {
        "role": user.role,
        "job_title": user.job_title,
        "property_ids": user.property_ids,
        "department_ids": user.department_ids,
        "reporting_to_id": user.reporting_to_id,
    }


class DirectoryService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    def _base_query(self):
        return (
            self.db.query(User)
            .options(selectinload(User.property_assignments), selectinload(User.department_assignments))
            .filter(User.organization_id == self.org_id)
        )

    def get_employee(self, employee_id: int) -> User:
        user = self._base_query().filter(User.id == employee_id).first()
        if user is None:
            raise NotFoundError("Employee", employee_id)
        return user

    def search(
        self,
        q: Optional[str] = None,
        property_id: Optional[int] = None,
        department_id: Optional[int] = None,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[User]:
        query = self._base_query()
        if not include_inactive:
            query = query.filter(User.is_active == True)  # noqa: E712
        if q:
            pattern = f"%{q.strip()}%"
            query = query.filter(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                User.job_title.ilike(pattern),
            ))
        if property_id is not None:
            query = query.filter(User.property_assignments.any(UserProperty.property_id == property_id))
        if department_id is not None:
            query = query.filter(User.department_assignments.any(UserDepartment.department_id == department_id))
        return query.order_by(User.full_name, User.id).offset(offset).limit(limit).all()

    def employee_detail(self, viewer: User, employee_id: int, ip_address: Optional[str] = None) -> EmployeeDetail:
        """
        Profile of one employee. The phone number is only revealed to staff
        administrators (and the employee); each such view is written to the
        PII access log.
        """
        employee = self.get_employee(employee_id)
        detail = EmployeeDetail.model_validate(employee)

        if viewer.id == employee.id:
            detail.phone = employee.phone
        elif has_permission(viewer.role, "staff", "read"):
            detail.phone = employee.phone
            PiiAuditService(self.db, self.org_id).record(
                viewer,
                resource_type="profile",
                access_type="view",
                target_user_id=employee.id,
                fields=["phone", "email"],
                ip_address=ip_address,
            )
            self.db.commit()
        else:
            detail.phone = mask_phone(employee.phone)
        return detail

    def _check_ids(self, model, ids: Iterable[int], label: str):
        ids = list(ids)
        if not ids:
            return
        found = {
            row[0] for row in self.db.query(model.id).filter(model.id.in_(ids), model.organization_id == self.org_id)
        }
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError(label, missing[0])

    def _ensure_can_grant(self, actor: User, role: AppRole):
        if actor.role != AppRole.REGIONAL_ADMIN and outranks(role, actor.role):
            raise AccessDeniedError(f"You cannot grant the {role.value} role")

    def _ensure_can_manage(self, actor: User, employee: User):
        if not can_manage_user(actor, employee):
            raise AccessDeniedError("You cannot change this employee's placement")

    def create_employee(self, actor: User, data: EmployeeCreate) -> User:
        if self.db.query(User.id).filter(User.email == data.email).first():
            raise ConflictError(f"Email {data.email} is already registered")

        role = data.role or suggest_system_role(data.job_title)
        self._ensure_can_grant(actor, role)
        self._check_ids(Property, data.property_ids, "Property")
        self._check_ids(Department, data.department_ids, "Department")
        if data.reporting_to_id is not None:
            ReportingService(self.db, self.org_id)._get_user(data.reporting_to_id)

        user = User(
            organization_id=self.org_id,
            email=data.email,
            full_name=data.full_name.strip(),
            hashed_password=auth_service.get_password_hash(data.password),
            job_title=data.job_title.strip() if data.job_title else None,
            role=role,
            avatar_url=data.avatar_url,
            reporting_to_id=data.reporting_to_id,
            is_active=True,
        )
        user.phone = data.phone
        user.property_assignments = [UserProperty(property_id=pid) for pid in data.property_ids]
        user.department_assignments = [UserDepartment(department_id=did) for did in data.department_ids]
        self.db.add(user)
        self.db.flush()

        self.audit.log_action(
            action="employee_created",
            entity_type="user",
            entity_id=user.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"email": user.email, "role_suggested": data.role is None},
            after_state=_summary_state(user),
        )
        self.db.commit()
        self.db.refresh(user)
        self.log_info(f"Employee {user.id} created by user {actor.id} with role {role.value}")
        return user

    def set_assignments(
        self,
        actor: User,
        employee_id: int,
        property_ids: Optional[List[int]] = None,
        department_ids: Optional[List[int]] = None,
    ) -> User:
        """Replace property and/or department assignments. The first id becomes primary."""
        employee = self.get_employee(employee_id)
        self._ensure_can_manage(actor, employee)
        before = _summary_state(employee)

        if property_ids is not None:
            if actor.role in PROPERTY_ROLES and not set(property_ids) <= set(actor.property_ids):
                raise AccessDeniedError("You can only assign staff to your own properties")
            self._check_ids(Property, property_ids, "Property")
            employee.property_assignments = [UserProperty(property_id=pid) for pid in dict.fromkeys(property_ids)]
        if department_ids is not None:
            self._check_ids(Department, department_ids, "Department")
            employee.department_assignments = [
                UserDepartment(department_id=did) for did in dict.fromkeys(department_ids)
            ]
        self.db.flush()

        self.audit.log_action(
            action="employee_assignments_updated",
            entity_type="user",
            entity_id=employee.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=_summary_state(employee),
        )
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def update_job_title(self, actor: User, employee_id: int, job_title: str,
                         apply_suggested_role: bool = False) -> User:
        employee = self.get_employee(employee_id)
        self._ensure_can_manage(actor, employee)
        before = _summary_state(employee)
        employee.job_title = job_title.strip()
        if apply_suggested_role:
            role = suggest_system_role(employee.job_title)
            self._ensure_can_grant(actor, role)
            employee.role = role

        self.audit.log_action(
            action="job_title_changed",
            entity_type="user",
            entity_id=employee.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=_summary_state(employee),
        )
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Self-service profile edit."""
        changes = data.model_dump(exclude_unset=True)
        if "full_name" in changes and changes["full_name"]:
            user.full_name = changes["full_name"].strip()
        if "avatar_url" in changes:
            user.avatar_url = changes["avatar_url"]
        if "phone" in changes:
            user.phone = changes["phone"]
            PiiAuditService(self.db, self.org_id).record(
                user, resource_type="profile", access_type="update", target_user_id=user.id, fields=["phone"]
            )

        self.audit.log_action(
            action="update_profile",
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            user_role=user.role,
            details={"fields": sorted(changes)},
        )
        self.db.commit()
        self.db.refresh(user)
        return user
