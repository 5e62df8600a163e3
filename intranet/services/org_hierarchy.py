"""
Organisational hierarchy.

Flat staff, property and department rows are assembled into a tree:

    corporate (executives + head-office shared services)
      -> properties (general manager + departments)
        -> departments
          -> role groups (head / supervisor / staff)

``build_org_hierarchy`` is a pure function over already-loaded rows;
``OrgHierarchyService`` loads the rows for a viewer's organisation and scopes
the result to what that viewer may see.
"""
from typing import Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from intranet.core.permissions import EXECUTIVE_ROLES, PROPERTY_ROLES, has_permission
from intranet.core.security import mask_phone
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.user import AppRole, User
from intranet.schemas.org import (
    DepartmentRow,
    HierarchyScope,
    OrgCorporate,
    OrgDepartment,
    OrgEmployee,
    OrgHierarchy,
    OrgProperty,
    OrgRoleGroup,
    PropertyRow,
)
from intranet.services.base import BaseService
from intranet.services.job_titles import classify_employee_level, sort_by_job_title_hierarchy

ROLE_GROUP_LABELS = (
    ("head", "Department Head"),
    ("supervisor", "Supervisors"),
    ("staff", "Team Members"),
)

GENERAL_DEPARTMENT_NAME = "General"
UNKNOWN_DEPARTMENT_NAME = "Unknown Department"

_EXECUTIVE_ROLE_VALUES = {r.value for r in EXECUTIVE_ROLES}
_PROPERTY_ROLE_VALUES = {r.value for r in PROPERTY_ROLES}


def group_by_role(employees: Sequence[OrgEmployee]) -> List[OrgRoleGroup]:
    """Split employees into non-empty head/supervisor/staff groups, each sorted by rank."""
    buckets: Dict[str, List[OrgEmployee]] = {level: [] for level, _ in ROLE_GROUP_LABELS}
    for emp in employees:
        buckets[classify_employee_level(emp)].append(emp)

    return [
        OrgRoleGroup(level=level, label=label, employees=sort_by_job_title_hierarchy(buckets[level]))
        for level, label in ROLE_GROUP_LABELS
        if buckets[level]
    ]


def _department_node(dept_id: str, name: str, employees: List[OrgEmployee]) -> OrgDepartment:
    return OrgDepartment(
        id=dept_id,
        name=name,
        role_groups=group_by_role(employees),
        total_employees=len(employees),
    )


def _member_ids(departments: Sequence[OrgDepartment]) -> List[int]:
    return [e.id for d in departments for g in d.role_groups for e in g.employees]


def _build_property(
    prop: PropertyRow,
    members: List[OrgEmployee],
    departments: Sequence[DepartmentRow],
) -> OrgProperty:
    general_manager = next(
        (e for e in sort_by_job_title_hierarchy(members) if AppRole.PROPERTY_MANAGER.value in e.roles),
        None,
    )
    rest = [e for e in members if general_manager is None or e.id != general_manager.id]

    by_department: Dict[int, List[OrgEmployee]] = {}
    without_department: List[OrgEmployee] = []
    for emp in rest:
        if emp.department_id is None:
            without_department.append(emp)
        else:
            by_department.setdefault(emp.department_id, []).append(emp)

    nodes: List[OrgDepartment] = []
    for dept in departments:
        if dept.id in by_department:
            nodes.append(_department_node(str(dept.id), dept.name, by_department.pop(dept.id)))
    # Department ids with no matching row, in first-seen order
    for dept_id, dept_members in by_department.items():
        nodes.append(_department_node(str(dept_id), UNKNOWN_DEPARTMENT_NAME, dept_members))

    if without_department:
        nodes.append(_department_node(f"{prop.id}-general", GENERAL_DEPARTMENT_NAME, without_department))

    return OrgProperty(
        id=prop.id,
        name=prop.name,
        address=prop.address,
        city=prop.city,
        country=prop.country,
        property_code=prop.code,
        phone=prop.phone,
        is_headquarters=prop.is_headquarters,
        general_manager=general_manager,
        departments=nodes,
        total_employees=len(members),
    )


def _apply_scope(properties: List[OrgProperty], scope: Optional[HierarchyScope]) -> List[OrgProperty]:
    if scope is None or scope.role is None or scope.role in _EXECUTIVE_ROLE_VALUES:
        return properties

    if scope.role in _PROPERTY_ROLE_VALUES and scope.property_ids:
        allowed = set(scope.property_ids)
        return [p for p in properties if p.id in allowed]

    if scope.role == AppRole.DEPARTMENT_HEAD.value and scope.department_ids:
        allowed_departments = {str(d) for d in scope.department_ids}
        scoped = []
        for prop in properties:
            visible = [d for d in prop.departments if d.id in allowed_departments]
            if visible:
                scoped.append(prop.model_copy(update={"departments": visible}))
        return scoped

    return properties


def build_org_hierarchy(
    employees: Sequence[OrgEmployee],
    properties: Sequence[PropertyRow],
    departments: Sequence[DepartmentRow],
    scope: Optional[HierarchyScope] = None,
) -> OrgHierarchy:
    """
    Assemble the organisation tree.

    ``properties`` and ``departments`` are taken in the order given; the first
    property flagged as headquarters supplies the shared-service departments.
    ``scope`` narrows the property list to what the viewer may see, but the
    unassigned list is always computed over the whole organisation.
    """
    if not employees:
        return OrgHierarchy()

    executives = sort_by_job_title_hierarchy(
        [e for e in employees if _EXECUTIVE_ROLE_VALUES.intersection(e.roles)]
    )
    executive_ids = {e.id for e in executives}
    non_executives = [e for e in employees if e.id not in executive_ids]

    hq = next((p for p in properties if p.is_headquarters), None)
    shared_services: List[OrgDepartment] = []
    if hq is not None:
        for dept in departments:
            if dept.property_id != hq.id:
                continue
            members = [e for e in non_executives if e.department_id == dept.id]
            if members:
                shared_services.append(_department_node(str(dept.id), dept.name, members))

    org_properties: List[OrgProperty] = []
    for prop in properties:
        if prop.is_headquarters:
            continue
        members = [e for e in non_executives if e.property_id == prop.id]
        if members:
            org_properties.append(_build_property(prop, members, departments))

    placed = set(executive_ids)
    placed.update(_member_ids(shared_services))
    for prop in org_properties:
        if prop.general_manager is not None:
            placed.add(prop.general_manager.id)
        placed.update(_member_ids(prop.departments))

    unassigned = sort_by_job_title_hierarchy([e for e in employees if e.id not in placed])

    return OrgHierarchy(
        corporate=OrgCorporate(executives=executives, shared_services=shared_services),
        properties=_apply_scope(org_properties, scope),
        unassigned=unassigned,
        total_employees=len(employees),
    )


def to_org_employee(user: User, reveal_phone: bool = False) -> OrgEmployee:
    phone = user.phone
    return OrgEmployee(
        id=user.id,
        full_name=user.full_name or "Unknown",
        job_title=user.job_title,
        email=user.email,
        phone=phone if reveal_phone else mask_phone(phone),
        avatar_url=user.avatar_url,
        roles=[user.role.value],
        property_id=user.primary_property_id,
        department_id=user.primary_department_id,
        reporting_to=user.reporting_to_id,
    )


def scope_for(user: User) -> HierarchyScope:
    return HierarchyScope(
        role=user.role.value,
        property_ids=user.property_ids,
        department_ids=user.department_ids,
    )


class OrgHierarchyService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)

    def load_employees(self, search: Optional[str] = None) -> List[User]:
        query = (
            self.db.query(User)
            .options(selectinload(User.property_assignments), selectinload(User.department_assignments))
            .filter(User.organization_id == self.org_id, User.is_active == True)  # noqa: E712
        )
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                User.job_title.ilike(pattern),
            ))
        return query.order_by(User.id).all()

    def load_properties(self) -> List[Property]:
        return (
            self.db.query(Property)
            .filter(Property.organization_id == self.org_id, Property.is_active == True)  # noqa: E712
            .order_by(Property.is_headquarters.desc(), Property.name)
            .all()
        )

    def load_departments(self) -> List[Department]:
        return (
            self.db.query(Department)
            .filter(Department.organization_id == self.org_id, Department.is_active == True)  # noqa: E712
            .order_by(Department.name, Department.id)
            .all()
        )

    def get_hierarchy(self, viewer: User, search: Optional[str] = None) -> OrgHierarchy:
        reveal_phone = has_permission(viewer.role, "staff", "read")
        employees = [to_org_employee(u, reveal_phone) for u in self.load_employees(search)]
        properties = [PropertyRow.model_validate(p) for p in self.load_properties()]
        departments = [DepartmentRow.model_validate(d) for d in self.load_departments()]

        hierarchy = build_org_hierarchy(employees, properties, departments, scope_for(viewer))
        self.log_info(
            f"Org hierarchy built: {hierarchy.total_employees} employees, "
            f"{len(hierarchy.properties)} properties, {len(hierarchy.unassigned)} unassigned"
        )
        return hierarchy
