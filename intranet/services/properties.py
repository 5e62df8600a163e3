from typing import List, Optional

from sqlalchemy.orm import Session

from intranet.core.exceptions import ConflictError, NotFoundError
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.schemas.properties import DepartmentCreate, DepartmentUpdate, PropertyCreate, PropertyUpdate
from intranet.services.audit import AuditService
from intranet.services.base import BaseService


class PropertyService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    def list(self, include_inactive: bool = False) -> List[Property]:
        query = self.db.query(Property).filter(Property.organization_id == self.org_id)
        if not include_inactive:
            query = query.filter(Property.is_active == True)  # noqa: E712
        return query.order_by(Property.is_headquarters.desc(), Property.name).all()

    def get(self, property_id: int) -> Property:
        prop = self.db.query(Property).filter(
            Property.id == property_id, Property.organization_id == self.org_id
        ).first()
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    def _ensure_single_headquarters(self, exclude_id: Optional[int] = None):
        query = self.db.query(Property.id).filter(
            Property.organization_id == self.org_id,
            Property.is_headquarters == True  # noqa: E712
        )
        if exclude_id is not None:
            query = query.filter(Property.id != exclude_id)
        if query.first() is not None:
            raise ConflictError("The organisation already has a headquarters property")

    def create(self, data: PropertyCreate, actor) -> Property:
        if data.is_headquarters:
            self._ensure_single_headquarters()
        prop = Property(organization_id=self.org_id, **data.model_dump())
        self.db.add(prop)
        self.db.flush()
        self.audit.log_action(
            action="property_created", entity_type="property", entity_id=prop.id,
            user_id=actor.id, user_role=actor.role, after_state=data.model_dump(),
        )
        self.db.commit()
        self.db.refresh(prop)
        return prop

    def update(self, property_id: int, data: PropertyUpdate, actor) -> Property:
        prop = self.get(property_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_headquarters"):
            self._ensure_single_headquarters(exclude_id=prop.id)
        before = {k: getattr(prop, k) for k in changes}
        for field, value in changes.items():
            setattr(prop, field, value)
        self.audit.log_action(
            action="property_updated", entity_type="property", entity_id=prop.id,
            user_id=actor.id, user_role=actor.role, before_state=before, after_state=changes,
        )
        self.db.commit()
        self.db.refresh(prop)
        return prop


class DepartmentService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    def list(self, property_id: Optional[int] = None, include_inactive: bool = False) -> List[Department]:
        query = self.db.query(Department).filter(Department.organization_id == self.org_id)
        if property_id is not None:
            query = query.filter(Department.property_id == property_id)
        if not include_inactive:
            query = query.filter(Department.is_active == True)  # noqa: E712
        return query.order_by(Department.name, Department.id).all()

    def get(self, department_id: int) -> Department:
        dept = self.db.query(Department).filter(
            Department.id == department_id, Department.organization_id == self.org_id
        ).first()
        if dept is None:
            raise NotFoundError("Department", department_id)
        return dept

    def _check_property(self, property_id: Optional[int]):
        if property_id is not None:
            PropertyService(self.db, self.org_id).get(property_id)

    def create(self, data: DepartmentCreate, actor) -> Department:
        self._check_property(data.property_id)
        dept = Department(organization_id=self.org_id, **data.model_dump())
        self.db.add(dept)
        self.db.flush()
        self.audit.log_action(
            action="department_created", entity_type="department", entity_id=dept.id,
            user_id=actor.id, user_role=actor.role, after_state=data.model_dump(),
        )
        self.db.commit()
        self.db.refresh(dept)
        return dept

    def update(self, department_id: int, data: DepartmentUpdate, actor) -> Department:
        dept = self.get(department_id)
        changes = data.model_dump(exclude_unset=True)
        if "property_id" in changes:
            self._check_property(changes["property_id"])
        before = {k: getattr(dept, k) for k in changes}
        for field, value in changes.items():
            setattr(dept, field, value)
        self.audit.log_action(
            action="department_updated", entity_type="department", entity_id=dept.id,
            user_id=actor.id, user_role=actor.role, before_state=before, after_state=changes,
        )
        self.db.commit()
        self.db.refresh(dept)
        return dept
