"""
Maintenance tickets: reporting, assignment, work progress and comments.

Tickets belong to a property. Everyone assigned to the property sees its
tickets; status changes follow the ``maintenance_ticket`` transition table.
"""
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from intranet.core.exceptions import AccessDeniedError, AppException, NotFoundError
from intranet.core.permissions import has_permission
from intranet.core.security import sanitize_input
from intranet.core.transitions import validate_transition
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.maintenance_ticket import (
    MaintenanceComment,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTicket,
)
from intranet.models.user import User
from intranet.schemas.maintenance import MaintenanceSummary, TicketCreate, TicketStatusChange
from intranet.services.audit import AuditService
from intranet.services.base import BaseService
from intranet.services.notification import NotificationService

ENTITY = "maintenance_ticket"

_UNRESOLVED = (
    MaintenanceStatus.OPEN.value,
    MaintenanceStatus.IN_PROGRESS.value,
    MaintenanceStatus.PENDING_PARTS.value,
    MaintenanceStatus.ON_HOLD.value,
)


def _snapshot(ticket: MaintenanceTicket) -> dict:
    return {
        "status": ticket.status,
        "priority": ticket.priority,
        "assigned_to_id": ticket.assigned_to_id,
    }


def _location(ticket: MaintenanceTicket) -> str:
    return f" (room {ticket.room_number})" if ticket.room_number else ""


class MaintenanceService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    # -- access ------------------------------------------------------------

    @staticmethod
    def can_view(viewer: User, ticket: MaintenanceTicket) -> bool:
        return (
            viewer.is_regional
            or viewer.id in (ticket.reported_by_id, ticket.assigned_to_id)
            or ticket.property_id in viewer.property_ids
        )

    @staticmethod
    def can_manage(viewer: User, ticket: MaintenanceTicket) -> bool:
        if not has_permission(viewer.role, "maintenance", "manage"):
            return False
        return viewer.is_regional or ticket.property_id in viewer.property_ids

    def can_work(self, viewer: User, ticket: MaintenanceTicket) -> bool:
        return viewer.id == ticket.assigned_to_id or self.can_manage(viewer, ticket)

    @staticmethod
    def sees_internal(viewer: User) -> bool:
        return has_permission(viewer.role, "maintenance", "update")

    # -- queries -----------------------------------------------------------

    def get(self, ticket_id: int, viewer: Optional[User] = None) -> MaintenanceTicket:
        ticket = self.db.query(MaintenanceTicket).filter(
            MaintenanceTicket.id == ticket_id,
            MaintenanceTicket.organization_id == self.org_id
        ).first()
        if ticket is None or (viewer is not None and not self.can_view(viewer, ticket)):
            raise NotFoundError("Maintenance ticket", ticket_id)
        return ticket

    def list_visible(
        self,
        viewer: User,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        property_id: Optional[int] = None,
        assigned_to_me: bool = False,
    ) -> List[MaintenanceTicket]:
        query = self.db.query(MaintenanceTicket).filter(MaintenanceTicket.organization_id == self.org_id)
        if assigned_to_me:
            query = query.filter(MaintenanceTicket.assigned_to_id == viewer.id)
        elif not viewer.is_regional:
            query = query.filter(or_(
                MaintenanceTicket.reported_by_id == viewer.id,
                MaintenanceTicket.assigned_to_id == viewer.id,
                MaintenanceTicket.property_id.in_(viewer.property_ids or [-1]),
            ))
        if status:
            query = query.filter(MaintenanceTicket.status == status)
        if priority:
            query = query.filter(MaintenanceTicket.priority == priority)
        if category:
            query = query.filter(MaintenanceTicket.category == category)
        if property_id is not None:
            query = query.filter(MaintenanceTicket.property_id == property_id)
        return query.order_by(MaintenanceTicket.created_at.desc(), MaintenanceTicket.id.desc()).all()

    def visible_comments(self, viewer: User, ticket: MaintenanceTicket) -> List[MaintenanceComment]:
        if self.sees_internal(viewer):
            return list(ticket.comments)
        return [c for c in ticket.comments if not c.internal_only]

    def summary(self, viewer: User, property_id: Optional[int] = None) -> MaintenanceSummary:
        """Ticket counts by status, and unresolved tickets by priority."""
        query = self.db.query(MaintenanceTicket).filter(MaintenanceTicket.organization_id == self.org_id)
        if property_id is not None:
            query = query.filter(MaintenanceTicket.property_id == property_id)
        if not viewer.is_regional:
            query = query.filter(MaintenanceTicket.property_id.in_(viewer.property_ids or [-1]))

        by_status = dict(
            query.with_entities(MaintenanceTicket.status, func.count(MaintenanceTicket.id))
            .group_by(MaintenanceTicket.status)
            .all()
        )
        open_rows = dict(
            query.filter(MaintenanceTicket.status.in_(_UNRESOLVED))
            .with_entities(MaintenanceTicket.priority, func.count(MaintenanceTicket.id))
            .group_by(MaintenanceTicket.priority)
            .all()
        )
        return MaintenanceSummary(
            by_status=by_status,
            open_by_priority={p.value: open_rows.get(p.value, 0) for p in MaintenancePriority},
            total=sum(by_status.values()),
        )

    # -- mutations ---------------------------------------------------------

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(
            User.id == user_id,
            User.organization_id == self.org_id,
            User.is_active == True  # noqa: E712
        ).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def create(self, reporter: User, data: TicketCreate) -> MaintenanceTicket:
        property_id = data.property_id or reporter.primary_property_id
        if property_id is None:
            raise AppException("A property is required to report a maintenance issue", status_code=422,
                               error_code="VALIDATION_ERROR")
        exists = self.db.query(Property.id).filter(
            Property.id == property_id, Property.organization_id == self.org_id
        ).first()
        if exists is None:
            raise NotFoundError("Property", property_id)
        if not reporter.is_regional and property_id not in reporter.property_ids:
            raise AccessDeniedError("You can only report issues at your own properties")
        if data.department_id is not None:
            row = self.db.query(Department.property_id).filter(
                Department.id == data.department_id, Department.organization_id == self.org_id
            ).first()
            if row is None:
                raise NotFoundError("Department", data.department_id)
            if row[0] != property_id:
                raise AppException(
                    f"Department {data.department_id} does not belong to property {property_id}",
                    status_code=422,
                    error_code="DEPARTMENT_PROPERTY_MISMATCH",
                )

        ticket = MaintenanceTicket(
            organization_id=self.org_id,
            title=data.title.strip(),
            description=sanitize_input(data.description),
            category=data.category.value,
            priority=data.priority.value,
            status=MaintenanceStatus.OPEN.value,
            property_id=property_id,
            department_id=data.department_id,
            room_number=data.room_number.strip() if data.room_number else None,
            reported_by_id=reporter.id,
            estimated_completion_date=data.estimated_completion_date,
        )
        self.db.add(ticket)
        self.db.flush()
        self.audit.log_action(
            action="maintenance_reported",
            entity_type=ENTITY,
            entity_id=ticket.id,
            user_id=reporter.id,
            user_role=reporter.role,
            details={"category": ticket.category, "property_id": property_id},
            after_state=_snapshot(ticket),
        )
        self.db.commit()
        self.db.refresh(ticket)
        self.log_info(f"Maintenance ticket {ticket.id} reported by user {reporter.id} at property {property_id}")
        return ticket

    def assign(self, ticket_id: int, actor: User, assignee_id: Optional[int]) -> MaintenanceTicket:
        """
        Set or clear the assignee. Assigning an open ticket starts work on it;
        clearing leaves the status where it is.
        """
        ticket = self.get(ticket_id, actor)
        if not self.can_manage(actor, ticket):
            raise AccessDeniedError("You cannot assign this ticket")

        before = _snapshot(ticket)
        if assignee_id is not None:
            assignee = self._get_user(assignee_id)
            if not assignee.is_regional and ticket.property_id not in assignee.property_ids:
                raise AppException("The assignee does not work at this property", status_code=422,
                                   error_code="VALIDATION_ERROR")
            if ticket.status == MaintenanceStatus.OPEN.value:
                validate_transition(ENTITY, ticket.status, MaintenanceStatus.IN_PROGRESS.value)
                ticket.status = MaintenanceStatus.IN_PROGRESS.value
        ticket.assigned_to_id = assignee_id

        self.audit.log_action(
            action="maintenance_assigned",
            entity_type=ENTITY,
            entity_id=ticket.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=_snapshot(ticket),
        )
        if assignee_id is not None and assignee_id != actor.id:
            NotificationService.notify_user(
                self.db,
                assignee_id,
                title="Maintenance ticket assigned",
                message=f'You have been assigned "{ticket.title}"{_location(ticket)}.',
                type="maintenance_assigned",
                link=f"/maintenance/{ticket.id}",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(ticket)
        return ticket

    def change_status(self, ticket_id: int, actor: User, data: TicketStatusChange) -> MaintenanceTicket:
        ticket = self.get(ticket_id, actor)
        to_status = data.status
        reporter_cancelling = (
            to_status == MaintenanceStatus.CANCELLED
            and actor.id == ticket.reported_by_id
            and ticket.status == MaintenanceStatus.OPEN.value
        )
        if not (self.can_work(actor, ticket) or reporter_cancelling):
            raise AccessDeniedError("You cannot change the status of this ticket")
        if to_status == MaintenanceStatus.CLOSED and not self.can_manage(actor, ticket):
            raise AccessDeniedError("Only maintenance managers can close a ticket")

        before = _snapshot(ticket)
        validate_transition(ENTITY, ticket.status, to_status.value)
        ticket.status = to_status.value
        details = {}
        if data.parts_needed is not None:
            ticket.parts_needed = sanitize_input(data.parts_needed)
        if data.notes is not None:
            ticket.notes = sanitize_input(data.notes)
        if to_status == MaintenanceStatus.COMPLETED:
            ticket.labor_hours = data.labor_hours
            ticket.material_cost = data.material_cost
            ticket.completed_at = datetime.now(timezone.utc)
            ticket.actual_completion_date = date.today()
            details = {"labor_hours": ticket.labor_hours, "material_cost": ticket.material_cost}

        self.audit.log_action(
            action="maintenance_status_changed",
            entity_type=ENTITY,
            entity_id=ticket.id,
            user_id=actor.id,
            user_role=actor.role,
            details=details,
            before_state=before,
            after_state=_snapshot(ticket),
        )
        if to_status == MaintenanceStatus.COMPLETED and ticket.reported_by_id != actor.id:
            NotificationService.notify_user(
                self.db,
                ticket.reported_by_id,
                title="Maintenance issue resolved",
                message=f'"{ticket.title}"{_location(ticket)} was resolved by {actor.full_name}.',
                type="maintenance_resolved",
                link=f"/maintenance/{ticket.id}",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(ticket)
        self.log_info(f"Maintenance ticket {ticket.id}: {before['status']} -> {ticket.status} by user {actor.id}")
        return ticket

    def add_comment(self, ticket_id: int, actor: User, comment: str, internal_only: bool = False) -> MaintenanceComment:
        ticket = self.get(ticket_id, actor)
        if internal_only and not self.sees_internal(actor):
            raise AccessDeniedError("Only maintenance staff can add internal comments")
        entry = MaintenanceComment(
            ticket_id=ticket.id,
            author_id=actor.id,
            comment=sanitize_input(comment),
            internal_only=internal_only,
        )
        self.db.add(entry)
        self.db.flush()

        recipients = {ticket.assigned_to_id}
        if not internal_only:
            recipients.add(ticket.reported_by_id)
        for user_id in recipients - {None, actor.id}:
            NotificationService.notify_user(
                self.db,
                user_id,
                title="New comment on maintenance ticket",
                message=f'{actor.full_name} commented on "{ticket.title}".',
                link=f"/maintenance/{ticket.id}",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(entry)
        return entry
