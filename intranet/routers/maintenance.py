from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from intranet.core.transitions import get_valid_next_statuses
from intranet.database import get_db
from intranet.models.maintenance_ticket import MaintenanceTicket
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, require_permission
from intranet.schemas.maintenance import (
    MaintenanceSummary,
    TicketAssign,
    TicketCommentCreate,
    TicketCommentResponse,
    TicketCreate,
    TicketDetail,
    TicketResponse,
    TicketStatusChange,
)
from intranet.services.maintenance import MaintenanceService

router = APIRouter(
    prefix="/maintenance-tickets",
    tags=["maintenance"]
)


def _response(ticket: MaintenanceTicket) -> TicketResponse:
    data = TicketResponse.model_validate(ticket)
    data.valid_next_statuses = get_valid_next_statuses("maintenance_ticket", ticket.status)
    return data


@router.get("", response_model=List[TicketResponse])
def list_tickets(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    property_id: Optional[int] = None,
    assigned_to_me: bool = False,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "read")),
):
    tickets = MaintenanceService(db, org_id).list_visible(
        current_user,
        status=status,
        priority=priority,
        category=category,
        property_id=property_id,
        assigned_to_me=assigned_to_me,
    )
    return [_response(t) for t in tickets]


@router.get("/summary", response_model=MaintenanceSummary)
def maintenance_summary(
    property_id: Optional[int] = None,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "update")),
):
    return MaintenanceService(db, org_id).summary(current_user, property_id)


@router.post("", response_model=TicketResponse, status_code=201)
def report_issue(
    data: TicketCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "create")),
):
    return _response(MaintenanceService(db, org_id).create(current_user, data))


@router.get("/{ticket_id}", response_model=TicketDetail)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "read")),
):
    """Ticket with its comments; internal comments only for maintenance staff."""
    service = MaintenanceService(db, org_id)
    ticket = service.get(ticket_id, current_user)
    detail = TicketDetail.model_validate(ticket)
    detail.valid_next_statuses = get_valid_next_statuses("maintenance_ticket", ticket.status)
    detail.comments = [TicketCommentResponse.model_validate(c) for c in service.visible_comments(current_user, ticket)]
    return detail


@router.put("/{ticket_id}/assignee", response_model=TicketResponse)
def assign_ticket(
    ticket_id: int,
    data: TicketAssign,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "manage")),
):
    return _response(MaintenanceService(db, org_id).assign(ticket_id, current_user, data.assigned_to_id))


@router.post("/{ticket_id}/status", response_model=TicketResponse)
def change_ticket_status(
    ticket_id: int,
    data: TicketStatusChange,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "read")),
):
    """Assignee or maintenance manager; the reporter may cancel while the ticket is still open."""
    return _response(MaintenanceService(db, org_id).change_status(ticket_id, current_user, data))


@router.post("/{ticket_id}/comments", response_model=TicketCommentResponse, status_code=201)
def add_ticket_comment(
    ticket_id: int,
    data: TicketCommentCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("maintenance", "read")),
):
    return MaintenanceService(db, org_id).add_comment(ticket_id, current_user, data.comment, data.internal_only)
