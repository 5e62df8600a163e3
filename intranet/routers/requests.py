from typing import List, Optional, Union

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from intranet.database import get_db
from intranet.models.hr_request import Promotion
from intranet.models.user import AppRole, User
from intranet.routers.auth_deps import get_current_org, get_current_user, require_permission, require_role
from intranet.schemas.requests import (
    ProcessedChanges,
    PromotionCreate,
    PromotionResponse,
    RequestAction,
    RequestCancel,
    RequestCommentResponse,
    RequestDetail,
    RequestDetailsUpdate,
    RequestResponse,
    SubmitResult,
    TransferCreate,
    TransferResponse,
)
from intranet.services.request_service import RequestService

router = APIRouter(
    prefix="/requests",
    tags=["requests"]
)


def _detail(service: RequestService, request, viewer: User) -> RequestDetail:
    detail = RequestDetail.model_validate(request)
    detail.comments = [RequestCommentResponse.model_validate(c) for c in service.visible_comments(request, viewer)]
    return detail


@router.post("/promotions", response_model=SubmitResult, status_code=201)
def submit_promotion(
    data: PromotionCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("staff", "update")),
):
    return RequestService(db, org_id).submit_promotion(current_user, data)


@router.post("/transfers", response_model=SubmitResult, status_code=201)
def submit_transfer(
    data: TransferCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("staff", "update")),
):
    return RequestService(db, org_id).submit_transfer(current_user, data)


@router.get("", response_model=List[RequestResponse])
def list_requests(
    status: Optional[str] = None,
    entity_type: Optional[str] = None,
    assigned_to_me: bool = False,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    return RequestService(db, org_id).list_requests(
        current_user, status=status, entity_type=entity_type, assigned_to_me=assigned_to_me
    )


@router.get("/{request_id}", response_model=RequestDetail)
def get_request(
    request_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    """Request with its steps, events and the comments visible to the caller."""
    service = RequestService(db, org_id)
    return _detail(service, service.get_for_viewer(request_id, current_user), current_user)


@router.get("/{request_id}/entity", response_model=Union[PromotionResponse, TransferResponse])
def get_request_entity(
    request_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    service = RequestService(db, org_id)
    entity = service.get_entity(service.get_for_viewer(request_id, current_user))
    if isinstance(entity, Promotion):
        return PromotionResponse.model_validate(entity)
    return TransferResponse.model_validate(entity)


@router.post("/{request_id}/actions", response_model=RequestDetail)
def act_on_request(
    request_id: int,
    data: RequestAction,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    service = RequestService(db, org_id)
    request = service.apply_action(
        request_id,
        current_user,
        data.action,
        comment=data.comment,
        forward_to=data.forward_to,
        visibility=data.visibility,
    )
    return _detail(service, request, current_user)


@router.post("/{request_id}/cancel", response_model=RequestResponse)
def cancel_request(
    request_id: int,
    data: RequestCancel,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    return RequestService(db, org_id).cancel_request(request_id, current_user, data.reason)


@router.patch("/{request_id}", response_model=RequestResponse)
def update_request_details(
    request_id: int,
    data: RequestDetailsUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(get_current_user),
):
    return RequestService(db, org_id).update_request_details(request_id, current_user, data)


@router.post("/process-due", response_model=ProcessedChanges)
def process_due_changes(
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_role([AppRole.REGIONAL_ADMIN, AppRole.REGIONAL_HR])),
):
    """Apply approved promotions and transfers whose effective date has arrived."""
    return RequestService(db, org_id).process_due_changes()
