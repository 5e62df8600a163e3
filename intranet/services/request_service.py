"""
HR requests for promotions and transfers.

A request wraps one promotion or transfer record and moves it through review
steps. Approving the last step approves the record and applies it at once when
its effective date has arrived; ``process_due_changes`` applies the rest later.
"""
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from intranet.core.exceptions import AccessDeniedError, AppException, ConflictError, NotFoundError
from intranet.core.permissions import has_permission
from intranet.core.security import sanitize_input
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.hr_request import (
    EDITABLE_REQUEST_STATUSES,
    PENDING_REQUEST_STATUSES,
    ChangeStatus,
    Promotion,
    Request,
    RequestComment,
    RequestEntityType,
    RequestEvent,
    RequestStatus,
    RequestStep,
    StepStatus,
    Transfer,
)
from intranet.models.user import AppRole, User, UserDepartment, UserProperty
from intranet.schemas.requests import PromotionCreate, RequestDetailsUpdate, SubmitResult, TransferCreate
from intranet.services.audit import AuditService
from intranet.services.base import BaseService
from intranet.services.notification import NotificationService

ChangeRecord = Union[Promotion, Transfer]

_STATUS_NOTIFICATIONS = {
    RequestStatus.APPROVED.value: ("request_approved", "Request approved"),
    RequestStatus.REJECTED.value: ("request_rejected", "Request rejected"),
    RequestStatus.RETURNED_FOR_CORRECTION.value: ("request_returned", "Request returned for correction"),
    RequestStatus.CLOSED.value: ("request_closed", "Request closed"),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RequestService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    # -- lookups -----------------------------------------------------------

    def _get_user(self, user_id: int, label: str = "Employee") -> User:
        user = self.db.query(User).filter(User.id == user_id, User.organization_id == self.org_id).first()
        if user is None:
            raise NotFoundError(label, user_id)
        return user

    def _get_property(self, property_id: int) -> Property:
        prop = self.db.query(Property).filter(
            Property.id == property_id, Property.organization_id == self.org_id
        ).first()
        if prop is None:
            raise NotFoundError("Property", property_id)
        return prop

    def _check_department(self, department_id: Optional[int], property_id: Optional[int] = None):
        if department_id is None:
            return
        row = self.db.query(Department.property_id).filter(
            Department.id == department_id, Department.organization_id == self.org_id
        ).first()
        if row is None:
            raise NotFoundError("Department", department_id)
        if property_id is not None and row[0] != property_id:
            raise AppException(
                f"Department {department_id} does not belong to property {property_id}",
                status_code=422,
                error_code="DEPARTMENT_PROPERTY_MISMATCH",
            )

    def get_request(self, request_id: int) -> Request:
        request = self.db.query(Request).filter(
            Request.id == request_id, Request.organization_id == self.org_id
        ).first()
        if request is None:
            raise NotFoundError("Request", request_id)
        return request

    def get_entity(self, request: Request) -> ChangeRecord:
        model = Promotion if request.entity_type == RequestEntityType.PROMOTION.value else Transfer
        entity = self.db.get(model, request.entity_id)
        if entity is None:
            raise NotFoundError(request.entity_type.capitalize(), request.entity_id)
        return entity

    def _first_with_role(self, role: AppRole, property_id: Optional[int] = None) -> Optional[User]:
        query = self.db.query(User).filter(
            User.organization_id == self.org_id,
            User.role == role,
            User.is_active == True  # noqa: E712
        )
        if property_id is not None:
            query = query.join(UserProperty, UserProperty.user_id == User.id).filter(
                UserProperty.property_id == property_id
            )
        return query.order_by(User.id).first()

    def _next_request_no(self) -> int:
        current = self.db.query(func.max(Request.request_no)).filter(
            Request.organization_id == self.org_id
        ).scalar()
        return (current or 0) + 1

    # -- access ------------------------------------------------------------

    @staticmethod
    def can_view(user: User, request: Request) -> bool:
        return (
            request.requester_id == user.id
            or user.is_hr
            or request.current_assignee_id == user.id
            or request.supervisor_id == user.id
        )

    def _ensure_can_submit(self, actor: User, employee: User):
        if not has_permission(actor.role, "staff", "update"):
            raise AccessDeniedError("You are not allowed to submit promotions or transfers")
        if actor.is_regional:
            return
        if not set(actor.property_ids) & set(employee.property_ids):
            raise AccessDeniedError("Employee is outside your properties")

    # -- submission --------------------------------------------------------

    def _open_request(
        self,
        actor: User,
        employee: User,
        entity_type: RequestEntityType,
        entity_id: int,
        assignee: Optional[User],
        approver_role: AppRole,
        details: dict,
    ) -> Request:
        request = Request(
            organization_id=self.org_id,
            request_no=self._next_request_no(),
            entity_type=entity_type.value,
            entity_id=entity_id,
            requester_id=actor.id,
            supervisor_id=employee.reporting_to_id,
            current_assignee_id=assignee.id if assignee else None,
            status=RequestStatus.PENDING_HR_REVIEW.value,
            submitted_at=_now(),
            details=details,
        )
        self.db.add(request)
        self.db.flush()
        request.steps.append(RequestStep(
            step_order=1,
            approver_role=approver_role,
            assignee_id=request.current_assignee_id,
            status=StepStatus.PENDING.value,
        ))
        self._event(request, actor, "submitted", None, request.status, {"entity_type": entity_type.value})
        self.audit.log_action(
            action=f"{entity_type.value}_requested",
            entity_type=entity_type.value,
            entity_id=entity_id,
            user_id=actor.id,
            user_role=actor.role,
            details={"request_no": request.request_no, **details},
        )
        NotificationService.notify_user(
            self.db,
            request.current_assignee_id,
            title=f"New {entity_type.value} request",
            message=f"Request #{request.request_no} for {employee.full_name} needs your review.",
            type="info",
            link=f"/requests/{request.id}",
            organization_id=self.org_id,
        )
        if assignee is None:
            self.log_warning(f"No HR assignee found for {entity_type.value} request {request.id}")
        return request

    def submit_promotion(self, actor: User, data: PromotionCreate) -> SubmitResult:
        employee = self._get_user(data.employee_id)
        self._ensure_can_submit(actor, employee)
        self._check_department(data.new_department_id)

        promotion = Promotion(
            organization_id=self.org_id,
            employee_id=employee.id,
            old_role=employee.role,
            new_role=data.new_role,
            old_job_title=employee.job_title,
            new_job_title=data.new_job_title.strip() if data.new_job_title else None,
            old_department_id=employee.primary_department_id,
            new_department_id=data.new_department_id,
            effective_date=data.effective_date,
            notes=sanitize_input(data.notes),
            status=ChangeStatus.PENDING.value,
            created_by_id=actor.id,
        )
        self.db.add(promotion)
        self.db.flush()

        assignee = self._first_with_role(AppRole.REGIONAL_HR)
        request = self._open_request(
            actor, employee, RequestEntityType.PROMOTION, promotion.id, assignee, AppRole.REGIONAL_HR,
            {
                "employee_name": employee.full_name,
                "new_role": data.new_role.value if data.new_role else None,
                "effective_date": data.effective_date.isoformat(),
            },
        )
        self.db.commit()
        self.log_info(f"Promotion request #{request.request_no} submitted for employee {employee.id}")
        return SubmitResult(request_id=request.id, request_no=request.request_no, entity_id=promotion.id)

    def submit_transfer(self, actor: User, data: TransferCreate) -> SubmitResult:
        employee = self._get_user(data.employee_id)
        self._ensure_can_submit(actor, employee)
        target = self._get_property(data.to_property_id)
        self._check_department(data.to_department_id, property_id=target.id)

        transfer = Transfer(
            organization_id=self.org_id,
            employee_id=employee.id,
            from_property_id=employee.primary_property_id,
            to_property_id=target.id,
            from_department_id=employee.primary_department_id,
            to_department_id=data.to_department_id,
            effective_date=data.effective_date,
            notes=sanitize_input(data.notes),
            status=ChangeStatus.PENDING.value,
            created_by_id=actor.id,
        )
        self.db.add(transfer)
        self.db.flush()

        assignee = self._first_with_role(AppRole.PROPERTY_HR, property_id=target.id)
        approver_role = AppRole.PROPERTY_HR
        if assignee is None:
            assignee = self._first_with_role(AppRole.REGIONAL_HR)
            approver_role = AppRole.REGIONAL_HR

        request = self._open_request(
            actor, employee, RequestEntityType.TRANSFER, transfer.id, assignee, approver_role,
            {
                "employee_name": employee.full_name,
                "target_property": target.name,
                "effective_date": data.effective_date.isoformat(),
            },
        )
        self.db.commit()
        self.log_info(f"Transfer request #{request.request_no} submitted for employee {employee.id}")
        return SubmitResult(request_id=request.id, request_no=request.request_no, entity_id=transfer.id)

    # -- actions -----------------------------------------------------------

    def _event(self, request: Request, actor: Optional[User], event_type: str,
               from_status: Optional[str], to_status: Optional[str], payload: Optional[dict] = None):
        request.events.append(RequestEvent(
            actor_id=actor.id if actor else None,
            event_type=event_type,
            from_status=from_status,
            to_status=to_status,
            payload=payload or {},
        ))

    def _pending_step(self, request: Request) -> Optional[RequestStep]:
        return next((s for s in request.steps if s.status == StepStatus.PENDING.value), None)

    def _ensure_pending(self, request: Request):
        if request.status not in PENDING_REQUEST_STATUSES:
            raise ConflictError(
                f'Request #{request.request_no} is "{request.status}" and can no longer be acted on',
                details={"status": request.status},
            )

    def _ensure_editable(self, request: Request):
        if request.status not in EDITABLE_REQUEST_STATUSES:
            raise ConflictError(
                f'Request #{request.request_no} is "{request.status}" and can no longer be changed',
                details={"status": request.status},
            )

    def _ensure_reviewer(self, actor: User, request: Request):
        if request.requester_id == actor.id and actor.role != AppRole.REGIONAL_ADMIN:
            raise AccessDeniedError("You cannot review your own request")
        if request.current_assignee_id != actor.id and not actor.is_hr:
            raise AccessDeniedError("Only the assignee or HR can act on this request")

    def apply_action(
        self,
        request_id: int,
        actor: User,
        action: str,
        comment: Optional[str] = None,
        forward_to: Optional[int] = None,
        visibility: str = "all",
    ) -> Request:
        request = self.get_request(request_id)
        if not self.can_view(actor, request):
            raise AccessDeniedError("Access denied")

        comment = sanitize_input(comment)
        handlers = {
            "approve": self._approve,
            "reject": self._reject,
            "return": self._return,
            "resubmit": self._resubmit,
            "forward": self._forward,
            "close": self._close,
            "add_comment": self._add_comment,
        }
        handler = handlers.get(action)
        if handler is None:
            raise AppException(f"Unknown action: {action}", status_code=422, error_code="INVALID_ACTION")

        previous_status = request.status
        handler(request, actor, comment=comment, forward_to=forward_to, visibility=visibility)

        if request.status != previous_status:
            self.audit.log_action(
                action=f"request_{action}",
                entity_type="request",
                entity_id=request.id,
                user_id=actor.id,
                user_role=actor.role,
                before_state={"status": previous_status},
                after_state={"status": request.status},
            )
            self._notify_status(request)

        self.db.commit()
        self.db.refresh(request)
        self.log_info(f"Request {request.id}: {action} by user {actor.id} ({previous_status} -> {request.status})")
        return request

    def _act_on_step(self, request: Request, actor: User, status: StepStatus, comment: Optional[str]):
        step = self._pending_step(request)
        if step is not None:
            step.status = status.value
            step.acted_by_id = actor.id
            step.acted_at = _now()
            step.comment = comment
        return step

    def _approve(self, request: Request, actor: User, comment=None, **_):
        self._ensure_pending(request)
        self._ensure_reviewer(actor, request)
        previous = request.status
        current = self._act_on_step(request, actor, StepStatus.APPROVED, comment)

        current_order = current.step_order if current else 0
        next_step = next(
            (s for s in request.steps if s.step_order > current_order and s.status == StepStatus.WAITING.value),
            None,
        )
        if next_step is not None:
            next_step.status = StepStatus.PENDING.value
            request.status = RequestStatus.PENDING_HR_REVIEW.value
            request.current_assignee_id = next_step.assignee_id
        else:
            request.status = RequestStatus.APPROVED.value
            request.current_assignee_id = None
            request.closed_at = _now()
            self._finalize(request, actor)
        self._event(request, actor, "approved", previous, request.status, {"comment": comment})

    def _reject(self, request: Request, actor: User, comment=None, **_):
        self._ensure_pending(request)
        self._ensure_reviewer(actor, request)
        previous = request.status
        self._act_on_step(request, actor, StepStatus.REJECTED, comment)
        request.status = RequestStatus.REJECTED.value
        request.current_assignee_id = None
        request.closed_at = _now()
        entity = self.get_entity(request)
        entity.status = ChangeStatus.REJECTED.value
        self._event(request, actor, "rejected", previous, request.status, {"comment": comment})

    def _return(self, request: Request, actor: User, comment=None, **_):
        self._ensure_pending(request)
        self._ensure_reviewer(actor, request)
        previous = request.status
        self._act_on_step(request, actor, StepStatus.RETURNED, comment)
        request.status = RequestStatus.RETURNED_FOR_CORRECTION.value
        request.current_assignee_id = request.requester_id
        self._event(request, actor, "returned_for_correction", previous, request.status, {"comment": comment})

    def _resubmit(self, request: Request, actor: User, comment=None, **_):
        """Send a returned request back to review, opening a fresh step for the reviewer who returned it."""
        if request.status != RequestStatus.RETURNED_FOR_CORRECTION.value:
            raise ConflictError(
                f'Request #{request.request_no} is "{request.status}" and cannot be resubmitted',
                details={"status": request.status},
            )
        if request.requester_id != actor.id and not actor.is_regional:
            raise AccessDeniedError("Only the requester can resubmit this request")

        returned = max(request.steps, key=lambda s: s.step_order, default=None)
        reviewer_id = None
        if returned is not None:
            reviewer_id = returned.acted_by_id or returned.assignee_id
        if reviewer_id is None:
            fallback = self._first_with_role(AppRole.REGIONAL_HR)
            reviewer_id = fallback.id if fallback else None

        previous = request.status
        request.steps.append(RequestStep(
            step_order=(returned.step_order if returned else 0) + 1,
            approver_role=returned.approver_role if returned else AppRole.REGIONAL_HR,
            assignee_id=reviewer_id,
            status=StepStatus.PENDING.value,
        ))
        request.status = RequestStatus.PENDING_HR_REVIEW.value
        request.current_assignee_id = reviewer_id
        request.submitted_at = _now()
        self._event(request, actor, "resubmitted", previous, request.status, {"comment": comment})
        NotificationService.notify_user(
            self.db,
            reviewer_id,
            title="Request resubmitted",
            message=f"Request #{request.request_no} was corrected and is back for your review.",
            link=f"/requests/{request.id}",
            organization_id=self.org_id,
        )

    def _forward(self, request: Request, actor: User, comment=None, forward_to=None, **_):
        self._ensure_pending(request)
        self._ensure_reviewer(actor, request)
        if forward_to is None:
            raise AppException("forward_to is required to forward a request", status_code=422,
                               error_code="VALIDATION_ERROR")
        target = self._get_user(forward_to, "User")
        step = self._pending_step(request)
        if step is not None:
            step.assignee_id = target.id
            step.comment = comment
        request.current_assignee_id = target.id
        self._event(request, actor, "forwarded", request.status, request.status,
                    {"forward_to": target.id, "comment": comment})
        NotificationService.notify_user(
            self.db,
            target.id,
            title="Request forwarded to you",
            message=f"Request #{request.request_no} was forwarded to you for review.",
            link=f"/requests/{request.id}",
            organization_id=self.org_id,
        )

    def _close(self, request: Request, actor: User, comment=None, **_):
        if request.status in (RequestStatus.CLOSED.value, RequestStatus.CANCELLED.value):
            raise ConflictError(f"Request #{request.request_no} is already {request.status}")
        if request.requester_id != actor.id and not actor.is_hr:
            raise AccessDeniedError("Only the requester or HR can close a request")
        previous = request.status
        request.status = RequestStatus.CLOSED.value
        request.current_assignee_id = None
        request.closed_at = _now()
        self._event(request, actor, "closed", previous, request.status, {"comment": comment})

    def _add_comment(self, request: Request, actor: User, comment=None, visibility="all", **_):
        if not comment:
            raise AppException("Comment text is required", status_code=422, error_code="VALIDATION_ERROR")
        if visibility == "internal" and not actor.is_hr:
            raise AccessDeniedError("Only HR can add internal comments")
        request.comments.append(RequestComment(author_id=actor.id, body=comment, visibility=visibility))
        self._event(request, actor, "comment_added", None, None, {"comment": comment, "visibility": visibility})

        recipients = {request.current_assignee_id}
        if visibility == "all":
            recipients.add(request.requester_id)
        for user_id in recipients - {None, actor.id}:
            NotificationService.notify_user(
                self.db,
                user_id,
                title="New comment on request",
                message=f"{actor.full_name} commented on request #{request.request_no}.",
                link=f"/requests/{request.id}",
                organization_id=self.org_id,
            )

    def _notify_status(self, request: Request):
        notice = _STATUS_NOTIFICATIONS.get(request.status)
        if notice is None:
            return
        kind, title = notice
        NotificationService.notify_user(
            self.db,
            request.requester_id,
            title=title,
            message=f"Request #{request.request_no} is now {request.status.replace('_', ' ')}.",
            type=kind,
            link=f"/requests/{request.id}",
            organization_id=self.org_id,
        )

    # -- finalisation ------------------------------------------------------

    def _finalize(self, request: Request, actor: User):
        entity = self.get_entity(request)
        entity.status = ChangeStatus.APPROVED.value
        entity.approved_by_id = actor.id
        if entity.effective_date <= date.today():
            self._apply(entity)

    def _apply(self, entity: ChangeRecord):
        if isinstance(entity, Promotion):
            self._apply_promotion(entity)
        else:
            self._apply_transfer(entity)
        entity.status = ChangeStatus.COMPLETED.value

    def _apply_promotion(self, promotion: Promotion):
        employee = self.db.get(User, promotion.employee_id)
        before = {"role": employee.role, "job_title": employee.job_title, "department_ids": employee.department_ids}
        if promotion.new_role is not None:
            employee.role = promotion.new_role
        if promotion.new_job_title:
            employee.job_title = promotion.new_job_title
        if promotion.new_department_id is not None:
            employee.department_assignments = [UserDepartment(department_id=promotion.new_department_id)]
        self.db.flush()
        self.audit.log_action(
            action="promotion_applied",
            entity_type="user",
            entity_id=employee.id,
            user_id=promotion.approved_by_id,
            user_role=None,
            details={"promotion_id": promotion.id},
            before_state=before,
            after_state={"role": employee.role, "job_title": employee.job_title,
                         "department_ids": employee.department_ids},
        )

    def _apply_transfer(self, transfer: Transfer):
        employee = self.db.get(User, transfer.employee_id)
        before = {"property_ids": employee.property_ids, "department_ids": employee.department_ids}
        employee.property_assignments = [UserProperty(property_id=transfer.to_property_id)]
        if transfer.to_department_id is not None:
            employee.department_assignments = [UserDepartment(department_id=transfer.to_department_id)]
        else:
            employee.department_assignments = []
        self.db.flush()
        self.audit.log_action(
            action="transfer_applied",
            entity_type="user",
            entity_id=employee.id,
            user_id=transfer.approved_by_id,
            user_role=None,
            details={"transfer_id": transfer.id},
            before_state=before,
            after_state={"property_ids": employee.property_ids, "department_ids": employee.department_ids},
        )

    def process_due_changes(self, today: Optional[date] = None) -> dict:
        """Apply every approved promotion and transfer whose effective date has arrived."""
        today = today or date.today()
        counts = {}
        for label, model in (("promotions", Promotion), ("transfers", Transfer)):
            due = (
                self.db.query(model)
                .filter(
                    model.organization_id == self.org_id,
                    model.status == ChangeStatus.APPROVED.value,
                    model.effective_date <= today,
                )
                .order_by(model.effective_date, model.id)
                .all()
            )
            for entity in due:
                self._apply(entity)
            counts[label] = len(due)
        self.db.commit()
        self.log_info(f"Processed due changes: {counts}")
        return counts

    # -- maintenance -------------------------------------------------------

    def cancel_request(self, request_id: int, actor: User, reason: str) -> Request:
        request = self.get_request(request_id)
        if request.status not in EDITABLE_REQUEST_STATUSES:
            raise ConflictError("Cannot cancel a request that is no longer open.")
        if request.requester_id != actor.id and not actor.is_regional:
            raise AccessDeniedError("Not authorized to cancel this request.")

        reason = sanitize_input(reason)
        previous = request.status
        request.status = RequestStatus.CANCELLED.value
        request.current_assignee_id = None
        for step in request.steps:
            if step.status in (StepStatus.PENDING.value, StepStatus.WAITING.value):
                step.status = StepStatus.SKIPPED.value

        entity = self.get_entity(request)
        entity.status = ChangeStatus.CANCELLED.value
        entity.notes = f"{entity.notes or ''} [Cancelled: {reason}]"

        self._event(request, actor, "cancelled", previous, request.status, {"reason": reason})
        self.audit.log_action(
            action="request_cancel",
            entity_type="request",
            entity_id=request.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"reason": reason},
            before_state={"status": previous},
            after_state={"status": request.status},
        )
        self.db.commit()
        self.db.refresh(request)
        return request

    def update_request_details(self, request_id: int, actor: User, updates: RequestDetailsUpdate) -> Request:
        request = self.get_request(request_id)
        self._ensure_editable(request)
        if request.requester_id != actor.id and not actor.is_regional:
            raise AccessDeniedError("Not authorized to edit this request.")

        entity = self.get_entity(request)
        details = dict(request.details or {})
        changes = updates.model_dump(exclude_none=True)

        if updates.effective_date is not None:
            entity.effective_date = updates.effective_date
            details["effective_date"] = updates.effective_date.isoformat()

        if isinstance(entity, Promotion):
            if updates.new_role is not None:
                entity.new_role = updates.new_role
                details["new_role"] = updates.new_role.value
        elif updates.to_property_id is not None:
            target = self._get_property(updates.to_property_id)
            if entity.to_department_id is not None and target.id != entity.to_property_id:
                # the chosen department belonged to the previous target
                entity.to_department_id = None
            entity.to_property_id = target.id
            details["target_property"] = target.name

        request.details = details
        self._event(request, actor, "details_updated", request.status, request.status,
                    {k: (v.isoformat() if hasattr(v, "isoformat") else getattr(v, "value", v))
                     for k, v in changes.items()})
        self.db.commit()
        self.db.refresh(request)
        return request

    # -- listing -----------------------------------------------------------

    def list_requests(
        self,
        viewer: User,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        assigned_to_me: bool = False,
    ) -> List[Request]:
        query = self.db.query(Request).filter(Request.organization_id == self.org_id)
        if assigned_to_me:
            query = query.filter(Request.current_assignee_id == viewer.id)
        elif not viewer.is_hr:
            query = query.filter(
                (Request.requester_id == viewer.id)
                | (Request.current_assignee_id == viewer.id)
                | (Request.supervisor_id == viewer.id)
            )
        if status:
            query = query.filter(Request.status == status)
        if entity_type:
            query = query.filter(Request.entity_type == entity_type)
        return query.order_by(Request.request_no.desc()).all()

    def get_for_viewer(self, request_id: int, viewer: User) -> Request:
        request = self.get_request(request_id)
        if not self.can_view(viewer, request):
            raise AccessDeniedError("Access denied")
        return request

    def visible_comments(self, request: Request, viewer: User) -> List[RequestComment]:
        if viewer.is_hr:
            return list(request.comments)
        return [c for c in request.comments if c.visibility == "all"]
