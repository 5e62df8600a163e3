"""
Leave requests: submission, review, visibility and department coverage.
"""
import math
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from intranet.core.config import settings
from intranet.core.exceptions import AccessDeniedError, AppException, NotFoundError
from intranet.core.permissions import PROPERTY_ROLES, has_permission
from intranet.core.security import sanitize_input
from intranet.core.transitions import validate_transition
from intranet.models.department import Department
from intranet.models.leave_request import LeaveRequest, LeaveStatus
from intranet.models.user import AppRole, User, UserDepartment
from intranet.schemas.leave import (
    DepartmentCoverage,
    LeaveConflict,
    LeaveCoverageReport,
    LeaveEvent,
    LeaveRequestCreate,
)
from intranet.services.audit import AuditService
from intranet.services.base import BaseService
from intranet.services.notification import NotificationService

ENTITY = "leave_request"


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def coverage_percentage(total_staff: int, on_leave: int) -> int:
    """Share of a department still at work, rounded half up. 100 when nobody is assigned."""
    if total_staff <= 0:
        return 100
    return int(math.floor((total_staff - on_leave) / total_staff * 100 + 0.5))


def _check_range(start: date, end: date):
    if end < start:
        raise AppException("end must be on or after start", status_code=422, error_code="INVALID_RANGE")
    if inclusive_days(start, end) > settings.coverage.max_range_days:
        raise AppException(
            f"Date range cannot exceed {settings.coverage.max_range_days} days",
            status_code=422,
            error_code="INVALID_RANGE",
        )


def _snapshot(leave: LeaveRequest) -> dict:
    return {
        "status": leave.status,
        "approved_by_id": leave.approved_by_id,
        "rejected_by_id": leave.rejected_by_id,
        "rejection_reason": leave.rejection_reason,
    }


class LeaveService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    # -- queries -----------------------------------------------------------

    def get(self, leave_id: int) -> LeaveRequest:
        leave = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == leave_id,
            LeaveRequest.organization_id == self.org_id
        ).first()
        if leave is None:
            raise NotFoundError("Leave request", leave_id)
        return leave

    def list_mine(self, user: User) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.organization_id == self.org_id, LeaveRequest.requester_id == user.id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .all()
        )

    @staticmethod
    def _scope_to_viewer(query, viewer: User):
        if viewer.role == AppRole.STAFF:
            return query.filter(LeaveRequest.requester_id == viewer.id)
        if viewer.role == AppRole.DEPARTMENT_HEAD and viewer.department_ids:
            return query.filter(LeaveRequest.department_id.in_(viewer.department_ids))
        if viewer.role in PROPERTY_ROLES and viewer.property_ids:
            return query.filter(LeaveRequest.property_id.in_(viewer.property_ids))
        return query

    def list_visible(self, viewer: User, status: Optional[str] = None) -> List[LeaveRequest]:
        """Requests the viewer may see, newest first."""
        query = self._scope_to_viewer(
            self.db.query(LeaveRequest).filter(LeaveRequest.organization_id == self.org_id), viewer
        )

        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()

    # -- mutations ---------------------------------------------------------

    def submit(self, requester: User, data: LeaveRequestCreate) -> LeaveRequest:
        leave = LeaveRequest(
            organization_id=self.org_id,
            requester_id=requester.id,
            property_id=requester.primary_property_id,
            department_id=requester.primary_department_id,
            leave_type=data.leave_type.value,
            start_date=data.start_date,
            end_date=data.end_date,
            days_count=inclusive_days(data.start_date, data.end_date),
            reason=sanitize_input(data.reason),
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        self.db.flush()
        self.audit.log_action(
            action="leave_submitted",
            entity_type=ENTITY,
            entity_id=leave.id,
            user_id=requester.id,
            user_role=requester.role,
            details={"leave_type": leave.leave_type, "days": leave.days_count},
            after_state=_snapshot(leave),
        )
        self.db.commit()
        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id} submitted by user {requester.id}")
        return leave

    def can_review(self, reviewer: User, leave: LeaveRequest) -> bool:
        if leave.requester_id == reviewer.id:
            return False
        if not has_permission(reviewer.role, "hr", "approve"):
            return False
        if reviewer.is_regional:
            return True
        if reviewer.role in PROPERTY_ROLES:
            return leave.property_id is not None and leave.property_id in reviewer.property_ids
        if reviewer.role == AppRole.DEPARTMENT_HEAD:
            return leave.department_id is not None and leave.department_id in reviewer.department_ids
        return False

    def _ensure_reviewer(self, reviewer: User, leave: LeaveRequest):
        if leave.requester_id == reviewer.id:
            raise AccessDeniedError("You cannot review your own leave request")
        if not self.can_review(reviewer, leave):
            raise AccessDeniedError("You are not allowed to review this leave request")

    def _transition(self, leave: LeaveRequest, to_status: LeaveStatus, actor: User, action: str,
                    details=None, **changes):
        before = _snapshot(leave)
        validate_transition(ENTITY, leave.status, to_status.value)
        for field, value in changes.items():
            setattr(leave, field, value)
        leave.status = to_status.value
        self.audit.log_action(
            action=action,
            entity_type=ENTITY,
            entity_id=leave.id,
            user_id=actor.id,
            user_role=actor.role,
            details=details or {},
            before_state=before,
            after_state=_snapshot(leave),
        )

    def approve(self, leave_id: int, reviewer: User) -> LeaveRequest:
        leave = self.get(leave_id)
        self._ensure_reviewer(reviewer, leave)
        self._transition(
            leave, LeaveStatus.APPROVED, reviewer, "leave_approved",
            approved_by_id=reviewer.id,
            reviewed_at=datetime.now(timezone.utc),
        )
        NotificationService.notify_user(
            self.db,
            leave.requester_id,
            title="Leave request approved",
            message=f"Your {leave.leave_type} leave from {leave.start_date} to {leave.end_date} was approved.",
            type="success",
            link="/leave",
            organization_id=self.org_id,
        )
        self.db.commit()
        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id} approved by user {reviewer.id}")
        return leave

    def reject(self, leave_id: int, reviewer: User, reason: Optional[str] = None) -> LeaveRequest:
        leave = self.get(leave_id)
        self._ensure_reviewer(reviewer, leave)
        reason = sanitize_input(reason)
        self._transition(
            leave, LeaveStatus.REJECTED, reviewer, "leave_rejected", {"reason": reason},
            rejected_by_id=reviewer.id,
            rejection_reason=reason,
            reviewed_at=datetime.now(timezone.utc),
        )
        NotificationService.notify_user(
            self.db,
            leave.requester_id,
            title="Leave request rejected",
            message=f"Your {leave.leave_type} leave from {leave.start_date} to {leave.end_date} was rejected."
                    + (f" Reason: {leave.rejection_reason}" if leave.rejection_reason else ""),
            type="warning",
            link="/leave",
            organization_id=self.org_id,
        )
        self.db.commit()
        self.db.refresh(leave)
        self.log_info(f"Leave request {leave.id} rejected by user {reviewer.id}")
        return leave

    def cancel(self, leave_id: int, actor: User) -> LeaveRequest:
        leave = self.get(leave_id)
        if leave.requester_id != actor.id and not actor.is_hr:
            raise AccessDeniedError("Only the requester or HR can cancel a leave request")
        self._transition(leave, LeaveStatus.CANCELLED, actor, "leave_cancelled")
        if leave.requester_id != actor.id:
            NotificationService.notify_user(
                self.db,
                leave.requester_id,
                title="Leave request cancelled",
                message=f"Your leave from {leave.start_date} to {leave.end_date} was cancelled by HR.",
                type="info",
                link="/leave",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(leave)
        return leave

    # -- coverage ----------------------------------------------------------

    def _property_departments(self, property_id: int) -> List[Department]:
        return (
            self.db.query(Department)
            .filter(
                Department.organization_id == self.org_id,
                Department.property_id == property_id,
                Department.is_active == True  # noqa: E712
            )
            .order_by(Department.name, Department.id)
            .all()
        )

    def _staff_counts(self, department_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(department_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(UserDepartment.department_id, func.count(UserDepartment.id))
            .join(User, User.id == UserDepartment.user_id)
            .filter(UserDepartment.department_id.in_(ids), User.is_active == True)  # noqa: E712
            .group_by(UserDepartment.department_id)
            .all()
        )
        return {dept_id: count for dept_id, count in rows}

    def _leaves_overlapping(self, department_ids: List[int], start: date, end: date,
                            statuses: Iterable[str]) -> List[LeaveRequest]:
        if not department_ids:
            return []
        return (
            self.db.query(LeaveRequest)
            .filter(
                LeaveRequest.organization_id == self.org_id,
                LeaveRequest.department_id.in_(department_ids),
                LeaveRequest.status.in_(list(statuses)),
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
            .all()
        )

    @staticmethod
    def _on_leave(leaves: Iterable[LeaveRequest], department_id: int, day: date) -> int:
        return sum(
            1 for lv in leaves
            if lv.department_id == department_id
            and lv.status == LeaveStatus.APPROVED.value
            and lv.start_date <= day <= lv.end_date
        )

    def department_coverage(self, property_id: int, on_date: Optional[date] = None) -> List[DepartmentCoverage]:
        """Per-department staffing on a date, lowest coverage first."""
        target = on_date or date.today()
        window_end = target + timedelta(days=settings.coverage.upcoming_window_days)
        departments = self._property_departments(property_id)
        dept_ids = [d.id for d in departments]
        totals = self._staff_counts(dept_ids)
        leaves = self._leaves_overlapping(
            dept_ids, target, window_end, (LeaveStatus.APPROVED.value, LeaveStatus.PENDING.value)
        )

        coverage = []
        for dept in departments:
            total = totals.get(dept.id, 0)
            on_leave = self._on_leave(leaves, dept.id, target)
            upcoming = sum(
                1 for lv in leaves
                if lv.department_id == dept.id and target <= lv.start_date <= window_end
            )
            coverage.append(DepartmentCoverage(
                department_id=dept.id,
                department_name=dept.name,
                total_staff=total,
                staff_on_leave=on_leave,
                coverage_percentage=coverage_percentage(total, on_leave),
                upcoming_leaves=upcoming,
            ))
        return sorted(coverage, key=lambda c: c.coverage_percentage)

    def leave_conflicts(self, property_id: int, start: date, end: date) -> List[LeaveConflict]:
        """
        Days in ``[start, end]`` on which a department is short-staffed: two or
        more people away, or coverage below the critical threshold.
        """
        _check_range(start, end)

        departments = self._property_departments(property_id)
        dept_ids = [d.id for d in departments]
        totals = self._staff_counts(dept_ids)
        leaves = self._leaves_overlapping(dept_ids, start, end, (LeaveStatus.APPROVED.value,))
        critical_below = settings.coverage.critical_percent
        min_on_leave = settings.coverage.conflict_min_staff

        conflicts = []
        day = start
        while day <= end:
            for dept in departments:
                total = totals.get(dept.id, 0)
                on_leave = self._on_leave(leaves, dept.id, day)
                if total > 0 and on_leave > 0:
                    pct = coverage_percentage(total, on_leave)
                    is_critical = pct < critical_below
                    if on_leave >= min_on_leave or is_critical:
                        conflicts.append(LeaveConflict(
                            department_id=dept.id,
                            department_name=dept.name,
                            date=day,
                            staff_on_leave=on_leave,
                            total_staff=total,
                            coverage_percentage=pct,
                            is_critical=is_critical,
                        ))
            day += timedelta(days=1)
        return sorted(conflicts, key=lambda c: c.coverage_percentage)

    def leave_events(self, start: date, end: date, property_id: Optional[int] = None,
                     department_id: Optional[int] = None, viewer: Optional[User] = None) -> List[LeaveEvent]:
        """
        Approved and pending leave overlapping a date range, for calendars.
        With a ``viewer`` the events are limited to what ``list_visible`` would show them.
        """
        _check_range(start, end)
        query = (
            self.db.query(LeaveRequest, User.full_name, Department.name)
            .join(User, User.id == LeaveRequest.requester_id)
            .outerjoin(Department, Department.id == LeaveRequest.department_id)
            .filter(
                LeaveRequest.organization_id == self.org_id,
                LeaveRequest.status.in_([LeaveStatus.APPROVED.value, LeaveStatus.PENDING.value]),
                LeaveRequest.end_date >= start,
                LeaveRequest.start_date <= end,
            )
        )
        if property_id is not None:
            query = query.filter(LeaveRequest.property_id == property_id)
        if department_id is not None:
            query = query.filter(LeaveRequest.department_id == department_id)
        if viewer is not None:
            query = self._scope_to_viewer(query, viewer)

        return [
            LeaveEvent(
                id=leave.id,
                user_id=leave.requester_id,
                user_name=user_name or "Unknown User",
                department_id=leave.department_id,
                department_name=dept_name or "Unknown Dept",
                start_date=leave.start_date,
                end_date=leave.end_date,
                leave_type=leave.leave_type,
                status=leave.status,
            )
            for leave, user_name, dept_name in query.order_by(LeaveRequest.start_date, LeaveRequest.id).all()
        ]

    def coverage_report(self, property_id: int, start: date, end: date) -> LeaveCoverageReport:
        return LeaveCoverageReport(
            events=self.leave_events(start, end, property_id=property_id),
            coverage=self.department_coverage(property_id, start),
            conflicts=self.leave_conflicts(property_id, start, end),
        )
