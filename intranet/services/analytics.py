from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from intranet.models.hotel_property import Property
from intranet.models.hr_request import PENDING_REQUEST_STATUSES, Request
from intranet.models.leave_request import LeaveRequest, LeaveStatus
from intranet.models.user import User, UserProperty
from intranet.schemas.analytics import DashboardSummary, PropertyHeadcount
from intranet.services.base import BaseService


class AnalyticsService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)

    def dashboard_summary(self, today: date = None) -> DashboardSummary:
        today = today or date.today()
        active = (User.organization_id == self.org_id, User.is_active == True)  # noqa: E712

        headcount = self.db.query(func.count(User.id)).filter(*active).scalar() or 0

        by_property = (
            self.db.query(Property.id, Property.name, func.count(User.id))
            .outerjoin(UserProperty, UserProperty.property_id == Property.id)
            .outerjoin(User, (User.id == UserProperty.user_id) & (User.is_active == True))  # noqa: E712
            .filter(Property.organization_id == self.org_id, Property.is_active == True)  # noqa: E712
            .group_by(Property.id, Property.name)
            .order_by(Property.name)
            .all()
        )

        by_role = {
            getattr(role, "value", role): count
            for role, count in self.db.query(User.role, func.count(User.id)).filter(*active).group_by(User.role)
        }

        pending_leave = self.db.query(func.count(LeaveRequest.id)).filter(
            LeaveRequest.organization_id == self.org_id,
            LeaveRequest.status == LeaveStatus.PENDING.value,
        ).scalar() or 0

        pending_requests = self.db.query(func.count(Request.id)).filter(
            Request.organization_id == self.org_id,
            Request.status.in_(PENDING_REQUEST_STATUSES),
        ).scalar() or 0

        on_leave_today = self.db.query(func.count(func.distinct(LeaveRequest.requester_id))).filter(
            LeaveRequest.organization_id == self.org_id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            LeaveRequest.start_date <= today,
            LeaveRequest.end_date >= today,
        ).scalar() or 0

        return DashboardSummary(
            headcount=headcount,
            headcount_by_property=[
                PropertyHeadcount(property_id=pid, property_name=name, headcount=count)
                for pid, name, count in by_property
            ],
            headcount_by_role=by_role,
            pending_leave_requests=pending_leave,
            pending_hr_requests=pending_requests,
            on_leave_today=on_leave_today,
        )
