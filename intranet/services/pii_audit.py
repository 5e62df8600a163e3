from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from intranet.core.exceptions import AppException
from intranet.models.pii_access_log import PiiAccessLog
from intranet.models.user import User
from intranet.schemas.pii import ActorCount, PiiAccessSummary
from intranet.services.base import BaseService

ACCESS_TYPES = ("view", "export", "update")


class PiiAuditService(BaseService):
    """Records and reports access to staff personal data."""

    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)

    def record(
        self,
        actor: User,
        resource_type: str,
        access_type: str,
        target_user_id: Optional[int] = None,
        fields: Optional[Sequence[str]] = None,
        reason: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PiiAccessLog:
        """Add an access entry to the current transaction. The caller commits."""
        if access_type not in ACCESS_TYPES:
            raise AppException(f"Unknown access type: {access_type}", status_code=422, error_code="VALIDATION_ERROR")
        entry = PiiAccessLog(
            organization_id=self.org_id,
            user_id=actor.id,
            target_user_id=target_user_id,
            resource_type=resource_type,
            access_type=access_type,
            fields_accessed=list(fields or []),
            reason=reason,
            ip_address=ip_address,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def _filtered(
        self,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        access_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ):
        query = self.db.query(PiiAccessLog).filter(PiiAccessLog.organization_id == self.org_id)
        if user_id is not None:
            query = query.filter(PiiAccessLog.user_id == user_id)
        if resource_type:
            query = query.filter(PiiAccessLog.resource_type == resource_type)
        if access_type:
            query = query.filter(PiiAccessLog.access_type == access_type)
        if date_from is not None:
            query = query.filter(PiiAccessLog.created_at >= date_from)
        if date_to is not None:
            query = query.filter(PiiAccessLog.created_at <= date_to)
        return query

    def list_logs(self, limit: int = 50, offset: int = 0, **filters) -> List[PiiAccessLog]:
        return (
            self._filtered(**filters)
            .order_by(PiiAccessLog.created_at.desc(), PiiAccessLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def summary(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        top: int = 5,
    ) -> PiiAccessSummary:
        base = self._filtered(date_from=date_from, date_to=date_to)
        total = base.count()

        by_access = dict(
            base.with_entities(PiiAccessLog.access_type, func.count(PiiAccessLog.id))
            .group_by(PiiAccessLog.access_type)
            .all()
        )
        by_resource = dict(
            base.with_entities(PiiAccessLog.resource_type, func.count(PiiAccessLog.id))
            .group_by(PiiAccessLog.resource_type)
            .all()
        )
        actor_rows = (
            base.join(User, User.id == PiiAccessLog.user_id)
            .with_entities(PiiAccessLog.user_id, User.full_name, func.count(PiiAccessLog.id).label("n"))
            .group_by(PiiAccessLog.user_id, User.full_name)
            .order_by(func.count(PiiAccessLog.id).desc(), PiiAccessLog.user_id)
            .limit(top)
            .all()
        )
        return PiiAccessSummary(
            total=total,
            by_access_type=by_access,
            by_resource_type=by_resource,
            top_actors=[ActorCount(user_id=uid, full_name=name, count=n) for uid, name, n in actor_rows],
        )
