"""
Reporting lines: who reports to whom, with cycle protection.
"""
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from intranet.core.config import settings
from intranet.core.exceptions import AccessDeniedError, CircularReportingError, NotFoundError
from intranet.core.permissions import can_manage_user
from intranet.models.user import User
from intranet.schemas.org import ChainLink, ReportingTreeRow, ReportSummary
from intranet.services.audit import AuditService
from intranet.services.base import BaseService


class ReportingService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.max_depth = settings.hierarchy.reporting_chain_max_depth

    def _get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(
            User.id == user_id,
            User.organization_id == self.org_id
        ).first()
        if user is None:
            raise NotFoundError("Employee", user_id)
        return user

    def validate_reporting_line(self, employee_id: int, manager_id: Optional[int]) -> None:
        """
        Reject a manager assignment that would make the employee report to
        themselves, directly or through the chain above the new manager.
        """
        if manager_id is None:
            return
        if manager_id == employee_id:
            raise CircularReportingError("Employee cannot report to themselves")

        current = manager_id
        depth = 0
        while current is not None and depth < self.max_depth:
            if current == employee_id:
                raise CircularReportingError(
                    "Circular reporting chain detected: this change would create a loop in the reporting hierarchy"
                )
            row = self.db.query(User.reporting_to_id).filter(User.id == current).first()
            current = row[0] if row else None
            depth += 1

        if current is not None and depth >= self.max_depth:
            self.log_warning(
                f"Reporting chain above employee {employee_id} exceeds {self.max_depth} levels - please review hierarchy"
            )

    def set_reporting_line(self, employee_id: int, manager_id: Optional[int], actor: User) -> User:
        employee = self._get_user(employee_id)
        if not can_manage_user(actor, employee):
            raise AccessDeniedError("You cannot change this employee's reporting line")
        if manager_id is not None:
            self._get_user(manager_id)
        self.validate_reporting_line(employee_id, manager_id)

        previous = employee.reporting_to_id
        employee.reporting_to_id = manager_id
        AuditService(self.db, self.org_id).log_action(
            action="update_reporting_line",
            entity_type="user",
            entity_id=employee.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state={"reporting_to": previous},
            after_state={"reporting_to": manager_id},
        )
        self.db.commit()
        self.db.refresh(employee)
        self.log_info(f"Reporting line updated: {employee_id} -> {manager_id}")
        return employee

    def get_direct_reports(self, manager_id: int) -> List[ReportSummary]:
        reports = (
            self.db.query(User)
            .filter(
                User.organization_id == self.org_id,
                User.reporting_to_id == manager_id,
                User.is_active == True  # noqa: E712
            )
            .order_by(User.full_name)
            .all()
        )
        return [ReportSummary.model_validate(u) for u in reports]

    def get_reporting_chain(self, employee_id: int) -> List[ChainLink]:
        """The employee (level 0) followed by each manager up the chain."""
        user = self._get_user(employee_id)
        chain: List[ChainLink] = []
        seen = set()
        level = 0
        while user is not None and user.id not in seen and level <= self.max_depth:
            seen.add(user.id)
            chain.append(ChainLink(
                id=user.id, full_name=user.full_name, job_title=user.job_title,
                email=user.email, level=level,
            ))
            user = user.manager
            level += 1
        return chain

    def get_reporting_tree(
        self,
        root_id: Optional[int] = None,
        property_id: Optional[int] = None
    ) -> List[ReportingTreeRow]:
        """
        Flatten the reporting tree below ``root_id`` (or below every active
        employee without a manager), ordered depth-first by path.
        ``property_id`` restricts the roots to staff assigned to that property.
        """
        users = (
            self.db.query(User)
            .filter(User.organization_id == self.org_id, User.is_active == True)  # noqa: E712
            .all()
        )
        children: Dict[int, List[User]] = {}
        for u in users:
            if u.reporting_to_id is not None:
                children.setdefault(u.reporting_to_id, []).append(u)
        for reports in children.values():
            reports.sort(key=lambda u: u.id)

        if root_id is not None:
            roots = [u for u in users if u.id == root_id]
        else:
            roots = [u for u in users if u.reporting_to_id is None]
        if property_id is not None:
            roots = [u for u in roots if property_id in u.property_ids]
        roots.sort(key=lambda u: u.id)

        rows: List[ReportingTreeRow] = []

        def walk(user: User, manager: Optional[User], path: List[int], names: List[str]):
            path = path + [user.id]
            names = names + [user.full_name]
            rows.append(ReportingTreeRow(
                id=user.id,
                full_name=user.full_name,
                job_title=user.job_title,
                email=user.email,
                reporting_to=user.reporting_to_id,
                manager_name=manager.full_name if manager else None,
                depth=len(path) - 1,
                path=path,
                path_names=names,
            ))
            if len(path) > self.max_depth:
                return
            for child in children.get(user.id, []):
                if child.id not in path:
                    walk(child, user, path, names)

        for root in roots:
            walk(root, None, [], [])
        return rows
