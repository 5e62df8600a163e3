"""
Operational tasks: creation, assignment, status changes and comments.

Status changes follow the ``task`` table in ``intranet.core.transitions``.
"""
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from intranet.core.exceptions import AccessDeniedError, AppException, NotFoundError
from intranet.core.permissions import PROPERTY_ROLES, has_permission
from intranet.core.security import sanitize_input
from intranet.core.transitions import validate_transition
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.task import Task, TaskComment, TaskStatus
from intranet.models.user import AppRole, User
from intranet.schemas.tasks import TaskCreate, TaskStats, TaskUpdate
from intranet.services.audit import AuditService
from intranet.services.base import BaseService
from intranet.services.notification import NotificationService

ENTITY = "task"

_CLOSED = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)


def _snapshot(task: Task) -> dict:
    return {
        "status": task.status,
        "priority": task.priority,
        "assigned_to_id": task.assigned_to_id,
        "due_date": task.due_date,
    }


class TaskService(BaseService):
    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)
        self.audit = AuditService(db, org_id)

    # -- visibility --------------------------------------------------------

    def _visible_filter(self, query, viewer: User):
        """Own and assigned tasks, plus the whole scope a manager looks after."""
        if viewer.is_regional:
            return query
        mine = or_(Task.created_by_id == viewer.id, Task.assigned_to_id == viewer.id)
        if viewer.role == AppRole.PROPERTY_MANAGER and viewer.property_ids:
            return query.filter(or_(mine, Task.property_id.in_(viewer.property_ids)))
        if viewer.role == AppRole.DEPARTMENT_HEAD and viewer.department_ids:
            return query.filter(or_(mine, Task.department_id.in_(viewer.department_ids)))
        return query.filter(mine)

    def _manages(self, viewer: User, task: Task) -> bool:
        if not has_permission(viewer.role, "tasks", "manage"):
            return False
        if viewer.is_regional:
            return True
        if viewer.role in PROPERTY_ROLES:
            return task.property_id is not None and task.property_id in viewer.property_ids
        if viewer.role == AppRole.DEPARTMENT_HEAD:
            return task.department_id is not None and task.department_id in viewer.department_ids
        return False

    def can_view(self, viewer: User, task: Task) -> bool:
        return (
            viewer.is_regional
            or viewer.id in (task.created_by_id, task.assigned_to_id)
            or self._manages(viewer, task)
        )

    def can_edit(self, viewer: User, task: Task) -> bool:
        return viewer.id in (task.created_by_id, task.assigned_to_id) or self._manages(viewer, task)

    # -- queries -----------------------------------------------------------

    def get(self, task_id: int, viewer: Optional[User] = None) -> Task:
        task = self.db.query(Task).filter(
            Task.id == task_id,
            Task.organization_id == self.org_id,
            Task.is_deleted == False  # noqa: E712
        ).first()
        if task is None or (viewer is not None and not self.can_view(viewer, task)):
            raise NotFoundError("Task", task_id)
        return task

    def list_visible(
        self,
        viewer: User,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
        property_id: Optional[int] = None,
        department_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Task]:
        query = self._visible_filter(
            self.db.query(Task).filter(Task.organization_id == self.org_id, Task.is_deleted == False),  # noqa: E712
            viewer,
        )
        if status:
            query = query.filter(Task.status == status)
        if priority:
            query = query.filter(Task.priority == priority)
        if assigned_to_id is not None:
            query = query.filter(Task.assigned_to_id == assigned_to_id)
        if property_id is not None:
            query = query.filter(Task.property_id == property_id)
        if department_id is not None:
            query = query.filter(Task.department_id == department_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
        return query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    def stats(self, user: User, today: Optional[date] = None) -> TaskStats:
        """Counts over the tasks a user created or is assigned to."""
        today = today or date.today()
        base = self.db.query(Task).filter(
            Task.organization_id == self.org_id,
            Task.is_deleted == False,  # noqa: E712
            or_(Task.created_by_id == user.id, Task.assigned_to_id == user.id),
        )
        counts = dict(base.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all())
        overdue = base.filter(Task.status.notin_(_CLOSED), Task.due_date < today).count()
        return TaskStats(total=sum(counts.values()), overdue=overdue, **counts)

    # -- mutations ---------------------------------------------------------

    def _check_placement(self, property_id: Optional[int], department_id: Optional[int]):
        if property_id is not None:
            exists = self.db.query(Property.id).filter(
                Property.id == property_id, Property.organization_id == self.org_id
            ).first()
            if exists is None:
                raise NotFoundError("Property", property_id)
        if department_id is not None:
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

    def _get_assignee(self, user_id: int) -> User:
        user = self.db.query(User).filter(
            User.id == user_id,
            User.organization_id == self.org_id,
            User.is_active == True  # noqa: E712
        ).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _notify_assigned(self, task: Task, actor: User):
        if task.assigned_to_id is None or task.assigned_to_id == actor.id:
            return
        NotificationService.notify_user(
            self.db,
            task.assigned_to_id,
            title="New task assigned",
            message=f'You have been assigned a new task: "{task.title}"',
            type="task_assigned",
            link=f"/tasks/{task.id}",
            organization_id=self.org_id,
        )

    def create(self, actor: User, data: TaskCreate) -> Task:
        property_id = data.property_id
        department_id = data.department_id
        if property_id is None and department_id is None:
            property_id = actor.primary_property_id
            department_id = actor.primary_department_id
        self._check_placement(property_id, department_id)
        if data.assigned_to_id is not None:
            self._get_assignee(data.assigned_to_id)

        task = Task(
            organization_id=self.org_id,
            title=data.title.strip(),
            description=sanitize_input(data.description),
            priority=data.priority.value,
            status=TaskStatus.OPEN.value,
            property_id=property_id,
            department_id=department_id,
            assigned_to_id=data.assigned_to_id,
            created_by_id=actor.id,
            due_date=data.due_date,
        )
        self.db.add(task)
        self.db.flush()
        self.audit.log_action(
            action="task_created",
            entity_type=ENTITY,
            entity_id=task.id,
            user_id=actor.id,
            user_role=actor.role,
            after_state=_snapshot(task),
        )
        self._notify_assigned(task, actor)
        self.db.commit()
        self.db.refresh(task)
        self.log_info(f"Task {task.id} created by user {actor.id}")
        return task

    def update(self, task_id: int, actor: User, data: TaskUpdate) -> Task:
        task = self.get(task_id, actor)
        if not self.can_edit(actor, task):
            raise AccessDeniedError("You cannot edit this task")

        changes = data.model_dump(exclude_unset=True)
        before = _snapshot(task)
        previous_assignee = task.assigned_to_id
        if changes.get("assigned_to_id") is not None:
            self._get_assignee(changes["assigned_to_id"])

        for field, value in changes.items():
            if field == "title":
                value = value.strip()
            elif field == "description":
                value = sanitize_input(value)
            elif field == "priority":
                value = value.value
            setattr(task, field, value)

        self.audit.log_action(
            action="task_updated",
            entity_type=ENTITY,
            entity_id=task.id,
            user_id=actor.id,
            user_role=actor.role,
            details={"fields": sorted(changes)},
            before_state=before,
            after_state=_snapshot(task),
        )
        if task.assigned_to_id != previous_assignee:
            self._notify_assigned(task, actor)
        self.db.commit()
        self.db.refresh(task)
        return task

    def change_status(self, task_id: int, actor: User, to_status: TaskStatus) -> Task:
        task = self.get(task_id, actor)
        if not self.can_edit(actor, task):
            raise AccessDeniedError("You cannot change the status of this task")

        before = _snapshot(task)
        validate_transition(ENTITY, task.status, to_status.value)
        task.status = to_status.value
        if to_status == TaskStatus.COMPLETED:
            task.completed_at = datetime.now(timezone.utc)

        self.audit.log_action(
            action="task_status_changed",
            entity_type=ENTITY,
            entity_id=task.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=before,
            after_state=_snapshot(task),
        )
        if to_status == TaskStatus.COMPLETED and task.created_by_id != actor.id:
            NotificationService.notify_user(
                self.db,
                task.created_by_id,
                title="Task completed",
                message=f'{actor.full_name} completed "{task.title}".',
                type="success",
                link=f"/tasks/{task.id}",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(task)
        self.log_info(f"Task {task.id}: {before['status']} -> {task.status} by user {actor.id}")
        return task

    def delete(self, task_id: int, actor: User) -> None:
        """Soft delete; only the creator or a role allowed to delete tasks."""
        task = self.get(task_id, actor)
        if task.created_by_id != actor.id and not (
            has_permission(actor.role, "tasks", "delete") and self._manages(actor, task)
        ):
            raise AccessDeniedError("You cannot delete this task")
        task.is_deleted = True
        self.audit.log_action(
            action="task_deleted",
            entity_type=ENTITY,
            entity_id=task.id,
            user_id=actor.id,
            user_role=actor.role,
            before_state=_snapshot(task),
        )
        self.db.commit()

    def add_comment(self, task_id: int, actor: User, content: str) -> TaskComment:
        task = self.get(task_id, actor)
        comment = TaskComment(task_id=task.id, author_id=actor.id, content=sanitize_input(content))
        self.db.add(comment)
        self.db.flush()
        for user_id in {task.created_by_id, task.assigned_to_id} - {None, actor.id}:
            NotificationService.notify_user(
                self.db,
                user_id,
                title="New comment on task",
                message=f'{actor.full_name} commented on "{task.title}".',
                link=f"/tasks/{task.id}",
                organization_id=self.org_id,
            )
        self.db.commit()
        self.db.refresh(comment)
        return comment
