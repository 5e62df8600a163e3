from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from intranet.core.transitions import get_valid_next_statuses
from intranet.database import get_db
from intranet.models.task import Task
from intranet.models.user import User
from intranet.routers.auth_deps import get_current_org, require_permission
from intranet.schemas.tasks import (
    TaskCommentCreate,
    TaskCommentResponse,
    TaskCreate,
    TaskDetail,
    TaskResponse,
    TaskStats,
    TaskStatusChange,
    TaskUpdate,
)
from intranet.services.tasks import TaskService

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"]
)


def _response(task: Task, schema=TaskResponse):
    data = schema.model_validate(task)
    data.valid_next_statuses = get_valid_next_statuses("task", task.status)
    return data


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to_id: Optional[int] = None,
    property_id: Optional[int] = None,
    department_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "read")),
):
    """Tasks the caller created or is assigned to, plus those in the scope they manage."""
    tasks = TaskService(db, org_id).list_visible(
        current_user,
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        property_id=property_id,
        department_id=department_id,
        search=search,
    )
    return [_response(t) for t in tasks]


@router.get("/stats", response_model=TaskStats)
def my_task_stats(
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "read")),
):
    return TaskService(db, org_id).stats(current_user)


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    data: TaskCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "create")),
):
    return _response(TaskService(db, org_id).create(current_user, data))


@router.get("/{task_id}", response_model=TaskDetail)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "read")),
):
    return _response(TaskService(db, org_id).get(task_id, current_user), TaskDetail)


@router.patch("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    data: TaskUpdate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "update")),
):
    return _response(TaskService(db, org_id).update(task_id, current_user, data))


@router.post("/{task_id}/status", response_model=TaskResponse)
def change_task_status(
    task_id: int,
    data: TaskStatusChange,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "update")),
):
    return _response(TaskService(db, org_id).change_status(task_id, current_user, data.status))


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "read")),
):
    TaskService(db, org_id).delete(task_id, current_user)


@router.post("/{task_id}/comments", response_model=TaskCommentResponse, status_code=201)
def add_task_comment(
    task_id: int,
    data: TaskCommentCreate,
    db: Session = Depends(get_db),
    org_id: int = Depends(get_current_org),
    current_user: User = Depends(require_permission("tasks", "read")),
):
    return TaskService(db, org_id).add_comment(task_id, current_user, data.content)
