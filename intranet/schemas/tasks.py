from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from intranet.models.task import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM
    property_id: Optional[int] = None
    department_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    priority: Optional[TaskPriority] = None
    assigned_to_id: Optional[int] = None
    due_date: Optional[date] = None

    @field_validator("title", "priority")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class TaskStatusChange(BaseModel):
    status: TaskStatus


class TaskCommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class TaskCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: int
    content: str
    created_at: Optional[datetime] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    property_id: Optional[int] = None
    department_id: Optional[int] = None
    assigned_to_id: Optional[int] = None
    created_by_id: int
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    valid_next_statuses: List[str] = []


class TaskDetail(TaskResponse):
    comments: List[TaskCommentResponse] = []


class TaskStats(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    on_hold: int = 0
    completed: int = 0
    cancelled: int = 0
    overdue: int = 0
