from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from intranet.models.user import AppRole

RequestActionName = Literal["approve", "reject", "return", "resubmit", "forward", "close", "add_comment"]
CommentVisibility = Literal["all", "internal"]


class PromotionCreate(BaseModel):
    employee_id: int
    new_role: Optional[AppRole] = None
    new_job_title: Optional[str] = Field(default=None, max_length=200)
    new_department_id: Optional[int] = None
    effective_date: date
    notes: Optional[str] = Field(default=None, max_length=2000)


class TransferCreate(BaseModel):
    employee_id: int
    to_property_id: int
    to_department_id: Optional[int] = None
    effective_date: date
    notes: Optional[str] = Field(default=None, max_length=2000)


class RequestAction(BaseModel):
    action: RequestActionName
    comment: Optional[str] = Field(default=None, max_length=2000)
    forward_to: Optional[int] = None
    visibility: CommentVisibility = "all"


class RequestCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class RequestDetailsUpdate(BaseModel):
    effective_date: Optional[date] = None
    new_role: Optional[AppRole] = None
    to_property_id: Optional[int] = None


class SubmitResult(BaseModel):
    request_id: int
    request_no: int
    entity_id: int


class RequestStepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    step_order: int
    approver_role: Optional[AppRole] = None
    assignee_id: Optional[int] = None
    status: str
    acted_by_id: Optional[int] = None
    acted_at: Optional[datetime] = None
    comment: Optional[str] = None


class RequestCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: int
    body: str
    visibility: str
    created_at: Optional[datetime] = None


class RequestEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    actor_id: Optional[int] = None
    event_type: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class RequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_no: int
    entity_type: str
    entity_id: int
    requester_id: int
    supervisor_id: Optional[int] = None
    current_assignee_id: Optional[int] = None
    status: str
    submitted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    details: Optional[Dict[str, Any]] = None


class RequestDetail(RequestResponse):
    steps: List[RequestStepResponse] = Field(default_factory=list)
    comments: List[RequestCommentResponse] = Field(default_factory=list)
    events: List[RequestEventResponse] = Field(default_factory=list)


class PromotionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    old_role: Optional[AppRole] = None
    new_role: Optional[AppRole] = None
    old_job_title: Optional[str] = None
    new_job_title: Optional[str] = None
    old_department_id: Optional[int] = None
    new_department_id: Optional[int] = None
    effective_date: date
    status: str
    notes: Optional[str] = None


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    from_property_id: Optional[int] = None
    to_property_id: int
    from_department_id: Optional[int] = None
    to_department_id: Optional[int] = None
    effective_date: date
    status: str
    notes: Optional[str] = None


class ProcessedChanges(BaseModel):
    promotions: int
    transfers: int
