from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from intranet.models.maintenance_ticket import MaintenanceCategory, MaintenancePriority, MaintenanceStatus


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: MaintenanceCategory
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    property_id: Optional[int] = None
    department_id: Optional[int] = None
    room_number: Optional[str] = Field(default=None, max_length=20)
    estimated_completion_date: Optional[date] = None


class TicketAssign(BaseModel):
    assigned_to_id: Optional[int] = None


class TicketStatusChange(BaseModel):
    status: MaintenanceStatus
    parts_needed: Optional[str] = Field(default=None, max_length=2000)
    labor_hours: Optional[float] = Field(default=None, ge=0, lt=1000)
    material_cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=5000)

    @model_validator(mode="after")
    def check_work_log(self):
        if (self.labor_hours is not None or self.material_cost is not None) \
                and self.status != MaintenanceStatus.COMPLETED:
            raise ValueError("labor_hours and material_cost are recorded on completion only")
        return self


class TicketCommentCreate(BaseModel):
    comment: str = Field(min_length=1, max_length=2000)
    internal_only: bool = False


class TicketCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: int
    comment: str
    internal_only: bool
    created_at: Optional[datetime] = None


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: str
    priority: str
    status: str
    property_id: int
    department_id: Optional[int] = None
    room_number: Optional[str] = None
    reported_by_id: int
    assigned_to_id: Optional[int] = None
    estimated_completion_date: Optional[date] = None
    actual_completion_date: Optional[date] = None
    parts_needed: Optional[str] = None
    labor_hours: Optional[float] = None
    material_cost: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    valid_next_statuses: List[str] = []


class TicketDetail(TicketResponse):
    comments: List[TicketCommentResponse] = []


class MaintenanceSummary(BaseModel):
    by_status: Dict[str, int]
    open_by_priority: Dict[str, int]
    total: int
