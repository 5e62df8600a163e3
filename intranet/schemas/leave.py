from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from intranet.models.leave_request import LeaveType


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveRejection(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: int
    property_id: Optional[int] = None
    department_id: Optional[int] = None
    leave_type: str
    start_date: date
    end_date: date
    days_count: int
    reason: Optional[str] = None
    status: str
    approved_by_id: Optional[int] = None
    rejected_by_id: Optional[int] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class LeaveEvent(BaseModel):
    id: int
    user_id: int
    user_name: str
    department_id: Optional[int] = None
    department_name: str
    start_date: date
    end_date: date
    leave_type: str
    status: str


class DepartmentCoverage(BaseModel):
    department_id: int
    department_name: str
    total_staff: int
    staff_on_leave: int
    coverage_percentage: int
    upcoming_leaves: int


class LeaveConflict(BaseModel):
    department_id: int
    department_name: str
    date: date
    staff_on_leave: int
    total_staff: int
    coverage_percentage: int
    is_critical: bool


class LeaveCoverageReport(BaseModel):
    events: List[LeaveEvent]
    coverage: List[DepartmentCoverage]
    conflicts: List[LeaveConflict]
