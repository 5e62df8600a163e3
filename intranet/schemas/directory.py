from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from intranet.models.user import AppRole


class EmployeeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    job_title: Optional[str] = None
    role: AppRole
    avatar_url: Optional[str] = None
    reporting_to_id: Optional[int] = None
    property_ids: List[int] = Field(default_factory=list)
    department_ids: List[int] = Field(default_factory=list)
    is_active: bool = True


class EmployeeDetail(EmployeeSummary):
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class EmployeeCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8)
    job_title: Optional[str] = Field(default=None, max_length=200)
    role: Optional[AppRole] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    avatar_url: Optional[str] = None
    property_ids: List[int] = Field(default_factory=list)
    department_ids: List[int] = Field(default_factory=list)
    reporting_to_id: Optional[int] = None


class AssignmentUpdate(BaseModel):
    property_ids: Optional[List[int]] = None
    department_ids: Optional[List[int]] = None


class JobTitleChange(BaseModel):
    job_title: str = Field(min_length=1, max_length=200)
    apply_suggested_role: bool = False


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    avatar_url: Optional[str] = None


class RoleSuggestion(BaseModel):
    job_title: str
    role: AppRole
