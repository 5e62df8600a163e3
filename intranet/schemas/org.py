from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

RoleLevel = Literal["head", "supervisor", "staff"]


class OrgEmployee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    job_title: Optional[str] = None
    email: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    property_id: Optional[int] = None
    department_id: Optional[int] = None
    reporting_to: Optional[int] = None


class OrgRoleGroup(BaseModel):
    level: RoleLevel
    label: str
    employees: List[OrgEmployee]


class OrgDepartment(BaseModel):
    # Synthetic "<property_id>-general" buckets make this a string
    id: str
    name: str
    role_groups: List[OrgRoleGroup]
    total_employees: int


class OrgProperty(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    property_code: Optional[str] = None
    phone: Optional[str] = None
    is_headquarters: bool = False
    general_manager: Optional[OrgEmployee] = None
    departments: List[OrgDepartment]
    total_employees: int


class OrgCorporate(BaseModel):
    executives: List[OrgEmployee] = Field(default_factory=list)
    shared_services: List[OrgDepartment] = Field(default_factory=list)


class OrgHierarchy(BaseModel):
    corporate: OrgCorporate = Field(default_factory=OrgCorporate)
    properties: List[OrgProperty] = Field(default_factory=list)
    unassigned: List[OrgEmployee] = Field(default_factory=list)
    total_employees: int = 0


class PropertyRow(BaseModel):
    """Property fields the hierarchy builder needs."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    code: Optional[str] = None
    phone: Optional[str] = None
    is_headquarters: bool = False


class DepartmentRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    property_id: Optional[int] = None


class HierarchyScope(BaseModel):
    """The viewer's role and assignments, used to scope what they see."""
    role: Optional[str] = None
    property_ids: List[int] = Field(default_factory=list)
    department_ids: List[int] = Field(default_factory=list)


class ReportingTreeRow(BaseModel):
    id: int
    full_name: str
    job_title: Optional[str] = None
    email: str
    reporting_to: Optional[int] = None
    manager_name: Optional[str] = None
    depth: int
    path: List[int]
    path_names: List[str]


class ReportingLineUpdate(BaseModel):
    manager_id: Optional[int] = None


class ReportSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    job_title: Optional[str] = None
    email: str


class ChainLink(ReportSummary):
    level: int
