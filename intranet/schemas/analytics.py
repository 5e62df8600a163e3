from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict


class PropertyHeadcount(BaseModel):
    property_id: int
    property_name: str
    headcount: int


class DashboardSummary(BaseModel):
    headcount: int
    headcount_by_property: List[PropertyHeadcount]
    headcount_by_role: Dict[str, int]
    pending_leave_requests: int
    pending_hr_requests: int
    on_leave_today: int


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    user_id: Optional[int] = None
    user_role: Optional[str] = None
    details: Optional[dict] = None
    before_state: Optional[dict] = None
    after_state: Optional[dict] = None
    timestamp: datetime
