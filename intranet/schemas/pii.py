from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

AccessType = Literal["view", "export", "update"]


class PiiAccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    target_user_id: Optional[int] = None
    resource_type: str
    access_type: str
    fields_accessed: Optional[List[str]] = None
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None


class ActorCount(BaseModel):
    user_id: int
    full_name: Optional[str] = None
    count: int


class PiiAccessSummary(BaseModel):
    total: int
    by_access_type: Dict[str, int]
    by_resource_type: Dict[str, int]
    top_actors: List[ActorCount]


class PiiAccessRecord(BaseModel):
    resource_type: str
    access_type: AccessType
    target_user_id: Optional[int] = None
    fields_accessed: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
